"""
Integration test for the round log and the verification commands
"""

import asyncio
import sqlite3

import discord
import pytest
from discord.ext import commands

from casino_games import ChickenRunRound, CrashRound, MinesRound, SlotsRound, TowersRound
from fair_commands import (
    build_commitment_embed,
    build_history_embed,
    build_reveal_embed,
    build_seedcheck_embeds,
    format_replay,
    setup_fair_commands,
)
from game_log import GameLog
from provably_fair import Seed, commitment_hash, generate_mines_positions

USER_ID = 123456789
OTHER_USER_ID = 987654321


def make_seed(nonce):
    server_seed = f"{nonce:064x}"
    client_seed = "d" * 32
    return Seed(server_seed, client_seed, nonce, commitment_hash(server_seed, client_seed, nonce))


@pytest.fixture
def game_log():
    conn = sqlite3.connect(":memory:")
    yield GameLog(conn)
    conn.close()


def finished_mines_round(nonce=1, mine_count=3):
    game = MinesRound(USER_ID, 1000, mine_count, seed=make_seed(nonce))
    game.reveal_tile(game.mine_positions[0])
    return game


# ============================================================================
# ROUND LOG
# ============================================================================

def test_commitment_then_reveal(game_log):
    game = MinesRound(USER_ID, 1000, 4, seed=make_seed(1))
    row_id = game_log.log_commitment(game)

    record = game_log.get_round(game.commitment)
    assert record['id'] == row_id
    assert record['params'] == {'mine_count': 4}
    assert record['server_seed'] is None
    assert record['revealed_at'] is None

    game.reveal_tile(game.mine_positions[0])
    game_log.log_reveal(game)

    record = game_log.get_round(game.commitment.upper())
    assert record['server_seed'] == game.seed.server_seed
    assert record['nonce'] == str(game.seed.nonce)
    assert record['outcome'] == game.mine_positions
    assert record['result'] == "loss"
    assert record['profit'] == -1000
    assert record['revealed_at'] is not None


def test_reveal_refused_while_active(game_log):
    game = MinesRound(USER_ID, 1000, 3, seed=make_seed(2))
    game_log.log_commitment(game)
    with pytest.raises(ValueError):
        game_log.log_reveal(game)


def test_reveal_only_once(game_log):
    game = SlotsRound(USER_ID, 500, seed=make_seed(3))
    game_log.log_commitment(game)
    game_log.log_reveal(game)
    with pytest.raises(ValueError):
        game_log.log_reveal(game)


def test_reveal_requires_commitment(game_log):
    with pytest.raises(ValueError):
        game_log.log_reveal(finished_mines_round())


def test_commitment_is_unique(game_log):
    game = SlotsRound(USER_ID, 500, seed=make_seed(4))
    game_log.log_commitment(game)
    with pytest.raises(sqlite3.IntegrityError):
        game_log.log_commitment(game)


def test_unknown_round(game_log):
    assert game_log.get_round("0" * 64) is None
    assert game_log.get_round(None) is None


def test_history_and_stats(game_log):
    for nonce in range(5):
        game = SlotsRound(USER_ID, 100, seed=make_seed(10 + nonce))
        game_log.log_commitment(game)
        game_log.log_reveal(game)
    game_log.log_commitment(CrashRound(OTHER_USER_ID, 100, seed=make_seed(20)))

    history = game_log.get_user_history(USER_ID, limit=3)
    assert len(history) == 3
    assert [r['id'] for r in history] == sorted((r['id'] for r in history), reverse=True)
    assert history[0]['commitment_hash'] == make_seed(14).hash

    assert game_log.get_stats() == {
        'total_rounds': 6,
        'revealed_rounds': 5,
        'open_rounds': 1,
        'total_users': 2,
    }


def test_chicken_run_outcome_survives_storage(game_log):
    game = ChickenRunRound(USER_ID, 100, seed=make_seed(30))
    game_log.log_commitment(game)
    while game.active:
        game.move_forward()
    game_log.log_reveal(game)
    record = game_log.get_round(game.commitment)
    assert record['outcome'] == game.crash_step
    assert record['params'] == {'house_edge': game.house_edge}


# ============================================================================
# EMBEDS
# ============================================================================

def test_commitment_and_reveal_embeds():
    game = finished_mines_round()
    embed = build_commitment_embed(game.game_type, game.commitment)
    assert game.commitment in embed.fields[0].value

    embed = build_reveal_embed(game)
    values = [field.value for field in embed.fields]
    assert f"`{game.seed.server_seed}`" in values
    assert f"`{game.seed.hash}`" in values
    assert embed.color == discord.Color.red()


def test_seedcheck_invalid_seed():
    seed = make_seed(40)
    embeds = build_seedcheck_embeds(seed.server_seed, seed.client_seed, "41", seed.hash, "mines")
    assert len(embeds) == 1
    assert embeds[0].title == "❌ Invalid Seed"


def test_seedcheck_without_game():
    seed = make_seed(41)
    embeds = build_seedcheck_embeds(seed.server_seed, seed.client_seed, str(seed.nonce), seed.hash)
    assert [e.title for e in embeds] == ["✅ Seed Verified"]


def test_seedcheck_replays_mines():
    seed = make_seed(42)
    embeds = build_seedcheck_embeds(seed.server_seed, seed.client_seed, str(seed.nonce),
                                    seed.hash, "Mines", "5")
    assert embeds[1].title == "🎲 Mines Replay"
    positions = generate_mines_positions(seed, 5)
    assert embeds[1].description.startswith(f"Mines (5): {', '.join(map(str, positions))}")
    assert embeds[1].description.count('💣') == 5


def test_seedcheck_uses_stored_params():
    game = TowersRound(USER_ID, 100, "hard", seed=make_seed(43))
    game.climb(game.mine_positions[0][0])
    embeds = build_seedcheck_embeds(**game.reveal(), game_type="towers",
                                    stored_params=game.replay_params())
    assert embeds[1].description == format_replay("towers", game.mine_positions, difficulty="hard")


def test_seedcheck_error_embeds():
    seed = make_seed(44)
    args = (seed.server_seed, seed.client_seed, str(seed.nonce), seed.hash)
    assert build_seedcheck_embeds(*args, "roulette")[1].title == "❌ Unknown Game Type"
    assert build_seedcheck_embeds(*args, "mines", "lots")[1].title == "❌ Invalid Mine Count"
    assert build_seedcheck_embeds(*args, "mines", "30")[1].title == "❌ Replay Failed"


@pytest.mark.parametrize("game_type", ["slots", "crash", "coinflip", "blackjack", "chickenrun"])
def test_seedcheck_replays_every_game(game_type):
    seed = make_seed(45)
    embeds = build_seedcheck_embeds(seed.server_seed, seed.client_seed, str(seed.nonce),
                                    seed.hash, game_type)
    assert len(embeds) == 2
    assert embeds[1].title.endswith("Replay")
    assert embeds[1].footer.text == "Fairness version 1"


def test_history_embed(game_log):
    game = finished_mines_round(nonce=50)
    game_log.log_commitment(game)
    game_log.log_reveal(game)
    game_log.log_commitment(SlotsRound(USER_ID, 100, seed=make_seed(51)))

    embed = build_history_embed("Tester", game_log.get_user_history(USER_ID))
    assert len(embed.fields) == 2
    assert "in progress" in embed.fields[0].name
    assert game.seed.server_seed in embed.fields[1].value

    assert build_history_embed("Tester", []).description == "No rounds played yet."


# ============================================================================
# COMMANDS
# ============================================================================

class FakeAuthor:
    id = USER_ID
    display_name = "Tester"


class FakeCtx:
    author = FakeAuthor()

    def __init__(self):
        self.sent = []

    async def send(self, content=None, **kwargs):
        self.sent.append((content, kwargs))


@pytest.fixture
def bot(game_log):
    bot = commands.Bot(command_prefix="!", intents=discord.Intents.default())
    setup_fair_commands(bot, game_log)
    return bot


def test_commands_registered(bot):
    for name in ("seedcheck", "fairhistory", "fairstats"):
        assert bot.get_command(name) is not None


def test_seedcheck_command(bot, game_log):
    game = finished_mines_round(nonce=60, mine_count=7)
    game_log.log_commitment(game)
    game_log.log_reveal(game)
    revealed = game.reveal()

    ctx = FakeCtx()
    asyncio.run(bot.get_command("seedcheck").callback(
        ctx, revealed['server_seed'], revealed['client_seed'], str(revealed['nonce']),
        revealed['expected_hash'], "mines"))
    embeds = ctx.sent[0][1]['embeds']
    assert embeds[0].title == "✅ Seed Verified"
    assert embeds[1].description.startswith("Mines (7):")


def test_seedcheck_command_usage(bot):
    ctx = FakeCtx()
    asyncio.run(bot.get_command("seedcheck").callback(ctx, "abc"))
    assert ctx.sent[0][0].startswith("❌ Usage")


def test_fairhistory_and_fairstats(bot, game_log):
    game_log.log_commitment(SlotsRound(USER_ID, 100, seed=make_seed(70)))

    ctx = FakeCtx()
    asyncio.run(bot.get_command("fairhistory").callback(ctx))
    assert len(ctx.sent[0][1]['embed'].fields) == 1

    ctx = FakeCtx()
    asyncio.run(bot.get_command("fairstats").callback(ctx))
    fields = {f.name: f.value for f in ctx.sent[0][1]['embed'].fields}
    assert fields["Total Rounds"] == "1"
    assert fields["In Progress"] == "1"


def test_chicken_run_replay_shows_top_payout():
    assert format_replay("chickenrun", None) == "The chicken survives all 10 steps (pays 5.25x)"
    assert format_replay("chickenrun", 2) == "Caught on step **2** (1.45x)"
