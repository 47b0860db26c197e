"""
Test the game commands end to end: commitment logged at start, seed revealed at end
"""

import asyncio
import sqlite3

import discord
import pytest
from discord.ext import commands

from casino_games import RoundStore
from fair_commands import build_seedcheck_embeds, format_replay
from game_commands import parse_amount, setup_game_commands
from game_log import GameLog
from provably_fair import verify_seed

USER_ID = 123456789


class FakeAuthor:
    id = USER_ID
    display_name = "Tester"


class FakeCtx:
    author = FakeAuthor()

    def __init__(self):
        self.sent = []

    async def send(self, content=None, **kwargs):
        self.sent.append((content, kwargs))

    @property
    def embeds(self):
        return [kwargs['embed'] for _, kwargs in self.sent if 'embed' in kwargs]

    @property
    def texts(self):
        return [content for content, _ in self.sent if content]


@pytest.fixture
def game_log():
    conn = sqlite3.connect(":memory:")
    yield GameLog(conn)
    conn.close()


@pytest.fixture
def store():
    return RoundStore()


@pytest.fixture
def bot(game_log, store):
    bot = commands.Bot(command_prefix="!", intents=discord.Intents.default())
    setup_game_commands(bot, game_log, store)
    return bot


def run(bot, name, *args):
    ctx = FakeCtx()
    asyncio.run(bot.get_command(name).callback(ctx, *args))
    return ctx


def seed_values(embed):
    """Server seed, client seed, nonce and hash from a reveal embed."""
    fields = {field.name: field.value.strip('`') for field in embed.fields}
    return (fields["🔍 Server Seed"], fields["🎲 Client Seed"],
            fields["🔢 Nonce"], fields["🔐 Hash"])


# ============================================================================
# AMOUNTS
# ============================================================================

@pytest.mark.parametrize("raw, expected", [
    ("500", 500), ("10k", 10_000), ("2.5m", 2_500_000), ("1b", 1_000_000_000),
    ("1,000", 1000), ("abc", -1), ("", -1), (None, -1),
])
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == expected


# ============================================================================
# SINGLE-SHOT GAMES
# ============================================================================

def test_commands_registered(bot):
    for name in ("coinflip", "cf", "slots", "mines", "pick", "cashout"):
        assert bot.get_command(name) is not None


def test_coinflip_commits_then_reveals(bot, game_log):
    ctx = run(bot, "coinflip", "10k", "heads")
    commitment_embed, reveal_embed = ctx.embeds
    assert commitment_embed.title == "🔐 Coinflip - Seed Committed"
    commitment = commitment_embed.fields[0].value.strip('`')

    server_seed, client_seed, nonce, expected_hash = seed_values(reveal_embed)
    assert expected_hash == commitment
    assert verify_seed(server_seed, client_seed, nonce, expected_hash)

    record = game_log.get_round(commitment)
    assert record['user_id'] == USER_ID
    assert record['bet_amount'] == 10_000
    assert record['server_seed'] == server_seed
    assert reveal_embed.description == format_replay("coinflip", record['outcome'])
    assert game_log.get_stats()['revealed_rounds'] == 1


def test_slots_reveal_replays(bot, game_log):
    ctx = run(bot, "slots", "500")
    reveal_embed = ctx.embeds[1]
    embeds = build_seedcheck_embeds(*seed_values(reveal_embed), "slots")
    assert embeds[0].title == "✅ Seed Verified"
    assert embeds[1].description == reveal_embed.description
    assert len(game_log.get_user_history(USER_ID)) == 1


def test_bad_input_is_refused_without_logging(bot, game_log):
    assert run(bot, "coinflip").texts[0].startswith("❌ Usage")
    assert run(bot, "coinflip", "lots", "heads").texts[0].startswith("❌ Invalid amount")
    assert run(bot, "coinflip", "100", "edge").texts == ["❌ Choose heads or tails"]
    assert run(bot, "slots", "-5").texts[0].startswith("❌ Invalid amount")
    assert game_log.get_stats()['total_rounds'] == 0


# ============================================================================
# MINES
# ============================================================================

def test_mines_hit_mine_reveals_seed(bot, game_log, store):
    ctx = run(bot, "mines", "1k", 3)
    assert ctx.embeds[0].title == "🔐 Mines - Seed Committed"
    game_round = store.get(USER_ID)
    assert game_round.active
    assert game_log.get_stats()['open_rounds'] == 1

    ctx = run(bot, "pick", game_round.mine_positions[0] + 1)
    assert "💥 You hit a mine!" in ctx.texts
    assert USER_ID not in store
    record = game_log.get_round(game_round.commitment)
    assert record['result'] == "loss"
    assert record['outcome'] == game_round.mine_positions
    assert record['params'] == {'mine_count': 3}


def test_mines_pick_and_cash_out(bot, game_log, store):
    run(bot, "mines", "1000", 5)
    game_round = store.get(USER_ID)
    safe = [p for p in range(25) if p not in game_round.mine_positions]

    assert run(bot, "cashout").texts == ["❌ Reveal at least one tile before cashing out"]
    assert run(bot, "pick", safe[0] + 1).texts[0].startswith("💎 Safe!")
    assert run(bot, "pick", safe[0] + 1).texts == ["❌ Tile already revealed!"]
    assert run(bot, "pick", 26).texts[0].startswith("❌ Usage")

    ctx = run(bot, "cashout")
    assert ctx.embeds[0].fields[0].value == "1,000"
    record = game_log.get_round(game_round.commitment)
    assert record['result'] == "win"
    assert record['profit'] == game_round.profit > 0
    assert USER_ID not in store


def test_one_active_round_per_user(bot, game_log, store):
    run(bot, "mines", "1000")
    ctx = run(bot, "coinflip", "1000", "heads")
    assert ctx.texts == ["❌ You already have an active game! Finish it first."]
    assert game_log.get_stats()['total_rounds'] == 1


def test_pick_and_cashout_need_a_round(bot, store):
    assert run(bot, "pick", 1).texts[0].startswith("❌ You don't have an active mines game")
    assert run(bot, "cashout").texts == ["❌ You don't have an active game!"]
    assert len(store) == 0


def test_invalid_mine_count(bot, game_log):
    ctx = run(bot, "mines", "1000", 25)
    assert ctx.texts == ["❌ Mine count must be between 1 and 24"]
    assert game_log.get_stats()['total_rounds'] == 0
