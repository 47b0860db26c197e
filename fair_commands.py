"""
Provably Fair Commands Module
Discord commands for verifying rounds, plus the embeds games use to reveal seeds.
"""

import logging
from typing import List, Optional

import discord

import config
from game_log import GameLog
from provably_fair import (
    CHICKEN_RUN_MAX_STEPS,
    FAIRNESS_VERSION,
    GAME_TYPES,
    Seed,
    chicken_multiplier,
    replay_outcome,
    seed_from_reveal,
    tower_layout,
)

log = logging.getLogger(__name__)

MINES_GRID_WIDTH = 5
DEFAULT_REPLAY_MINES = 3


def add_seed_fields(embed: discord.Embed, seed: Seed) -> discord.Embed:
    """Add the four disclosed seed values to a result embed."""
    embed.add_field(name="🔍 Server Seed", value=f"`{seed.server_seed}`", inline=False)
    embed.add_field(name="🎲 Client Seed", value=f"`{seed.client_seed}`", inline=True)
    embed.add_field(name="🔢 Nonce", value=f"`{seed.nonce}`", inline=True)
    embed.add_field(name="🔐 Hash", value=f"`{seed.hash}`", inline=False)
    return embed


def build_commitment_embed(game_type: str, commitment: str) -> discord.Embed:
    """Embed shown when a round starts, before any outcome is used."""
    embed = discord.Embed(
        title=f"🔐 {game_type.capitalize()} - Seed Committed",
        description="This hash locks in the round's outcome. The seed behind it is revealed when the round ends.",
        color=discord.Color.blurple()
    )
    embed.add_field(name="🔐 Hash", value=f"`{commitment}`", inline=False)
    return embed


def build_reveal_embed(game_round, title: Optional[str] = None) -> discord.Embed:
    """Result embed for a finished round, with its seed disclosed."""
    won = game_round.profit > 0
    embed = discord.Embed(
        title=title or f"{game_round.game_type.capitalize()} - {game_round.result.upper()}",
        color=discord.Color.green() if won else discord.Color.red()
    )
    embed.add_field(name="💰 Bet Amount", value=f"{game_round.bet_amount:,}", inline=True)
    embed.add_field(name="📈 Multiplier", value=f"{game_round.multiplier:.2f}x", inline=True)
    embed.add_field(name="🎯 Profit", value=f"{game_round.profit:,}", inline=True)
    add_seed_fields(embed, game_round.seed)
    embed.set_footer(text="Verify with !seedcheck <server seed> <client seed> <nonce> <hash> <game>")
    return embed


# -----------------------------
# REPLAY DISPLAY
# -----------------------------
def format_replay(game_type: str, outcome, mine_count: Optional[int] = None,
                  difficulty: Optional[str] = None) -> str:
    """Render a replayed outcome as message text."""
    if game_type == 'mines':
        rows = []
        for row in range(MINES_GRID_WIDTH):
            cells = []
            for col in range(MINES_GRID_WIDTH):
                position = row * MINES_GRID_WIDTH + col
                cells.append('💣' if position in outcome else '💎')
            rows.append(' '.join(cells))
        return f"Mines ({mine_count}): {', '.join(str(p) for p in outcome)}\n" + "\n".join(rows)

    if game_type == 'towers':
        slots, _ = tower_layout(difficulty)
        lines = []
        for level in sorted(outcome, reverse=True):
            cells = ['💣' if slot in outcome[level] else '🟩' for slot in range(slots)]
            lines.append(f"Level {level + 1}: {' '.join(cells)}")
        return "\n".join(lines)

    if game_type == 'slots':
        return "\n".join(' '.join(outcome[i:i + 3]) for i in range(0, 9, 3))

    if game_type == 'crash':
        return f"Crash point: **{outcome:.2f}x**"

    if game_type == 'coinflip':
        return f"Coin landed on **{outcome.upper()}**"

    if game_type == 'blackjack':
        return (f"Player: {outcome[0]} {outcome[2]}\n"
                f"Dealer: {outcome[1]} {outcome[3]}\n"
                f"Next cards: {' '.join(outcome[4:10])}")

    if game_type == 'chickenrun':
        if outcome is None:
            top = chicken_multiplier(CHICKEN_RUN_MAX_STEPS)
            return f"The chicken survives all {CHICKEN_RUN_MAX_STEPS} steps (pays {top:.2f}x)"
        return f"Caught on step **{outcome}** ({chicken_multiplier(outcome):.2f}x)"

    raise ValueError(f"Unknown game type: {game_type}")


def _house_edge_for(game_type: str) -> Optional[float]:
    if game_type == 'crash':
        return config.CRASH_HOUSE_EDGE
    if game_type == 'chickenrun':
        return config.CHICKEN_HOUSE_EDGE
    return None


def build_seedcheck_embeds(server_seed: str, client_seed: str, nonce: str, expected_hash: str,
                           game_type: Optional[str] = None, option: Optional[str] = None,
                           stored_params: Optional[dict] = None) -> List[discord.Embed]:
    """
    Verify revealed seed values and, for a valid seed, replay a game.

    Args:
        server_seed (str): Revealed server seed
        client_seed (str): Revealed client seed
        nonce (str): Revealed nonce
        expected_hash (str): Commitment hash
        game_type (str): Optional game to replay
        option (str): Mine count for mines, difficulty for towers
        stored_params (dict): Replay params from the round log, if the round is known

    Returns:
        list: One embed for the verdict, plus one for the replay when requested
    """
    seed = seed_from_reveal(server_seed, client_seed, nonce, expected_hash)
    if seed is None:
        embed = discord.Embed(
            title="❌ Invalid Seed",
            description="The provided seed information does not match the hash!",
            color=discord.Color.red()
        )
        embed.add_field(
            name="Provided Information",
            value=f"Server Seed: `{str(server_seed)[:16]}...`\nClient Seed: `{client_seed}`\nNonce: `{nonce}`",
            inline=False
        )
        return [embed]

    verdict = discord.Embed(
        title="✅ Seed Verified",
        description="The seed matches its commitment hash. The round was not altered after the bet.",
        color=discord.Color.green()
    )
    verdict.add_field(name="Server Seed", value=f"`{server_seed[:16]}...`", inline=True)
    verdict.add_field(name="Client Seed", value=f"`{client_seed}`", inline=True)
    verdict.add_field(name="Nonce", value=str(nonce), inline=True)
    embeds = [verdict]

    if not game_type:
        return embeds

    game_type = game_type.lower()
    if game_type not in GAME_TYPES:
        embeds.append(discord.Embed(
            title="❌ Unknown Game Type",
            description=f"Choose one of: {', '.join(GAME_TYPES)}",
            color=discord.Color.red()
        ))
        return embeds

    params = dict(stored_params or {})
    mine_count = params.get('mine_count')
    difficulty = params.get('difficulty')
    if option is not None:
        if game_type == 'mines':
            try:
                mine_count = int(option)
            except ValueError:
                embeds.append(discord.Embed(
                    title="❌ Invalid Mine Count",
                    description=f"`{option}` is not a number.",
                    color=discord.Color.red()
                ))
                return embeds
        elif game_type == 'towers':
            difficulty = option.lower()
    if game_type == 'mines' and mine_count is None:
        mine_count = DEFAULT_REPLAY_MINES
    if game_type == 'towers' and difficulty is None:
        difficulty = 'easy'

    house_edge = params.get('house_edge', _house_edge_for(game_type))
    version = params.get('version', FAIRNESS_VERSION)

    try:
        outcome = replay_outcome(seed, game_type, mine_count=mine_count, difficulty=difficulty,
                                 version=version, house_edge=house_edge)
    except ValueError as e:
        embeds.append(discord.Embed(title="❌ Replay Failed", description=str(e), color=discord.Color.red()))
        return embeds

    replay = discord.Embed(
        title=f"🎲 {game_type.capitalize()} Replay",
        description=format_replay(game_type, outcome, mine_count=mine_count, difficulty=difficulty),
        color=discord.Color.gold()
    )
    replay.set_footer(text=f"Fairness version {version}")
    embeds.append(replay)
    return embeds


def build_history_embed(user_name: str, rounds: List[dict]) -> discord.Embed:
    """Embed listing a user's recent rounds from the log."""
    embed = discord.Embed(
        title=f"📜 Recent Rounds - {user_name}",
        color=discord.Color.blue()
    )
    if not rounds:
        embed.description = "No rounds played yet."
        return embed

    for record in rounds:
        if record['revealed_at']:
            status = f"{record['result']} • {record['multiplier']:.2f}x • {record['profit']:+,}"
            seeds = (f"Server: `{record['server_seed']}`\n"
                     f"Client: `{record['client_seed']}` • Nonce: `{record['nonce']}`")
        else:
            status = "in progress"
            seeds = "Seed is revealed when the round ends"
        embed.add_field(
            name=f"#{record['id']} {record['game_type'].capitalize()} ({status})",
            value=f"Hash: `{record['commitment_hash']}`\n{seeds}",
            inline=False
        )
    return embed


def setup_fair_commands(bot, game_log: GameLog):
    """Setup provably fair commands on the bot."""

    @bot.command(name="seedcheck")
    async def seedcheck(ctx, server_seed: str = None, client_seed: str = None, nonce: str = None,
                        expected_hash: str = None, game_type: str = None, option: str = None):
        """
        Verify a revealed seed and replay the game it produced.

        Usage: !seedcheck <server seed> <client seed> <nonce> <hash> [game] [mines|difficulty]
        """
        if not all([server_seed, client_seed, nonce, expected_hash]):
            await ctx.send(
                "❌ Usage: `!seedcheck <server seed> <client seed> <nonce> <hash> [game] [mines|difficulty]`\n"
                f"Games: {', '.join(GAME_TYPES)}"
            )
            return

        record = game_log.get_round(expected_hash)
        stored_params = record['params'] if record else None
        if record:
            stored_params = dict(stored_params, version=record['fairness_version'])

        embeds = build_seedcheck_embeds(server_seed, client_seed, nonce, expected_hash,
                                        game_type, option, stored_params)
        await ctx.send(embeds=embeds)

    @bot.command(name="fairhistory")
    async def fairhistory(ctx):
        """Show your last rounds with their commitments and revealed seeds."""
        rounds = game_log.get_user_history(ctx.author.id, limit=config.HISTORY_LIMIT)
        await ctx.send(embed=build_history_embed(ctx.author.display_name, rounds))

    @bot.command(name="fairstats")
    async def fairstats(ctx):
        """Show how many rounds have been committed and revealed."""
        stats = game_log.get_stats()
        embed = discord.Embed(title="📊 Provably Fair Stats", color=discord.Color.blue())
        embed.add_field(name="Total Rounds", value=f"{stats['total_rounds']:,}", inline=True)
        embed.add_field(name="Revealed", value=f"{stats['revealed_rounds']:,}", inline=True)
        embed.add_field(name="In Progress", value=f"{stats['open_rounds']:,}", inline=True)
        embed.add_field(name="Players", value=f"{stats['total_users']:,}", inline=True)
        await ctx.send(embed=embed)

    log.info("Provably fair commands registered")
