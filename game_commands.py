"""
Game Commands Module
Discord commands that play rounds. Every round logs its commitment before
the outcome is shown and reveals its seed when it ends.
"""

import logging
from typing import Callable, Optional

from casino_games import CoinflipRound, GameRound, MinesRound, RoundStore, SlotsRound
from fair_commands import build_commitment_embed, build_reveal_embed, format_replay
from game_log import GameLog
from provably_fair import DEFAULT_MINES_BOARD_SIZE

log = logging.getLogger(__name__)


def parse_amount(value: str) -> int:
    """Parse an amount such as 500, 10k, 2.5m or 1b. Returns -1 if invalid."""
    if not isinstance(value, str):
        return -1
    value = value.lower().strip().replace(",", "")
    if not value:
        return -1
    try:
        if value.endswith("k"):
            return int(float(value[:-1]) * 1_000)
        elif value.endswith("m"):
            return int(float(value[:-1]) * 1_000_000)
        elif value.endswith("b"):
            return int(float(value[:-1]) * 1_000_000_000)
        return int(value)
    except ValueError:
        return -1


def setup_game_commands(bot, game_log: GameLog, store: RoundStore):
    """Setup the game commands on the bot."""

    async def start_round(ctx, amount: str, factory: Callable[[int], GameRound]) -> Optional[GameRound]:
        """Create, commit and announce a round. Returns None if it was refused."""
        value = parse_amount(amount)
        if value <= 0:
            await ctx.send("❌ Invalid amount format! Use k, m, or b (e.g., 10m, 5k).")
            return None
        try:
            game_round = factory(value)
            store.start(game_round)
        except ValueError as e:
            await ctx.send(f"❌ {e}")
            return None

        game_log.log_commitment(game_round)
        await ctx.send(embed=build_commitment_embed(game_round.game_type, game_round.commitment))
        return game_round

    async def finish_round(ctx, game_round: GameRound):
        """Reveal the seed of a finished round and post the result."""
        if store.get(game_round.user_id) is game_round:
            store.finish(game_round.user_id)
        game_log.log_reveal(game_round)

        embed = build_reveal_embed(game_round)
        embed.description = format_replay(game_round.game_type, game_round.outcome,
                                          mine_count=getattr(game_round, 'mine_count', None))
        await ctx.send(embed=embed)

    @bot.command(name="coinflip", aliases=["cf"])
    async def coinflip(ctx, amount: str = None, choice: str = None):
        """
        Bet on heads or tails.

        Usage: !coinflip <amount> <heads/tails>
        """
        if amount is None or choice is None:
            await ctx.send("❌ Usage: `!coinflip <amount> <heads/tails>`\nExample: `!cf 10k heads`")
            return
        game_round = await start_round(
            ctx, amount, lambda value: CoinflipRound(ctx.author.id, value, choice))
        if game_round:
            await finish_round(ctx, game_round)

    @bot.command(name="slots")
    async def slots(ctx, amount: str = None):
        """
        Spin the 3x3 slot machine.

        Usage: !slots <amount>
        """
        if amount is None:
            await ctx.send("❌ Usage: `!slots <amount>`")
            return
        game_round = await start_round(ctx, amount, lambda value: SlotsRound(ctx.author.id, value))
        if game_round:
            await finish_round(ctx, game_round)

    @bot.command(name="mines")
    async def mines(ctx, amount: str = None, mine_count: int = 3):
        """
        Start a mines round on the 5x5 board.

        Usage: !mines <amount> [mines], then !pick <1-25> and !cashout
        """
        if amount is None:
            await ctx.send("❌ Usage: `!mines <amount> [mines]`")
            return
        game_round = await start_round(
            ctx, amount, lambda value: MinesRound(ctx.author.id, value, mine_count))
        if game_round:
            await ctx.send(f"💣 {mine_count} mines placed. Pick a tile with `!pick <1-{DEFAULT_MINES_BOARD_SIZE}>`.")

    @bot.command(name="pick")
    async def pick(ctx, tile: int = None):
        """
        Reveal a tile in your mines round.

        Usage: !pick <1-25>
        """
        game_round = store.get(ctx.author.id)
        if not isinstance(game_round, MinesRound) or not game_round.active:
            await ctx.send("❌ You don't have an active mines game! Start one with `!mines <amount>`.")
            return
        if tile is None or not 1 <= tile <= DEFAULT_MINES_BOARD_SIZE:
            await ctx.send(f"❌ Usage: `!pick <1-{DEFAULT_MINES_BOARD_SIZE}>`")
            return
        try:
            safe = game_round.reveal_tile(tile - 1)
        except ValueError as e:
            await ctx.send(f"❌ {e}")
            return

        if game_round.active:
            await ctx.send(f"💎 Safe! Current multiplier: **{game_round.current_multiplier:.2f}x**. "
                           "Keep picking or `!cashout`.")
            return
        if not safe:
            await ctx.send("💥 You hit a mine!")
        await finish_round(ctx, game_round)

    @bot.command(name="cashout")
    async def cashout(ctx):
        """Cash out your active round."""
        game_round = store.get(ctx.author.id)
        if game_round is None or not game_round.active:
            await ctx.send("❌ You don't have an active game!")
            return
        try:
            game_round.cash_out()
        except ValueError as e:
            await ctx.send(f"❌ {e}")
            return
        await finish_round(ctx, game_round)

    log.info("Game commands registered")
