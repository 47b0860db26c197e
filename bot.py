import logging
import sqlite3

import discord
from discord.ext import commands

import config
from casino_games import RoundStore
from fair_commands import setup_fair_commands
from game_commands import setup_game_commands
from game_log import GameLog

# -----------------------------
# LOGGING
# -----------------------------
logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger("casino.bot")

# -----------------------------
# INTENTS
# -----------------------------
intents = discord.Intents.default()
intents.guilds = True
intents.message_content = True

bot = commands.Bot(command_prefix=config.COMMAND_PREFIX, intents=intents)

# -----------------------------
# DATABASE
# -----------------------------
conn = sqlite3.connect(config.FAIR_DB_PATH)
game_log = GameLog(conn)
store = RoundStore()

setup_fair_commands(bot, game_log)
setup_game_commands(bot, game_log, store)


# -----------------------------
# BOT READY
# -----------------------------
@bot.event
async def on_ready():
    """Bot ready event handler."""
    stats = game_log.get_stats()
    log.info("Logged in as %s (%s rounds logged, %s in progress)",
             bot.user, stats['total_rounds'], stats['open_rounds'])


@bot.event
async def on_command_error(ctx, error):
    """Global error handler for commands."""
    if isinstance(error, commands.MissingRequiredArgument):
        await ctx.send(f"❌ Missing required argument: {error.param.name}")
    elif isinstance(error, commands.BadArgument):
        await ctx.send(f"❌ Invalid argument: {str(error)}")
    elif isinstance(error, commands.CommandNotFound):
        # Silently ignore command not found errors
        pass
    else:
        log.error("Error in command %s", ctx.command, exc_info=error)
        await ctx.send("❌ An unexpected error occurred. Please try again.")


def main():
    if config.DISCORD_BOT_TOKEN == config.PLACEHOLDER_TOKEN:
        log.warning("Using placeholder bot token. Set DISCORD_BOT_TOKEN environment variable.")
    try:
        bot.run(config.DISCORD_BOT_TOKEN, log_handler=None)
    finally:
        conn.close()


if __name__ == "__main__":
    main()
