"""
Bot configuration.
Values come from the environment (or a .env file next to the bot).
"""

import os

from dotenv import load_dotenv

load_dotenv()

PLACEHOLDER_TOKEN = "YOUR_BOT_TOKEN_HERE"


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _house_edge_env(name: str, default: float) -> float:
    edge = _float_env(name, default)
    if not 0 < edge < 1:
        raise ValueError(f"{name} must be between 0 and 1 (exclusive), got {edge}")
    return edge


# -----------------------------
# DISCORD
# -----------------------------
DISCORD_BOT_TOKEN = os.getenv("DISCORD_BOT_TOKEN", PLACEHOLDER_TOKEN)
COMMAND_PREFIX = os.getenv("COMMAND_PREFIX", "!")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# -----------------------------
# STORAGE
# -----------------------------
FAIR_DB_PATH = os.getenv("FAIR_DB_PATH", "bot.db")
HISTORY_LIMIT = 10

# -----------------------------
# GAME PARAMETERS
# -----------------------------
# Changing an edge changes payouts and replayed crash/chicken results.
CRASH_HOUSE_EDGE = _house_edge_env("CRASH_HOUSE_EDGE", 0.01)
MINES_HOUSE_EDGE = _house_edge_env("MINES_HOUSE_EDGE", 0.02)
CHICKEN_HOUSE_EDGE = _house_edge_env("CHICKEN_HOUSE_EDGE", 0.02)

# "independent" (version 1) or "shuffled" (version 2)
BLACKJACK_DECK_MODE = os.getenv("BLACKJACK_DECK_MODE", "independent").lower()
if BLACKJACK_DECK_MODE not in ("independent", "shuffled"):
    raise ValueError(f"BLACKJACK_DECK_MODE must be 'independent' or 'shuffled', got {BLACKJACK_DECK_MODE!r}")
