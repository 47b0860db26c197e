"""
Payout Tables Module
Multiplier curves and hand scoring for each game.
"""

import math
from typing import List, Tuple

from provably_fair import tower_layout

MINES_TOTAL_TILES = 25
MIN_MINES_MULTIPLIER = 1.01

COINFLIP_MULTIPLIER = 2.0
BLACKJACK_PAYOUT = 2.0         # returned on a win, stake included
NATURAL_BLACKJACK_PAYOUT = 2.5  # 3:2


def floor2(value: float) -> float:
    """Round down to 2 decimals."""
    return math.floor(value * 100) / 100


# -----------------------------
# MINES / TOWERS
# -----------------------------
def calculate_mines_multiplier(mine_count: int, tiles_revealed: int,
                               house_edge: float = 0.02,
                               total_tiles: int = MINES_TOTAL_TILES) -> float:
    """
    Cash-out multiplier after revealing ``tiles_revealed`` safe tiles.

    Fair odds are the product of total_remaining / safe_remaining for each
    reveal; the house edge is taken off the result.
    """
    if tiles_revealed == 0:
        return 1.0

    safe_tiles = total_tiles - mine_count
    if tiles_revealed > safe_tiles:
        raise ValueError(f"Only {safe_tiles} safe tiles with {mine_count} mines")

    multiplier = 1.0
    for i in range(tiles_revealed):
        multiplier *= (total_tiles - i) / (safe_tiles - i)

    multiplier *= 1 - house_edge
    return max(MIN_MINES_MULTIPLIER, floor2(multiplier))


TOWER_BASE_MULTIPLIERS = {
    'easy': 1.25,    # 4 slots, 1 mine (3/4 chance)
    'medium': 1.41,  # 3 slots, 1 mine (2/3 chance)
    'hard': 2.12,    # 3 slots, 2 mines (1/3 chance)
}


def calculate_tower_multiplier(difficulty: str, level: int, house_edge: float = 0.02) -> float:
    """Multiplier for having cleared levels 0..level (level -1 means none)."""
    if level < 0:
        return 1.0
    base = TOWER_BASE_MULTIPLIERS.get(difficulty, TOWER_BASE_MULTIPLIERS['easy'])
    return floor2(base ** (level + 1) * (1 - house_edge))


def tower_slots(difficulty: str) -> int:
    return tower_layout(difficulty)[0]


# -----------------------------
# SLOTS
# -----------------------------
def evaluate_slots(results: List[str]) -> Tuple[float, List[str]]:
    """
    Score a 9-symbol slot result.

    Rules, first match wins:
    - 7️⃣ in the centre: x5
    - either diagonal of three: x3
    - top row of three: x2

    Returns:
        tuple: (multiplier, list of winning pattern descriptions)
    """
    if len(results) != 9:
        raise ValueError(f"Slots needs 9 symbols, got {len(results)}")

    if results[4] == '7️⃣':
        return 5.0, ["Centre 7️⃣"]
    if results[0] == results[4] == results[8]:
        return 3.0, [f"Diagonal \\: {results[0]}{results[4]}{results[8]}"]
    if results[2] == results[4] == results[6]:
        return 3.0, [f"Diagonal /: {results[2]}{results[4]}{results[6]}"]
    if results[0] == results[1] == results[2]:
        return 2.0, [f"Row 1: {results[0]}{results[1]}{results[2]}"]
    return 0.0, []


def slot_grid(results: List[str]) -> List[List[str]]:
    """Reshape 9 symbols into 3 rows."""
    return [results[0:3], results[3:6], results[6:9]]


# -----------------------------
# BLACKJACK
# -----------------------------
def card_value(card: str) -> int:
    """Get numerical value of a card (aces count 11 here)"""
    rank = card[:-1]
    if rank in ['J', 'Q', 'K']:
        return 10
    elif rank == 'A':
        return 11
    else:
        return int(rank)


def hand_value(hand: List[str]) -> int:
    """Calculate total value of a hand, adjusting for Aces"""
    total = sum(card_value(card) for card in hand)
    aces = sum(1 for card in hand if card[:-1] == 'A')

    while total > 21 and aces > 0:
        total -= 10
        aces -= 1

    return total


def is_natural(hand: List[str]) -> bool:
    return len(hand) == 2 and hand_value(hand) == 21


def payout(bet_amount: int, multiplier: float) -> int:
    """Credits returned for a stake at a multiplier."""
    return int(math.floor(bet_amount * multiplier))
