"""
Provably Fair Engine
--------------------
Commit-reveal outcome generation for every casino game.

System Overview:
- Each round gets a fresh seed: server_seed, client_seed and a millisecond nonce
- The commitment hash SHA256(server_seed + client_seed + nonce) is shown first
- Every outcome is derived from SHA256(commitment_hash + index)
- The seed is revealed when the round ends so anyone can replay it

Frozen derivation scheme (FAIRNESS_VERSION 1):
- coinflip      index 0
- crash         index 0, r = uniform(1, 10000) / 10000
- slots         indices 0..8, row-major 3x3 grid
- blackjack     card i uses index i (independent draws)
- mines         indices 100, 101, ... one per draw attempt
- towers        index 200 + level * 1000 + attempt
- chicken run   index 50

Version 2 only changes blackjack: a Fisher-Yates shuffled deck using
index 500 + k for swap k.
"""

import hashlib
import hmac
import logging
import math
import secrets
import string
import time
from typing import Dict, List, NamedTuple, Optional

log = logging.getLogger(__name__)

FAIRNESS_VERSION = 1
SHUFFLED_DECK_VERSION = 2

MAX_HASH_SLICE = 0xFFFFFFFF
HEX_DIGITS = frozenset(string.hexdigits)

# Index bases
COINFLIP_INDEX = 0
CRASH_INDEX = 0
CHICKEN_RUN_INDEX = 50
MINES_INDEX_BASE = 100
TOWERS_INDEX_BASE = 200
TOWERS_LEVEL_STRIDE = 1000
SHUFFLE_INDEX_BASE = 500

# Changing the order of these tables changes every historical result.
SLOT_SYMBOLS = ['🍒', '🍋', '🍊', '🍉', '⭐', '🔔', '7️⃣']
CARD_SUITS = ['♠', '♥', '♦', '♣']
CARD_RANKS = ['A', '2', '3', '4', '5', '6', '7', '8', '9', '10', 'J', 'Q', 'K']

DEFAULT_MINES_BOARD_SIZE = 25
TOWER_LEVELS = 8
TOWER_DIFFICULTIES = {
    'easy': (4, 1),    # (slots per level, mines per level)
    'medium': (3, 1),
    'hard': (3, 2),
}

CRASH_MIN_MULTIPLIER = 1.01
CRASH_MAX_MULTIPLIER = 1000.0
CHICKEN_RUN_MAX_STEPS = 10

GAME_TYPES = ('coinflip', 'crash', 'slots', 'blackjack', 'mines', 'towers', 'chickenrun')


class Seed(NamedTuple):
    """One committed seed. Immutable, used by exactly one round."""
    server_seed: str
    client_seed: str
    nonce: int
    hash: str


# -----------------------------
# SEED COMMITMENT
# -----------------------------
def commitment_hash(server_seed: str, client_seed: str, nonce) -> str:
    """
    Hash the seed triple.

    Args:
        server_seed (str): The secret server seed
        client_seed (str): The client seed
        nonce (int | str): The round nonce

    Returns:
        str: SHA256 hex digest of server_seed + client_seed + str(nonce)
    """
    message = f"{server_seed}{client_seed}{nonce}"
    return hashlib.sha256(message.encode()).hexdigest()


def create_seed() -> Seed:
    """
    Generate a new seed for one round.

    Uses the OS CSPRNG via ``secrets``. If it is unavailable the error
    propagates; there is no fallback generator.

    Returns:
        Seed: server seed (64 hex chars), client seed (32 hex chars),
        millisecond nonce and the commitment hash
    """
    server_seed = secrets.token_hex(32)  # 32 bytes = 64 hex characters
    client_seed = secrets.token_hex(16)  # 16 bytes = 32 hex characters
    nonce = time.time_ns() // 1_000_000
    seed = Seed(server_seed, client_seed, nonce, commitment_hash(server_seed, client_seed, nonce))
    log.debug("Created seed with commitment %s", seed.hash)
    return seed


# -----------------------------
# DERIVATION
# -----------------------------
def derive_uniform(seed: Seed, index: int, minimum: int, maximum: int) -> int:
    """
    Derive one integer in [minimum, maximum] from the outcome stream.

    Algorithm:
    1. h = SHA256(seed.hash + str(index))
    2. Take the first 8 hex characters of h as an unsigned 32-bit integer
    3. Divide by 0xFFFFFFFF
    4. floor(r * (maximum - minimum + 1)) + minimum

    A slice of ffffffff gives r == 1.0, which is clamped to maximum.

    Args:
        seed (Seed): The committed seed
        index (int): Position in the outcome stream
        minimum (int): Lowest value (inclusive)
        maximum (int): Highest value (inclusive)

    Returns:
        int: The derived value
    """
    if minimum > maximum:
        raise ValueError(f"Invalid range: minimum {minimum} is greater than maximum {maximum}")
    if index < 0:
        raise ValueError(f"Invalid index: {index}")

    digest = hashlib.sha256(f"{seed.hash}{index}".encode()).hexdigest()
    normalized = int(digest[:8], 16) / MAX_HASH_SLICE
    value = math.floor(normalized * (maximum - minimum + 1)) + minimum
    return min(value, maximum)


def derive_array(seed: Seed, count: int, minimum: int, maximum: int) -> List[int]:
    """Derive ``count`` values using indices 0..count-1."""
    return [derive_uniform(seed, i, minimum, maximum) for i in range(count)]


def derive_unit(seed: Seed, index: int) -> float:
    """Derive r in (0, 1] with 1/10000 resolution."""
    return derive_uniform(seed, index, 1, 10000) / 10000


def _distinct_positions(seed: Seed, count: int, size: int, index_base: int) -> List[int]:
    """Reject-and-retry draw of ``count`` distinct cells out of ``size``."""
    if count < 0 or count >= size:
        raise ValueError(f"Cannot place {count} mines on a board of {size} cells")

    positions = []
    used = set()
    index = index_base
    while len(positions) < count:
        position = derive_uniform(seed, index, 0, size - 1)
        index += 1
        if position in used:
            continue
        used.add(position)
        positions.append(position)
    return sorted(positions)


# -----------------------------
# GAME GENERATORS
# -----------------------------
def card_from_value(value: int) -> str:
    """Map 0..51 to a card string such as 'A♠'."""
    return f"{CARD_RANKS[value % 13]}{CARD_SUITS[value // 13]}"


def generate_blackjack_cards(seed: Seed, count: int = 52) -> List[str]:
    """
    Generate the blackjack card stream.

    Each card is an independent draw, so a hand may contain the same card
    twice. Card i uses stream index i.
    """
    return [card_from_value(derive_uniform(seed, i, 0, 51)) for i in range(count)]


def generate_shuffled_deck(seed: Seed) -> List[str]:
    """
    Shuffle one 52-card deck with Fisher-Yates.

    Swap k (position 51 - k with a position in [0, 51 - k]) uses stream
    index 500 + k. Cards come out without replacement.
    """
    deck = list(range(52))
    for k, i in enumerate(range(51, 0, -1)):
        j = derive_uniform(seed, SHUFFLE_INDEX_BASE + k, 0, i)
        deck[i], deck[j] = deck[j], deck[i]
    return [card_from_value(value) for value in deck]


def generate_mines_positions(seed: Seed, mine_count: int,
                             board_size: int = DEFAULT_MINES_BOARD_SIZE) -> List[int]:
    """
    Place mines on a board.

    Args:
        seed (Seed): The committed seed
        mine_count (int): Number of mines, 0 <= mine_count < board_size
        board_size (int): Number of tiles (25 for the 5x5 board)

    Returns:
        list: Sorted distinct mine positions in [0, board_size)
    """
    return _distinct_positions(seed, mine_count, board_size, MINES_INDEX_BASE)


def tower_layout(difficulty: str):
    """Return (slots per level, mines per level); unknown difficulty plays as easy."""
    return TOWER_DIFFICULTIES.get(difficulty, TOWER_DIFFICULTIES['easy'])


def generate_tower_mines(seed: Seed, difficulty: str) -> Dict[int, List[int]]:
    """
    Place the mines for each of the 8 tower levels.

    Returns:
        dict: {level: sorted mine slots}
    """
    slots, mines = tower_layout(difficulty)
    return {
        level: _distinct_positions(seed, mines, slots, TOWERS_INDEX_BASE + level * TOWERS_LEVEL_STRIDE)
        for level in range(TOWER_LEVELS)
    }


def generate_crash_multiplier(seed: Seed, house_edge: float = 0.01) -> float:
    """
    Derive the crash point.

    crash = floor(1 / (1 - r * (1 - house_edge)) * 100) / 100,
    clamped to [1.01, 1000].
    """
    r = derive_unit(seed, CRASH_INDEX)
    denominator = 1 - r * (1 - house_edge)
    if denominator <= 0:
        return CRASH_MAX_MULTIPLIER
    crash_point = math.floor((1 / denominator) * 100) / 100
    return max(CRASH_MIN_MULTIPLIER, min(CRASH_MAX_MULTIPLIER, crash_point))


def generate_slot_results(seed: Seed) -> List[str]:
    """Generate 9 slot symbols, row-major for a 3x3 grid."""
    return [SLOT_SYMBOLS[derive_uniform(seed, i, 0, len(SLOT_SYMBOLS) - 1)] for i in range(9)]


def generate_coinflip_result(seed: Seed) -> str:
    """Return 'heads' or 'tails'."""
    return 'heads' if derive_uniform(seed, COINFLIP_INDEX, 0, 1) == 0 else 'tails'


def chicken_multiplier(steps: int) -> float:
    """
    Multiplier after ``steps`` forward moves.

    Step k adds 0.15 + 0.05 * k, so m(k) = 1 + 0.15k + 0.025k(k+1).
    """
    return round(1 + 0.15 * steps + 0.025 * steps * (steps + 1), 2)


def generate_chicken_run_step(seed: Seed, house_edge: float = 0.02) -> Optional[int]:
    """
    Derive the step on which the chicken gets caught.

    Surviving to step k has probability (1 - house_edge) / m(k), so the
    crash step is the first k with r > (1 - house_edge) / m(k).

    Returns:
        int | None: Crash step in 1..10, or None when the run survives all steps
    """
    r = derive_unit(seed, CHICKEN_RUN_INDEX)
    for step in range(1, CHICKEN_RUN_MAX_STEPS + 1):
        if r > (1 - house_edge) / chicken_multiplier(step):
            return step
    return None


def generate_chicken_run_multiplier(seed: Seed, house_edge: float = 0.02) -> float:
    """Multiplier threshold at which the run crashes (inf if it never does)."""
    step = generate_chicken_run_step(seed, house_edge)
    if step is None:
        return math.inf
    return chicken_multiplier(step)


# -----------------------------
# VERIFICATION
# -----------------------------
def _is_hex(value) -> bool:
    if not isinstance(value, str) or not value:
        return False
    return all(ch in HEX_DIGITS for ch in value)


def _normalize_nonce(nonce) -> Optional[str]:
    if isinstance(nonce, bool):
        return None
    if isinstance(nonce, int):
        return str(nonce)
    if isinstance(nonce, str) and nonce.isascii() and nonce.isdigit():
        return nonce
    return None


def verify_seed(server_seed, client_seed, nonce, expected_hash) -> bool:
    """
    Check that a revealed seed matches its commitment hash.

    Never raises: malformed seeds, nonces or hashes simply return False.

    Args:
        server_seed (str): Revealed server seed
        client_seed (str): Revealed client seed
        nonce (int | str): Revealed nonce
        expected_hash (str): Commitment hash shown before the round

    Returns:
        bool: True if the hash matches
    """
    nonce_text = _normalize_nonce(nonce)
    if nonce_text is None or not _is_hex(server_seed) or not _is_hex(client_seed):
        return False
    if not _is_hex(expected_hash):
        return False

    actual = commitment_hash(server_seed, client_seed, nonce_text)
    return hmac.compare_digest(actual, expected_hash.lower())


def seed_from_reveal(server_seed, client_seed, nonce, expected_hash) -> Optional[Seed]:
    """Rebuild a Seed from revealed values, or None if they do not verify."""
    if not verify_seed(server_seed, client_seed, nonce, expected_hash):
        return None
    return Seed(server_seed, client_seed, int(nonce), expected_hash.lower())


def replay_outcome(seed: Seed, game_type: str, mine_count: Optional[int] = None,
                   difficulty: Optional[str] = None,
                   version: int = FAIRNESS_VERSION,
                   house_edge: Optional[float] = None):
    """
    Recompute the outcome a round produced.

    Args:
        seed (Seed): Verified seed
        game_type (str): One of GAME_TYPES
        mine_count (int): Mine count (mines only)
        difficulty (str): Difficulty (towers only)
        version (int): Fairness version (blackjack deck mode)
        house_edge (float): Edge the round used (crash and chicken run)

    Returns:
        Game-shaped result: mine list, tower map, symbol list, card list,
        crash multiplier, coin side, or chicken run crash step
    """
    game_type = (game_type or '').lower()
    if game_type == 'mines':
        if mine_count is None:
            raise ValueError("Mines replay needs the mine count")
        return generate_mines_positions(seed, mine_count)
    if game_type == 'towers':
        return generate_tower_mines(seed, difficulty or 'easy')
    if game_type == 'slots':
        return generate_slot_results(seed)
    if game_type == 'crash':
        return generate_crash_multiplier(seed, 0.01 if house_edge is None else house_edge)
    if game_type == 'coinflip':
        return generate_coinflip_result(seed)
    if game_type == 'blackjack':
        if version == SHUFFLED_DECK_VERSION:
            return generate_shuffled_deck(seed)
        return generate_blackjack_cards(seed)
    if game_type == 'chickenrun':
        return generate_chicken_run_step(seed, 0.02 if house_edge is None else house_edge)
    raise ValueError(f"Unknown game type: {game_type}")


def verify_outcome(server_seed, client_seed, nonce, expected_hash, game_type: str,
                   displayed, **params) -> bool:
    """
    Verify the commitment and that ``displayed`` is what the seed produces.

    ``params`` are passed to replay_outcome (mine_count, difficulty, version, house_edge).
    """
    seed = seed_from_reveal(server_seed, client_seed, nonce, expected_hash)
    if seed is None:
        return False
    return replay_outcome(seed, game_type, **params) == displayed
