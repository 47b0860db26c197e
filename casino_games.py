"""
Casino Games Module
Round state for every game. Each round owns one committed seed, consumes
its outcome stream in order and reveals the seed once it is over.
"""

import logging
from typing import Dict, List, Optional

import config
from payouts import (
    BLACKJACK_PAYOUT,
    COINFLIP_MULTIPLIER,
    NATURAL_BLACKJACK_PAYOUT,
    calculate_mines_multiplier,
    calculate_tower_multiplier,
    evaluate_slots,
    hand_value,
    is_natural,
    payout,
    tower_slots,
)
from provably_fair import (
    CHICKEN_RUN_MAX_STEPS,
    DEFAULT_MINES_BOARD_SIZE,
    FAIRNESS_VERSION,
    SHUFFLED_DECK_VERSION,
    TOWER_LEVELS,
    Seed,
    chicken_multiplier,
    create_seed,
    generate_blackjack_cards,
    generate_chicken_run_step,
    generate_coinflip_result,
    generate_crash_multiplier,
    generate_mines_positions,
    generate_shuffled_deck,
    generate_slot_results,
    generate_tower_mines,
)

log = logging.getLogger(__name__)


class RoundResult:
    """Constants for round results."""
    WIN = "win"
    LOSS = "loss"
    PUSH = "push"
    BLACKJACK = "blackjack"


class GameRound:
    """Common state for one betting round."""

    game_type = ""

    def __init__(self, user_id: int, bet_amount: int, seed: Optional[Seed] = None):
        if bet_amount <= 0:
            raise ValueError("Bet amount must be positive")
        self.user_id = user_id
        self.bet_amount = bet_amount
        self.seed = seed or create_seed()
        self.version = FAIRNESS_VERSION
        self.active = True
        self.result: Optional[str] = None
        self.multiplier = 0.0

    @property
    def commitment(self) -> str:
        """Hash shown to the player before the outcome is used."""
        return self.seed.hash

    @property
    def winnings(self) -> int:
        """Credits returned to the player, stake included."""
        if self.active:
            return 0
        return payout(self.bet_amount, self.multiplier)

    @property
    def profit(self) -> int:
        return self.winnings - self.bet_amount

    def _require_active(self):
        if not self.active:
            raise ValueError("This round is already over")

    def _finish(self, result: str, multiplier: float):
        self.active = False
        self.result = result
        self.multiplier = multiplier
        log.info("%s round for %s finished: %s x%.2f (commitment %s)",
                 self.game_type, self.user_id, result, multiplier, self.seed.hash)

    def reveal(self) -> Dict:
        """Disclose the seed. Only allowed after the round is over."""
        if self.active:
            raise ValueError("The seed is revealed when the round ends")
        return {
            'server_seed': self.seed.server_seed,
            'client_seed': self.seed.client_seed,
            'nonce': self.seed.nonce,
            'expected_hash': self.seed.hash,
        }

    def replay_params(self) -> Dict:
        """Keyword arguments replay_outcome needs for this round."""
        return {}

    @property
    def outcome(self):
        """The outcome replay_outcome reproduces for this round."""
        raise NotImplementedError


# -----------------------------
# COINFLIP
# -----------------------------
class CoinflipRound(GameRound):
    """Pick heads or tails, win x2."""

    game_type = "coinflip"

    def __init__(self, user_id: int, bet_amount: int, choice: str, seed: Optional[Seed] = None):
        choice = (choice or "").lower()
        if choice in ("h", "head"):
            choice = "heads"
        elif choice in ("t", "tail"):
            choice = "tails"
        if choice not in ("heads", "tails"):
            raise ValueError("Choose heads or tails")
        super().__init__(user_id, bet_amount, seed)
        self.choice = choice
        self.side = generate_coinflip_result(self.seed)
        if self.side == choice:
            self._finish(RoundResult.WIN, COINFLIP_MULTIPLIER)
        else:
            self._finish(RoundResult.LOSS, 0.0)

    @property
    def outcome(self):
        return self.side


# -----------------------------
# SLOTS
# -----------------------------
class SlotsRound(GameRound):
    """One spin of the 3x3 machine."""

    game_type = "slots"

    def __init__(self, user_id: int, bet_amount: int, seed: Optional[Seed] = None):
        super().__init__(user_id, bet_amount, seed)
        self.symbols = generate_slot_results(self.seed)
        multiplier, self.patterns = evaluate_slots(self.symbols)
        self._finish(RoundResult.WIN if multiplier > 0 else RoundResult.LOSS, multiplier)

    @property
    def outcome(self):
        return self.symbols


# -----------------------------
# CRASH
# -----------------------------
class CrashRound(GameRound):
    """
    The multiplier climbs from 1.00x until the committed crash point.
    Cashing out below the crash point wins bet x multiplier.
    """

    game_type = "crash"

    def __init__(self, user_id: int, bet_amount: int, seed: Optional[Seed] = None,
                 house_edge: float = None):
        super().__init__(user_id, bet_amount, seed)
        self.house_edge = config.CRASH_HOUSE_EDGE if house_edge is None else house_edge
        self.crash_point = generate_crash_multiplier(self.seed, self.house_edge)

    def has_crashed(self, current_multiplier: float) -> bool:
        return current_multiplier >= self.crash_point

    def cash_out(self, current_multiplier: float) -> bool:
        """
        Cash out at ``current_multiplier``.

        Returns:
            bool: True if the cash-out beat the crash, False if it had crashed
        """
        self._require_active()
        if current_multiplier < 1.0:
            raise ValueError("Multiplier cannot be below 1.00x")
        if self.has_crashed(current_multiplier):
            self._finish(RoundResult.LOSS, 0.0)
            return False
        self._finish(RoundResult.WIN, round(current_multiplier, 2))
        return True

    def crash(self):
        """The multiplier reached the crash point before a cash-out."""
        self._require_active()
        self._finish(RoundResult.LOSS, 0.0)

    def replay_params(self) -> Dict:
        return {'house_edge': self.house_edge}

    @property
    def outcome(self):
        return self.crash_point


# -----------------------------
# MINES
# -----------------------------
class MinesRound(GameRound):
    """Reveal tiles on a 5x5 board, avoid the mines, cash out any time."""

    game_type = "mines"

    def __init__(self, user_id: int, bet_amount: int, mine_count: int,
                 seed: Optional[Seed] = None, house_edge: float = None):
        if not 1 <= mine_count < DEFAULT_MINES_BOARD_SIZE:
            raise ValueError(f"Mine count must be between 1 and {DEFAULT_MINES_BOARD_SIZE - 1}")
        super().__init__(user_id, bet_amount, seed)
        self.mine_count = mine_count
        self.house_edge = config.MINES_HOUSE_EDGE if house_edge is None else house_edge
        self.mine_positions = generate_mines_positions(self.seed, mine_count)
        self.revealed_tiles: List[int] = []

    @property
    def safe_revealed(self) -> int:
        return sum(1 for tile in self.revealed_tiles if tile not in self.mine_positions)

    @property
    def current_multiplier(self) -> float:
        return calculate_mines_multiplier(self.mine_count, self.safe_revealed, self.house_edge)

    def reveal_tile(self, position: int) -> bool:
        """
        Reveal one tile.

        Returns:
            bool: True if the tile was safe, False if it was a mine
        """
        self._require_active()
        if not 0 <= position < DEFAULT_MINES_BOARD_SIZE:
            raise ValueError(f"Tile must be between 0 and {DEFAULT_MINES_BOARD_SIZE - 1}")
        if position in self.revealed_tiles:
            raise ValueError("Tile already revealed!")

        self.revealed_tiles.append(position)
        if position in self.mine_positions:
            self._finish(RoundResult.LOSS, 0.0)
            return False

        # Every safe tile found
        if self.safe_revealed == DEFAULT_MINES_BOARD_SIZE - self.mine_count:
            self._finish(RoundResult.WIN, self.current_multiplier)
        return True

    def cash_out(self) -> float:
        self._require_active()
        if self.safe_revealed == 0:
            raise ValueError("Reveal at least one tile before cashing out")
        multiplier = self.current_multiplier
        self._finish(RoundResult.WIN, multiplier)
        return multiplier

    def replay_params(self) -> Dict:
        return {'mine_count': self.mine_count}

    @property
    def outcome(self):
        return self.mine_positions


# -----------------------------
# TOWERS
# -----------------------------
class TowersRound(GameRound):
    """Climb 8 levels by picking a safe slot on each one."""

    game_type = "towers"

    def __init__(self, user_id: int, bet_amount: int, difficulty: str = "easy",
                 seed: Optional[Seed] = None, house_edge: float = None):
        difficulty = (difficulty or "easy").lower()
        if difficulty not in ("easy", "medium", "hard"):
            raise ValueError("Difficulty must be easy, medium or hard")
        super().__init__(user_id, bet_amount, seed)
        self.difficulty = difficulty
        self.house_edge = config.MINES_HOUSE_EDGE if house_edge is None else house_edge
        self.mine_positions = generate_tower_mines(self.seed, difficulty)
        self.current_level = 0
        self.picks: List[int] = []

    @property
    def current_multiplier(self) -> float:
        return calculate_tower_multiplier(self.difficulty, self.current_level - 1, self.house_edge)

    def climb(self, slot: int) -> bool:
        """
        Pick a slot on the current level.

        Returns:
            bool: True if the slot was safe
        """
        self._require_active()
        slots = tower_slots(self.difficulty)
        if not 0 <= slot < slots:
            raise ValueError(f"Slot must be between 0 and {slots - 1}")

        self.picks.append(slot)
        if slot in self.mine_positions[self.current_level]:
            self._finish(RoundResult.LOSS, 0.0)
            return False

        self.current_level += 1
        if self.current_level == TOWER_LEVELS:
            self._finish(RoundResult.WIN, self.current_multiplier)
        return True

    def cash_out(self) -> float:
        self._require_active()
        if self.current_level == 0:
            raise ValueError("Clear at least one level before cashing out")
        multiplier = self.current_multiplier
        self._finish(RoundResult.WIN, multiplier)
        return multiplier

    def replay_params(self) -> Dict:
        return {'difficulty': self.difficulty}

    @property
    def outcome(self):
        return self.mine_positions


# -----------------------------
# BLACKJACK
# -----------------------------
class BlackjackRound(GameRound):
    """
    Blackjack against a dealer who stands on 17.
    Player gets stream cards 0 and 2, dealer 1 and 3; later cards follow in order.
    """

    game_type = "blackjack"

    def __init__(self, user_id: int, bet_amount: int, seed: Optional[Seed] = None,
                 deck_mode: str = None):
        super().__init__(user_id, bet_amount, seed)
        deck_mode = deck_mode or config.BLACKJACK_DECK_MODE
        if deck_mode == "shuffled":
            self.version = SHUFFLED_DECK_VERSION
            self.cards = generate_shuffled_deck(self.seed)
        else:
            self.cards = generate_blackjack_cards(self.seed)
        self.player_hand = [self.cards[0], self.cards[2]]
        self.dealer_hand = [self.cards[1], self.cards[3]]
        self.card_index = 4
        self.can_double = True

        if is_natural(self.player_hand):
            if is_natural(self.dealer_hand):
                self._finish(RoundResult.PUSH, 1.0)
            else:
                self._finish(RoundResult.BLACKJACK, NATURAL_BLACKJACK_PAYOUT)

    def deal_card(self) -> str:
        """Take the next card from the stream"""
        if self.card_index >= len(self.cards):
            raise ValueError("The card stream for this round is used up")
        card = self.cards[self.card_index]
        self.card_index += 1
        return card

    def hit(self) -> str:
        self._require_active()
        card = self.deal_card()
        self.player_hand.append(card)
        self.can_double = False
        if hand_value(self.player_hand) > 21:
            self._finish(RoundResult.LOSS, 0.0)
        return card

    def stand(self):
        self._require_active()
        self._dealer_turn()

    def double_down(self) -> str:
        """Double the stake, draw exactly one card and stand."""
        self._require_active()
        if not self.can_double:
            raise ValueError("You can only double down on your first two cards")
        self.bet_amount *= 2
        card = self.deal_card()
        self.player_hand.append(card)
        if hand_value(self.player_hand) > 21:
            self._finish(RoundResult.LOSS, 0.0)
        else:
            self._dealer_turn()
        return card

    def _dealer_turn(self):
        """Dealer draws until 17 or higher"""
        while hand_value(self.dealer_hand) < 17:
            self.dealer_hand.append(self.deal_card())

        player_value = hand_value(self.player_hand)
        dealer_value = hand_value(self.dealer_hand)
        if dealer_value > 21 or player_value > dealer_value:
            self._finish(RoundResult.WIN, BLACKJACK_PAYOUT)
        elif player_value < dealer_value:
            self._finish(RoundResult.LOSS, 0.0)
        else:
            self._finish(RoundResult.PUSH, 1.0)

    def replay_params(self) -> Dict:
        return {'version': self.version}

    @property
    def outcome(self):
        return self.cards


# -----------------------------
# CHICKEN RUN
# -----------------------------
class ChickenRunRound(GameRound):
    """Move forward step by step; the committed crash step ends the run."""

    game_type = "chickenrun"

    def __init__(self, user_id: int, bet_amount: int, seed: Optional[Seed] = None,
                 house_edge: float = None):
        super().__init__(user_id, bet_amount, seed)
        self.house_edge = config.CHICKEN_HOUSE_EDGE if house_edge is None else house_edge
        self.crash_step = generate_chicken_run_step(self.seed, self.house_edge)
        self.steps = 0

    @property
    def current_multiplier(self) -> float:
        return chicken_multiplier(self.steps)

    @property
    def crash_multiplier(self) -> Optional[float]:
        """Threshold multiplier, None if the run never crashes."""
        if self.crash_step is None:
            return None
        return chicken_multiplier(self.crash_step)

    def move_forward(self) -> bool:
        """
        Take one step.

        Returns:
            bool: False if the chicken got caught on this step
        """
        self._require_active()
        self.steps += 1
        crash_multiplier = self.crash_multiplier
        if crash_multiplier is not None and self.current_multiplier >= crash_multiplier:
            self._finish(RoundResult.LOSS, 0.0)
            return False
        if self.steps >= CHICKEN_RUN_MAX_STEPS:
            self._finish(RoundResult.WIN, self.current_multiplier)
        return True

    def cash_out(self) -> float:
        self._require_active()
        if self.steps == 0:
            raise ValueError("Move forward at least once before cashing out")
        multiplier = self.current_multiplier
        self._finish(RoundResult.WIN, multiplier)
        return multiplier

    def replay_params(self) -> Dict:
        return {'house_edge': self.house_edge}

    @property
    def outcome(self):
        return self.crash_step


# -----------------------------
# SESSION STORE
# -----------------------------
class RoundStore:
    """Active rounds keyed by user id. One active round per user per store."""

    def __init__(self):
        self.active_rounds: Dict[int, GameRound] = {}

    def start(self, game_round: GameRound) -> GameRound:
        existing = self.active_rounds.get(game_round.user_id)
        if existing is not None and existing.active:
            raise ValueError("You already have an active game! Finish it first.")
        if game_round.active:
            self.active_rounds[game_round.user_id] = game_round
        return game_round

    def get(self, user_id: int) -> Optional[GameRound]:
        return self.active_rounds.get(user_id)

    def finish(self, user_id: int) -> Optional[GameRound]:
        """Drop the user's round from the store and return it"""
        return self.active_rounds.pop(user_id, None)

    def __len__(self):
        return len(self.active_rounds)

    def __contains__(self, user_id):
        return user_id in self.active_rounds
