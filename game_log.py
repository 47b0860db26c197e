"""
Game Round Log
--------------
Stores the commitment for every round when it starts and the revealed seed
when it ends, so players can look up and re-verify past rounds.
"""

import json
import logging
from datetime import datetime

from casino_games import GameRound

log = logging.getLogger(__name__)


class GameLog:
    """SQLite-backed log of committed and revealed rounds."""

    def __init__(self, db_connection):
        """Initialize the log with a database connection."""
        self.conn = db_connection
        self.c = db_connection.cursor()
        self._initialize_database()

    def _initialize_database(self):
        """Create the rounds table."""
        self.c.execute("""
            CREATE TABLE IF NOT EXISTS fair_rounds (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                game_type TEXT NOT NULL,
                bet_amount INTEGER NOT NULL,
                commitment_hash TEXT NOT NULL UNIQUE,
                fairness_version INTEGER NOT NULL,
                params TEXT NOT NULL,
                server_seed TEXT,
                client_seed TEXT,
                nonce TEXT,
                result TEXT,
                outcome TEXT,
                multiplier REAL,
                profit INTEGER,
                created_at TEXT NOT NULL,
                revealed_at TEXT
            )
        """)
        self.c.execute("""
            CREATE INDEX IF NOT EXISTS idx_fair_rounds_user
            ON fair_rounds (user_id, id)
        """)
        self.conn.commit()

    def log_commitment(self, game_round: GameRound) -> int:
        """
        Record a round's commitment hash before its outcome is used.

        Args:
            game_round (GameRound): The round that just started

        Returns:
            int: Row id of the round
        """
        created_at = datetime.utcnow().isoformat()
        self.c.execute("""
            INSERT INTO fair_rounds
            (user_id, game_type, bet_amount, commitment_hash, fairness_version, params, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, (
            game_round.user_id,
            game_round.game_type,
            game_round.bet_amount,
            game_round.commitment,
            game_round.version,
            json.dumps(game_round.replay_params(), sort_keys=True),
            created_at,
        ))
        self.conn.commit()
        return self.c.lastrowid

    def log_reveal(self, game_round: GameRound):
        """
        Record the revealed seed and result of a finished round.
        Raises ValueError if the round is still running or was never committed.
        """
        revealed = game_round.reveal()
        revealed_at = datetime.utcnow().isoformat()
        self.c.execute("""
            UPDATE fair_rounds
            SET server_seed = ?, client_seed = ?, nonce = ?, result = ?,
                outcome = ?, multiplier = ?, profit = ?, bet_amount = ?, revealed_at = ?
            WHERE commitment_hash = ? AND revealed_at IS NULL
        """, (
            revealed['server_seed'],
            revealed['client_seed'],
            str(revealed['nonce']),
            game_round.result,
            json.dumps(game_round.outcome, ensure_ascii=False),
            game_round.multiplier,
            game_round.profit,
            game_round.bet_amount,
            revealed_at,
            revealed['expected_hash'],
        ))
        if self.c.rowcount == 0:
            self.conn.rollback()
            raise ValueError(f"No open round with commitment {revealed['expected_hash']}")
        self.conn.commit()
        log.info("Revealed %s round %s", game_round.game_type, revealed['expected_hash'])

    def get_round(self, commitment_hash: str):
        """
        Look up a round by its commitment hash.

        Returns:
            dict: The round record or None
        """
        self.c.execute("""
            SELECT id, user_id, game_type, bet_amount, commitment_hash, fairness_version, params,
                   server_seed, client_seed, nonce, result, outcome, multiplier, profit,
                   created_at, revealed_at
            FROM fair_rounds
            WHERE commitment_hash = ?
        """, ((commitment_hash or '').lower(),))
        row = self.c.fetchone()
        return self._row_to_dict(row) if row else None

    def get_user_history(self, user_id, limit=10):
        """
        Get a user's most recent rounds, newest first.

        Args:
            user_id (int): Discord user ID
            limit (int): Maximum number of rounds to return

        Returns:
            list: List of round dicts
        """
        self.c.execute("""
            SELECT id, user_id, game_type, bet_amount, commitment_hash, fairness_version, params,
                   server_seed, client_seed, nonce, result, outcome, multiplier, profit,
                   created_at, revealed_at
            FROM fair_rounds
            WHERE user_id = ?
            ORDER BY id DESC
            LIMIT ?
        """, (user_id, limit))
        return [self._row_to_dict(row) for row in self.c.fetchall()]

    def get_stats(self):
        """Round counts for the log."""
        self.c.execute("SELECT COUNT(*) FROM fair_rounds")
        total_rounds = self.c.fetchone()[0]

        self.c.execute("SELECT COUNT(*) FROM fair_rounds WHERE revealed_at IS NOT NULL")
        revealed_rounds = self.c.fetchone()[0]

        self.c.execute("SELECT COUNT(DISTINCT user_id) FROM fair_rounds")
        total_users = self.c.fetchone()[0]

        return {
            'total_rounds': total_rounds,
            'revealed_rounds': revealed_rounds,
            'open_rounds': total_rounds - revealed_rounds,
            'total_users': total_users,
        }

    @staticmethod
    def _row_to_dict(row):
        (round_id, user_id, game_type, bet_amount, commitment, version, params,
         server_seed, client_seed, nonce, result, outcome, multiplier, profit,
         created_at, revealed_at) = row
        return {
            'id': round_id,
            'user_id': user_id,
            'game_type': game_type,
            'bet_amount': bet_amount,
            'commitment_hash': commitment,
            'fairness_version': version,
            'params': json.loads(params),
            'server_seed': server_seed,
            'client_seed': client_seed,
            'nonce': nonce,
            'result': result,
            'outcome': json.loads(outcome) if outcome else None,
            'multiplier': multiplier,
            'profit': profit,
            'created_at': created_at,
            'revealed_at': revealed_at,
        }
