"""
Elo rating module.

Implements doubles ratings rebuilt by full replay:
- Team strength as the mean of both players' ratings
- Goal-difference scaling (blowouts move ratings more)
- Per-player K-factor that decays over a player's first ten games
- Atomic reset-and-replay of the rating ledger
"""

from foosrank.elo.calculator import (
    GameUpdate,
    actual_outcome,
    calculate_game_update,
    expected_outcome,
    goal_factor,
    k_factor,
    team_strength,
)
from foosrank.elo.constants import BASELINE_RATING
from foosrank.elo.ledger import (
    LeaderboardRow,
    LedgerEntry,
    LedgerIntegrityError,
    apply_ledger_delta,
    read_leaderboard,
    read_ledger_entry,
    read_ledger_snapshot,
    reset_ledger,
)
from foosrank.elo.recompute import RatingRecomputer

__all__ = [
    "GameUpdate",
    "actual_outcome",
    "calculate_game_update",
    "expected_outcome",
    "goal_factor",
    "k_factor",
    "team_strength",
    "BASELINE_RATING",
    "LeaderboardRow",
    "LedgerEntry",
    "LedgerIntegrityError",
    "apply_ledger_delta",
    "read_leaderboard",
    "read_ledger_entry",
    "read_ledger_snapshot",
    "reset_ledger",
    "RatingRecomputer",
]
