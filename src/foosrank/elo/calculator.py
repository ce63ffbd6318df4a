"""
Elo rating calculator for doubles games.

Both teams are rated by the mean of their two players. The expected
outcome for team A follows the standard logistic curve:

  Team strength:   T = (R_front + R_back) / 2
  Expected score:  E_A = 1 / (10^((T_B - T_A) / 400) + 1)
  Raw delta:       D = G * (actual - E_A)
  Player update:   R'_i = R_i + K_i * D     (team A)
                   R'_i = R_i - K_i * D     (team B)

Where:
  actual = 1.0 for a team A win, 0.0 for a loss, 0.5 for a draw
  G      = goal-difference factor (see goal_factor)
  K_i    = the player's own K, based on how many games they have
           already played in this replay

Draws are not neutral: unless both teams are exactly equal, the weaker
team gains rating from a draw.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from foosrank.elo.constants import (
    GOAL_FACTOR_MAX,
    GOAL_FACTORS,
    K_FLOOR,
    K_NEW_PLAYER_BONUS,
    K_PROVISIONAL_GAMES,
    OUTCOME_DRAW,
    OUTCOME_LOSS,
    OUTCOME_WIN,
    RATING_SPREAD,
)


@dataclass(frozen=True)
class GameUpdate:
    """
    Result of rating one game.

    `changes` holds one signed rating change per player in participant
    order (team A front, team A back, team B front, team B back).
    """
    expected: float
    actual: float
    goal_factor: float
    raw_delta: float
    k_factors: tuple[float, float, float, float]
    changes: tuple[float, float, float, float]

    @property
    def team_a_won(self) -> bool:
        return self.actual == OUTCOME_WIN

    @property
    def team_b_won(self) -> bool:
        return self.actual == OUTCOME_LOSS


def team_strength(front_rating: float, back_rating: float) -> float:
    """Team rating: the mean of its two players."""
    return (front_rating + back_rating) * 0.5


def expected_outcome(team_a: float, team_b: float) -> float:
    """
    Expected score for team A against team B, between 0 and 1.

    Example:
        expected_outcome(500.0, 500.0)  # 0.5
        expected_outcome(900.0, 500.0)  # ~0.909
    """
    try:
        return 1.0 / (10.0 ** ((team_b - team_a) / RATING_SPREAD) + 1.0)
    except OverflowError:
        # Only reachable for absurd rating gaps
        return 0.0 if team_b > team_a else 1.0


def actual_outcome(score_a: int, score_b: int) -> float:
    """Actual score for team A: 1.0 win, 0.0 loss, 0.5 draw."""
    if score_a > score_b:
        return OUTCOME_WIN
    if score_a < score_b:
        return OUTCOME_LOSS
    return OUTCOME_DRAW


def goal_factor(score_a: int, score_b: int) -> float:
    """
    Multiplier for the score margin.

    |difference| 0-2 -> 1.0, 3 -> 1.33, 4 -> 1.66, 5 or more -> 2.0
    """
    return GOAL_FACTORS.get(abs(score_a - score_b), GOAL_FACTOR_MAX)


def k_factor(games_played: int) -> float:
    """
    Per-player K based on games already played in the current replay.

    Starts at 35.0 for a player with no games and falls linearly to the
    25.0 floor at ten games. Never increases with more games.
    """
    if games_played > K_PROVISIONAL_GAMES:
        return K_FLOOR
    return (1.0 - games_played / K_PROVISIONAL_GAMES) * K_NEW_PLAYER_BONUS + K_FLOOR


def calculate_game_update(
    ratings: Sequence[float],
    games_played: Sequence[int],
    score: Sequence[int],
) -> GameUpdate:
    """
    Rate one game from the four players' pre-game state.

    Args:
        ratings: Pre-game ratings in participant order
                 (team A front, team A back, team B front, team B back)
        games_played: Games already played by each player, same order
        score: (team A score, team B score)

    Returns:
        GameUpdate with the four signed rating changes

    Raises:
        ValueError: If ratings or games_played do not hold four values

    Example:
        update = calculate_game_update(
            ratings=(500.0, 500.0, 500.0, 500.0),
            games_played=(0, 0, 0, 0),
            score=(10, 5),
        )
        update.changes  # (35.0, 35.0, -35.0, -35.0)
    """
    if len(ratings) != 4 or len(games_played) != 4:
        raise ValueError("A doubles game needs exactly four players")

    score_a, score_b = score
    expected = expected_outcome(
        team_strength(ratings[0], ratings[1]),
        team_strength(ratings[2], ratings[3]),
    )
    actual = actual_outcome(score_a, score_b)
    factor = goal_factor(score_a, score_b)
    raw_delta = factor * (actual - expected)

    k_factors = tuple(k_factor(count) for count in games_played)
    signs = (1.0, 1.0, -1.0, -1.0)
    changes = tuple(sign * k * raw_delta for sign, k in zip(signs, k_factors))

    return GameUpdate(
        expected=expected,
        actual=actual,
        goal_factor=factor,
        raw_delta=raw_delta,
        k_factors=k_factors,
        changes=changes,
    )
