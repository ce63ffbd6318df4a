"""
Rating system constants.

Spread: how rating differences translate into an expected outcome. With
a spread of 400, a team 400 points stronger is expected to score ~0.91.

K factor: how far a single game moves a player's rating. New players get
a larger K so their rating settles quickly; it decays linearly to the
floor over the first ten games.

Goal factor: blowouts move ratings more than narrow results. Margins up
to two goals count as a normal result.
"""

# Rating every player starts from at the beginning of a replay
BASELINE_RATING = 500.0

# Logistic spread used by the expected-outcome curve
RATING_SPREAD = 400.0

# K-factor: floor for experienced players, plus a bonus that fades
# linearly from K_NEW_PLAYER_BONUS at zero games to nothing at
# K_PROVISIONAL_GAMES games
K_FLOOR = 25.0
K_NEW_PLAYER_BONUS = 10.0
K_PROVISIONAL_GAMES = 10

# Goal-difference scaling, keyed by absolute score difference.
# Differences beyond the table use GOAL_FACTOR_MAX.
GOAL_FACTORS = {
    0: 1.0,
    1: 1.0,
    2: 1.0,
    3: 1.33,
    4: 1.66,
}
GOAL_FACTOR_MAX = 2.0

# Actual outcome values for team 0
OUTCOME_WIN = 1.0
OUTCOME_DRAW = 0.5
OUTCOME_LOSS = 0.0
