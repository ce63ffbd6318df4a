"""
foosrank - Doubles Game Ratings

Records two-vs-two games (a front and a back player per team) and derives
a skill rating for every player by replaying the whole game history.

Main components:
- db: SQLAlchemy models and the GameStore that owns engine and sessions
- games: Game recording and the cancellable chronological game stream
- elo: Rating formula, rating ledger and the full-replay recompute
- tasks: Periodic single-flight recompute scheduling
"""

__version__ = "1.0.0"
