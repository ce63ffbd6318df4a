"""
Database module for foosrank.

Provides SQLAlchemy ORM models and engine/session helpers. The GameStore
that owns an engine lives in foosrank.db.store.

Usage:
    from foosrank.db.store import GameStore
    from foosrank.db import User, Game

    store = GameStore.from_settings()
    with store.session() as session:
        users = session.query(User).all()
"""

from foosrank.db.models import (
    Base,
    Game,
    RatingEntry,
    SignOff,
    User,
    utc_now,
)
from foosrank.db.session import create_db_engine, get_session

__all__ = [
    # Base
    "Base",
    # Models
    "User",
    "Game",
    "SignOff",
    "RatingEntry",
    "utc_now",
    # Session
    "create_db_engine",
    "get_session",
]
