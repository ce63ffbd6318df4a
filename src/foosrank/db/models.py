"""
SQLAlchemy ORM models for foosrank.

This module defines all database tables and their relationships.

Key design decisions:
- Games reference their four players via foreign keys (never raw handles)
- A game's teams and scores never change once it is stored
- Ratings live in their own table and are rebuilt from scratch by every
  recompute, so nothing else may write to it

Tables:
- users: Player identities (handle and display names)
- games: Every recorded doubles game, ordered by created_at
- signoffs: Players confirming a recorded game result
- ratings: Derived rating ledger (one row per user)
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utc_now() -> datetime:
    """Naive UTC timestamp, the form stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all ORM models."""


# =============================================================================
# Users
# =============================================================================


class User(Base):
    """
    A player.

    Created by the registration path of the surrounding application; the
    rating engine only ever reads users.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    handle: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    rating: Mapped[Optional["RatingEntry"]] = relationship(back_populates="user")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, handle='{self.handle}')>"


# =============================================================================
# Games
# =============================================================================


class Game(Base):
    """
    A single doubles game.

    Team 0 is (front1, back1) with score1, team 1 is (front2, back2) with
    score2. Equal scores are a draw. created_at is only used to order the
    replay; ties are broken by id.
    """

    __tablename__ = "games"

    id: Mapped[int] = mapped_column(primary_key=True)

    front1_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    back1_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    front2_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    back2_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)

    score1: Mapped[int] = mapped_column(Integer, nullable=False)
    score2: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    front1: Mapped[User] = relationship(foreign_keys=[front1_id])
    back1: Mapped[User] = relationship(foreign_keys=[back1_id])
    front2: Mapped[User] = relationship(foreign_keys=[front2_id])
    back2: Mapped[User] = relationship(foreign_keys=[back2_id])

    signoffs: Mapped[list["SignOff"]] = relationship(back_populates="game")

    __table_args__ = (
        CheckConstraint("score1 >= 0 AND score2 >= 0", name="ck_games_scores_non_negative"),
        Index("idx_games_created", "created_at", "id"),
    )

    @property
    def player_ids(self) -> tuple[int, int, int, int]:
        """Player IDs in (front1, back1, front2, back2) order."""
        return (self.front1_id, self.back1_id, self.front2_id, self.back2_id)

    def __repr__(self) -> str:
        return f"<Game(id={self.id}, score={self.score1}-{self.score2})>"


class SignOff(Base):
    """A player confirming the result of a recorded game."""

    __tablename__ = "signoffs"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    game: Mapped[Game] = relationship(back_populates="signoffs")

    __table_args__ = (
        UniqueConstraint("user_id", "game_id", name="uq_signoffs_user_game"),
    )


# =============================================================================
# Ratings
# =============================================================================


class RatingEntry(Base):
    """
    Current rating ledger entry for one user.

    Every row is deleted and re-created by each recompute inside a single
    transaction; readers only ever see a fully committed ledger.
    """

    __tablename__ = "ratings"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), primary_key=True)
    rating: Mapped[float] = mapped_column(Float, nullable=False)
    games_played: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    user: Mapped[User] = relationship(back_populates="rating")

    def __repr__(self) -> str:
        return (
            f"<RatingEntry(user_id={self.user_id}, rating={self.rating:.2f}, "
            f"games={self.games_played})>"
        )
