"""
The game store: one object owning the engine, its sessions and their
transaction boundaries.

Everything that touches the database goes through a GameStore instance
passed in by the caller. There is no module-level engine or session.

Transaction boundaries:
- transaction(): one atomic unit of work. Commits when the block exits
  normally, rolls back when it raises. The rating recompute runs its
  whole reset-and-replay inside one of these.
- session(): same commit-or-rollback behaviour, for short reads and
  the recording helpers.
- stream_games(): opens its own session on the producer thread, outside
  any caller transaction.
- read_*(): fresh session, committed data only.

Usage:
    store = GameStore.from_settings()
    store.create_schema()

    with store.session() as session:
        register_player(session, "anna", "Anna", "Berg")

    print(store.read_leaderboard())
"""

from __future__ import annotations

import contextlib
import logging
from contextlib import contextmanager
from typing import ContextManager, Generator, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from foosrank.config import Settings, get_settings
from foosrank.db.models import Base
from foosrank.db.session import create_db_engine, get_session
from foosrank.elo.ledger import (
    LeaderboardRow,
    LedgerEntry,
    read_leaderboard,
    read_ledger_entry,
    read_ledger_snapshot,
)
from foosrank.games.records import GameRecord
from foosrank.games.stream import GameStream
from foosrank.tasks.locks import advisory_lock_key, postgres_advisory_lock

logger = logging.getLogger(__name__)

RECOMPUTE_LOCK_NAME = "foosrank_rating_recompute"


class GameStore:
    """Owns the engine and session factory for the games and rating ledger."""

    def __init__(
        self,
        engine: Engine,
        *,
        stream_buffer_size: int = 8,
        lock_timeout_seconds: float = 0.0,
    ):
        self.engine = engine
        self.stream_buffer_size = stream_buffer_size
        self.lock_timeout_seconds = lock_timeout_seconds
        self.session_factory = sessionmaker(
            bind=engine,
            autocommit=False,  # We'll handle commits explicitly
            autoflush=False,  # Don't auto-flush before queries (more control)
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "GameStore":
        settings = settings or get_settings()
        return cls(
            create_db_engine(settings.database_url),
            stream_buffer_size=settings.stream_buffer_size,
            lock_timeout_seconds=settings.recompute_lock_timeout_seconds,
        )

    @classmethod
    def from_url(cls, database_url: str, **kwargs) -> "GameStore":
        return cls(create_db_engine(database_url), **kwargs)

    def create_schema(self) -> None:
        """Create any missing tables. Not a migration tool."""
        Base.metadata.create_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Sessions and transactions
    # ------------------------------------------------------------------

    def session(self) -> ContextManager[Session]:
        """Session that commits on success and rolls back on exception."""
        return get_session(self.session_factory)

    @contextmanager
    def transaction(self, commit: bool = True) -> Generator[Session, None, None]:
        """
        One atomic unit of work.

        Args:
            commit: Pass False to roll back even when the block succeeds
                    (dry runs).

        Raises:
            Any exception from the block, after the transaction is rolled back
        """
        with self.session_factory() as session:
            session.begin()
            try:
                yield session
            except Exception:
                session.rollback()
                raise
            if commit:
                session.commit()
            else:
                session.rollback()

    def recompute_lock(self, timeout_seconds: Optional[float] = None) -> ContextManager[bool]:
        """
        Cross-process guard for the rating recompute.

        PostgreSQL gets an advisory lock so two processes never replay at
        the same time. Other backends serialize writers themselves, so the
        lock is a no-op there.

        Raises (on entry):
            LockUnavailableError: Still held elsewhere after `timeout_seconds`
                (default: the store's lock_timeout_seconds).
        """
        if timeout_seconds is None:
            timeout_seconds = self.lock_timeout_seconds
        if self.engine.dialect.name == "postgresql":
            return postgres_advisory_lock(
                self.engine,
                key=advisory_lock_key(RECOMPUTE_LOCK_NAME),
                timeout_seconds=timeout_seconds,
            )
        return contextlib.nullcontext(True)

    # ------------------------------------------------------------------
    # Games
    # ------------------------------------------------------------------

    def stream_games(
        self,
        ascending: bool = True,
        buffer_size: Optional[int] = None,
        max_game_id: Optional[int] = None,
    ) -> GameStream:
        """Lazy, cancellable stream over every game, oldest first by default."""
        return GameStream(
            self.session_factory,
            ascending=ascending,
            buffer_size=self.stream_buffer_size if buffer_size is None else buffer_size,
            max_game_id=max_game_id,
        )

    def recent_games(self, limit: int = 25) -> list[GameRecord]:
        """
        The newest `limit` games, newest first.

        Reads a descending stream and cancels it once enough games have
        arrived, so the rest of the history is never scanned.
        """
        games: list[GameRecord] = []
        if limit <= 0:
            return games

        with self.stream_games(ascending=False) as stream:
            for game in stream:
                games.append(game)
                if len(games) >= limit:
                    stream.cancel()
                    break
        return games

    # ------------------------------------------------------------------
    # Ledger reads
    # ------------------------------------------------------------------

    def read_ledger_snapshot(self) -> dict[int, LedgerEntry]:
        with self.session_factory() as session:
            return read_ledger_snapshot(session)

    def read_ledger_entry(self, user_id: int) -> Optional[LedgerEntry]:
        with self.session_factory() as session:
            return read_ledger_entry(session, user_id)

    def read_leaderboard(self) -> list[LeaderboardRow]:
        with self.session_factory() as session:
            return read_leaderboard(session)
