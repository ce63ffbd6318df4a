"""
Cancellable chronological game stream.

A GameStream scans the games table on a dedicated producer thread and
hands fully joined GameRecords to the consumer through a small bounded
queue. The producer can never run more than `buffer_size` games ahead of
a slow consumer: once the queue is full it waits for space.

Consumers that only need part of the history (the recent games listing)
call cancel() to stop the scan early. The signal travels on a separate
threading.Event, so the producer notices it even while blocked on a full
queue, closes its session and exits. Cancellation is best-effort on the
producer side: a game already fetched may still be queued. The iterator
itself stops delivering as soon as cancel() returns.

A scan that fails is reported to the consumer as GameStreamError, never
as a silently shortened history:

    with store.stream_games(ascending=True) as games:
        for game in games:
            ...                   # StopIteration only on real exhaustion

Each stream opens its own session and cursor. To read the history again,
open a new stream.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Iterator, Optional

from sqlalchemy.orm import Session

from foosrank.games.records import GameRecord, build_game_query, game_from_row

logger = logging.getLogger(__name__)

# How often a blocked producer or consumer re-checks for cancellation
_POLL_SECONDS = 0.05

# Rows fetched per round trip on the producer's cursor
_FETCH_BATCH = 100


class GameStreamError(RuntimeError):
    """The underlying game scan failed before the stream was exhausted."""


class _End:
    """Queue marker: the scan completed."""


class _Failure:
    """Queue marker: the scan raised `error`."""

    def __init__(self, error: BaseException):
        self.error = error


class GameStream(Iterator[GameRecord]):
    """
    Lazy, finite, cancellable iterator over every stored game.

    The producer thread starts on the first call to next(), so creating a
    stream that is never iterated costs nothing. `max_game_id` bounds the
    scan to games stored up to that ID.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        ascending: bool = True,
        buffer_size: int = 8,
        max_game_id: Optional[int] = None,
    ):
        if buffer_size < 1:
            raise ValueError(f"buffer_size must be at least 1, got {buffer_size}")

        self.ascending = ascending
        self.max_game_id = max_game_id
        self._session_factory = session_factory
        self._queue: queue.Queue = queue.Queue(maxsize=buffer_size)
        self._cancelled = threading.Event()
        self._thread = threading.Thread(
            target=self._produce,
            name="game-stream-producer",
            daemon=True,
        )
        self._started = False
        self._finished = False

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------

    def __iter__(self) -> "GameStream":
        return self

    def __next__(self) -> GameRecord:
        if self._finished or self._cancelled.is_set():
            raise StopIteration
        if not self._started:
            self._started = True
            self._thread.start()

        while True:
            try:
                item = self._queue.get(timeout=_POLL_SECONDS)
                break
            except queue.Empty:
                # cancel() may come from another thread while we wait
                if self._cancelled.is_set():
                    self._finish()
                    raise StopIteration from None

        if isinstance(item, _End):
            self._finish()
            raise StopIteration
        if isinstance(item, _Failure):
            self._finish()
            raise GameStreamError("Game stream failed while scanning games") from item.error
        return item

    def __enter__(self) -> "GameStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def active(self) -> bool:
        """True while the producer thread still holds its session."""
        return self._started and self._thread.is_alive()

    def cancel(self) -> None:
        """Ask the producer to stop. Returns immediately."""
        self._cancelled.set()

    def close(self, timeout: float | None = 5.0) -> None:
        """Cancel the scan and wait for the producer to release its cursor."""
        self.cancel()
        self._finish(timeout)

    def _finish(self, timeout: float | None = None) -> None:
        self._finished = True
        if self._started and self._thread.is_alive():
            self._thread.join(timeout)

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def _offer(self, item: object) -> bool:
        """Put `item` on the queue, waiting for space. False if cancelled first."""
        while not self._cancelled.is_set():
            try:
                self._queue.put(item, timeout=_POLL_SECONDS)
                return True
            except queue.Full:
                continue
        return False

    def _produce(self) -> None:
        outcome: object = _End()
        delivered = 0
        try:
            with self._session_factory() as session:
                stmt = build_game_query(self.ascending, self.max_game_id)
                stmt = stmt.execution_options(yield_per=_FETCH_BATCH)
                result = session.execute(stmt)
                try:
                    for row in result:
                        if not self._offer(game_from_row(row)):
                            logger.debug("Game stream cancelled after %d games", delivered)
                            return
                        delivered += 1
                finally:
                    result.close()
        except Exception as exc:
            logger.error("Game stream failed after %d games: %s", delivered, exc)
            outcome = _Failure(exc)

        # Session is closed at this point; the consumer may now commit freely
        self._offer(outcome)
