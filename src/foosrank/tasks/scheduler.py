"""
Periodic single-flight rating recompute.

The scheduler waits a fixed interval, runs one full recompute, then
waits again. Recomputes never overlap: the loop is sequential, and
trigger() holds a lock so a manual trigger from another thread waits
for the running recompute instead of replaying alongside it. An optional
lock factory adds a cross-process guard on top (see GameStore.recompute_lock).

Failure policy:
- "fatal": the first failed recompute stops the loop with
  RecomputeFatalError. Run from scripts/recompute_ratings.py this ends
  the process, which is how the service has always behaved.
- "retry": the failure is logged, the loop backs off exponentially
  (retry_backoff_seconds, doubled per consecutive failure, capped at
  retry_backoff_max_seconds) and tries again. A success resets the
  backoff. The committed ledger is untouched by failed runs either way.

A run that cannot take the cross-process lock is skipped, not failed:
another process is recomputing, so the loop simply waits for the next
interval and the failure streak is left as it was.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from typing import TYPE_CHECKING, Callable, ContextManager, Literal, Optional

from foosrank.config import Settings, get_settings
from foosrank.db.models import utc_now
from foosrank.tasks.locks import LockUnavailableError
from foosrank.tasks.runtime import RecomputeRun, new_run_id

if TYPE_CHECKING:
    from foosrank.elo.recompute import RatingRecomputer

logger = logging.getLogger(__name__)

FailurePolicy = Literal["fatal", "retry"]
LockFactory = Callable[[], ContextManager[object]]


class RecomputeFatalError(RuntimeError):
    """A recompute failed under the 'fatal' policy; the scheduler has stopped."""


class RecomputeScheduler:
    """
    Runs RatingRecomputer.recompute() on a fixed interval, one at a time.

    Usage (blocking, from a script):
        scheduler = RecomputeScheduler.from_settings(recomputer)
        scheduler.run_forever(run_immediately=True)

    Usage (background thread next to a web server):
        scheduler.start()
        ...
        scheduler.trigger()   # manual recompute, waits for any running one
        ...
        scheduler.stop()
        scheduler.join()      # re-raises a fatal error from the thread
    """

    def __init__(
        self,
        recomputer: "RatingRecomputer",
        *,
        interval_seconds: float = 60.0,
        on_error: FailurePolicy = "fatal",
        retry_backoff_seconds: float = 5.0,
        retry_backoff_max_seconds: float = 300.0,
        lock_factory: Optional[LockFactory] = None,
    ):
        if on_error not in ("fatal", "retry"):
            raise ValueError(f"on_error must be 'fatal' or 'retry', got '{on_error}'")
        if interval_seconds < 0:
            raise ValueError("interval_seconds cannot be negative")

        self.recomputer = recomputer
        self.interval_seconds = interval_seconds
        self.on_error = on_error
        self.retry_backoff_seconds = retry_backoff_seconds
        self.retry_backoff_max_seconds = retry_backoff_max_seconds
        self._lock_factory = lock_factory

        self._flight_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self.last_run: Optional[RecomputeRun] = None
        self.consecutive_failures = 0
        self.fatal_error: Optional[RecomputeFatalError] = None

    @classmethod
    def from_settings(
        cls,
        recomputer: "RatingRecomputer",
        settings: Optional[Settings] = None,
        lock_factory: Optional[LockFactory] = None,
    ) -> "RecomputeScheduler":
        settings = settings or get_settings()
        return cls(
            recomputer,
            interval_seconds=settings.recompute_interval_seconds,
            on_error=settings.recompute_on_error,
            retry_backoff_seconds=settings.recompute_retry_backoff_seconds,
            retry_backoff_max_seconds=settings.recompute_retry_backoff_max_seconds,
            lock_factory=lock_factory,
        )

    # ------------------------------------------------------------------
    # Single recompute
    # ------------------------------------------------------------------

    def trigger(self) -> RecomputeRun:
        """
        Run one recompute now, after any recompute already in flight.

        Raises:
            LockUnavailableError: Another process is recomputing; nothing
                ran and last_run is marked "skipped".
            Whatever the recompute raised. Policy is applied by the loop,
            not here.
        """
        with self._flight_lock:
            started_at = utc_now()
            try:
                guard = self._lock_factory() if self._lock_factory else contextlib.nullcontext()
                with guard:
                    run = self.recomputer.recompute()
            except LockUnavailableError as exc:
                self.last_run = RecomputeRun(
                    run_id=new_run_id(),
                    status="skipped",
                    started_at=started_at,
                    ended_at=utc_now(),
                    error=str(exc),
                )
                raise
            except Exception as exc:
                self.last_run = RecomputeRun(
                    run_id=new_run_id(),
                    status="failed",
                    started_at=started_at,
                    ended_at=utc_now(),
                    error=f"{type(exc).__name__}: {exc}",
                )
                raise
            self.last_run = run
            return run

    def retry_delay(self) -> float:
        """Backoff before the next attempt, given the current failure streak."""
        if self.consecutive_failures <= 0:
            return self.interval_seconds
        delay = self.retry_backoff_seconds * (2 ** (self.consecutive_failures - 1))
        return min(delay, self.retry_backoff_max_seconds)

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def run_forever(self, run_immediately: bool = False) -> None:
        """
        Wait, recompute, repeat until stop() is called.

        Raises:
            RecomputeFatalError: A recompute failed under the 'fatal' policy.
        """
        delay = 0.0 if run_immediately else self.interval_seconds
        logger.info(
            "Recompute scheduler started: interval=%.1fs policy=%s",
            self.interval_seconds,
            self.on_error,
        )

        while not self._stop.wait(delay):
            try:
                self.trigger()
            except LockUnavailableError as exc:
                # Not a failure: the other process is doing this run
                logger.info("Skipping rating recompute: %s", exc)
                delay = self.retry_delay()
                continue
            except Exception as exc:
                self.consecutive_failures += 1
                if self.on_error == "fatal":
                    logger.critical("Rating recompute failed; stopping scheduler: %s", exc)
                    raise RecomputeFatalError(f"Rating recompute failed: {exc}") from exc

                delay = self.retry_delay()
                logger.warning(
                    "Rating recompute failed (%d in a row); retrying in %.1fs: %s",
                    self.consecutive_failures,
                    delay,
                    exc,
                )
                continue

            self.consecutive_failures = 0
            delay = self.interval_seconds

        logger.info("Recompute scheduler stopped")

    def stop(self) -> None:
        """Ask the loop to exit. A recompute in progress runs to completion."""
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    # ------------------------------------------------------------------
    # Background thread
    # ------------------------------------------------------------------

    def start(self, run_immediately: bool = False) -> threading.Thread:
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError("Recompute scheduler already running")

        self._stop.clear()
        self.fatal_error = None
        self._thread = threading.Thread(
            target=self._run_in_thread,
            args=(run_immediately,),
            name="rating-recompute-scheduler",
            daemon=True,
        )
        self._thread.start()
        return self._thread

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the background loop; re-raise its fatal error if it had one."""
        if self._thread is not None:
            self._thread.join(timeout)
        if self.fatal_error is not None:
            raise self.fatal_error

    def _run_in_thread(self, run_immediately: bool) -> None:
        try:
            self.run_forever(run_immediately=run_immediately)
        except RecomputeFatalError as exc:
            self.fatal_error = exc
