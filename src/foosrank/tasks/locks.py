"""
Cross-process exclusion for the rating recompute.

Two service processes pointed at the same PostgreSQL database must not
replay at the same time. Each recompute runs under a session-level
advisory lock taken on its own connection. A process that finds the lock
held waits up to `timeout_seconds` and then gives up with
LockUnavailableError. The scheduler treats that as "someone else is
recomputing" and skips the run instead of failing it.
"""

from __future__ import annotations

import hashlib
import logging
import time
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

logger = logging.getLogger(__name__)


class LockUnavailableError(TimeoutError):
    """Another process holds the recompute lock."""

    def __init__(self, key: int, waited_s: float):
        super().__init__(f"Advisory lock {key} is held by another process (waited {waited_s:.1f}s)")
        self.key = key
        self.waited_s = waited_s


def advisory_lock_key(name: str) -> int:
    """Map a lock name onto PostgreSQL's signed 64-bit advisory key space."""
    digest = hashlib.sha256(name.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=True)


def _try_lock(connection: Connection, key: int) -> bool:
    return bool(connection.scalar(text("SELECT pg_try_advisory_lock(:key)"), {"key": key}))


def _unlock(connection: Connection, key: int) -> None:
    released = connection.scalar(text("SELECT pg_advisory_unlock(:key)"), {"key": key})
    if not released:
        logger.warning("Advisory lock %d was not held at release", key)


@contextmanager
def postgres_advisory_lock(
    engine: Engine,
    *,
    key: int,
    timeout_seconds: float = 0.0,
    poll_interval_seconds: float = 1.0,
) -> Generator[bool, None, None]:
    """
    Hold advisory lock `key` for the life of the block.

    The lock connection is separate from the recompute transaction, so a
    rolled-back recompute still releases it.

    Raises:
        LockUnavailableError: The lock was still held after `timeout_seconds`.
    """
    started = time.monotonic()
    deadline = started + max(timeout_seconds, 0.0)

    with engine.connect() as connection:
        acquired = _try_lock(connection, key)
        if not acquired and timeout_seconds > 0:
            logger.info("Advisory lock %d is held; waiting up to %.1fs", key, timeout_seconds)
        while not acquired and time.monotonic() < deadline:
            time.sleep(min(max(poll_interval_seconds, 0.05), max(deadline - time.monotonic(), 0.0)))
            acquired = _try_lock(connection, key)

        if not acquired:
            raise LockUnavailableError(key, time.monotonic() - started)

        logger.debug("Acquired advisory lock %d", key)
        try:
            yield True
        finally:
            _unlock(connection, key)
