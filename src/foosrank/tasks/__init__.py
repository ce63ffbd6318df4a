"""Task runtime utilities for the periodic rating recompute."""

from foosrank.tasks.locks import LockUnavailableError, advisory_lock_key, postgres_advisory_lock
from foosrank.tasks.runtime import RecomputeRun
from foosrank.tasks.scheduler import RecomputeFatalError, RecomputeScheduler

__all__ = [
    "LockUnavailableError",
    "RecomputeFatalError",
    "RecomputeRun",
    "RecomputeScheduler",
    "advisory_lock_key",
    "postgres_advisory_lock",
]
