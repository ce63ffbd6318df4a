"""Unit tests for the periodic recompute scheduler."""

import threading
import time
from contextlib import contextmanager
from datetime import datetime

import pytest

from foosrank.tasks.locks import LockUnavailableError
from foosrank.tasks.runtime import RecomputeRun
from foosrank.tasks.scheduler import RecomputeFatalError, RecomputeScheduler


class FakeRecomputer:
    """Stands in for RatingRecomputer; fails on the listed call numbers."""

    def __init__(self, fail_on=(), duration=0.0, on_call=None):
        self.fail_on = set(fail_on)
        self.duration = duration
        self.on_call = on_call
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def recompute(self, dry_run=False):
        with self._lock:
            self.calls += 1
            call = self.calls
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.duration:
                time.sleep(self.duration)
            if self.on_call is not None:
                self.on_call(call)
            if call in self.fail_on:
                raise RuntimeError(f"boom on call {call}")
            now = datetime(2026, 1, 5, 12, 0, 0)
            return RecomputeRun(
                run_id=f"run{call}",
                status="success",
                started_at=now,
                ended_at=now,
                games_processed=call,
            )
        finally:
            with self._lock:
                self.active -= 1


def test_trigger_records_last_run():
    scheduler = RecomputeScheduler(FakeRecomputer())

    run = scheduler.trigger()

    assert run.succeeded
    assert scheduler.last_run is run


def test_trigger_failure_records_failed_run_and_reraises():
    scheduler = RecomputeScheduler(FakeRecomputer(fail_on={1}))

    with pytest.raises(RuntimeError, match="boom"):
        scheduler.trigger()

    assert scheduler.last_run.status == "failed"
    assert "RuntimeError" in scheduler.last_run.error


def test_fatal_policy_stops_loop():
    recomputer = FakeRecomputer(fail_on={2})
    scheduler = RecomputeScheduler(recomputer, interval_seconds=0.0, on_error="fatal")

    with pytest.raises(RecomputeFatalError) as excinfo:
        scheduler.run_forever(run_immediately=True)

    assert recomputer.calls == 2
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert scheduler.last_run.status == "failed"


def test_retry_policy_recovers_and_resets_backoff():
    scheduler = None

    def stop_after_recovery(call):
        if call == 4:
            scheduler.stop()

    recomputer = FakeRecomputer(fail_on={1, 2}, on_call=stop_after_recovery)
    scheduler = RecomputeScheduler(
        recomputer,
        interval_seconds=0.0,
        on_error="retry",
        retry_backoff_seconds=0.01,
        retry_backoff_max_seconds=0.02,
    )

    scheduler.run_forever(run_immediately=True)

    assert recomputer.calls == 4
    assert scheduler.consecutive_failures == 0
    assert scheduler.last_run.succeeded


def test_retry_delay_doubles_and_caps():
    scheduler = RecomputeScheduler(
        FakeRecomputer(),
        interval_seconds=60.0,
        on_error="retry",
        retry_backoff_seconds=5.0,
        retry_backoff_max_seconds=30.0,
    )

    delays = []
    for failures in range(0, 6):
        scheduler.consecutive_failures = failures
        delays.append(scheduler.retry_delay())

    assert delays == [60.0, 5.0, 10.0, 20.0, 30.0, 30.0]


def test_waits_one_interval_before_first_run():
    recomputer = FakeRecomputer()
    scheduler = RecomputeScheduler(recomputer, interval_seconds=30.0)

    scheduler.start()
    time.sleep(0.1)
    scheduler.stop()
    scheduler.join(timeout=5.0)

    assert recomputer.calls == 0


def test_recomputes_never_overlap():
    recomputer = FakeRecomputer(duration=0.05)
    scheduler = RecomputeScheduler(recomputer)

    threads = [threading.Thread(target=scheduler.trigger) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert recomputer.calls == 4
    assert recomputer.max_active == 1


def test_lock_factory_wraps_each_recompute():
    events = []

    @contextmanager
    def lock():
        events.append("acquire")
        yield True
        events.append("release")

    recomputer = FakeRecomputer(on_call=lambda call: events.append(f"run{call}"))
    scheduler = RecomputeScheduler(recomputer, lock_factory=lock)

    scheduler.trigger()
    scheduler.trigger()

    assert events == ["acquire", "run1", "release", "acquire", "run2", "release"]


def test_background_thread_reraises_fatal_error_on_join():
    scheduler = RecomputeScheduler(FakeRecomputer(fail_on={1}), interval_seconds=0.0)

    scheduler.start(run_immediately=True)

    with pytest.raises(RecomputeFatalError):
        scheduler.join(timeout=5.0)


def test_start_twice_raises():
    scheduler = RecomputeScheduler(FakeRecomputer(), interval_seconds=30.0)
    scheduler.start()
    try:
        with pytest.raises(RuntimeError):
            scheduler.start()
    finally:
        scheduler.stop()
        scheduler.join(timeout=5.0)


def test_invalid_arguments():
    with pytest.raises(ValueError):
        RecomputeScheduler(FakeRecomputer(), on_error="ignore")
    with pytest.raises(ValueError):
        RecomputeScheduler(FakeRecomputer(), interval_seconds=-1.0)


def _contended_lock():
    raise LockUnavailableError(key=1, waited_s=0.0)


def test_lock_contention_skips_without_failing():
    recomputer = FakeRecomputer()
    scheduler = RecomputeScheduler(recomputer, lock_factory=_contended_lock)

    with pytest.raises(LockUnavailableError):
        scheduler.trigger()

    assert recomputer.calls == 0
    assert scheduler.last_run.skipped
    assert not scheduler.last_run.succeeded


def test_lock_contention_is_not_fatal_in_loop():
    attempts = []
    scheduler = None

    def lock():
        attempts.append(True)
        if len(attempts) >= 3:
            scheduler.stop()
        return _contended_lock()

    recomputer = FakeRecomputer()
    scheduler = RecomputeScheduler(
        recomputer,
        interval_seconds=0.0,
        on_error="fatal",
        lock_factory=lock,
    )

    scheduler.run_forever(run_immediately=True)

    assert len(attempts) == 3
    assert recomputer.calls == 0
    assert scheduler.consecutive_failures == 0
    assert scheduler.last_run.skipped
