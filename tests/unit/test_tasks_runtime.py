"""Unit tests for task runtime primitives."""

from datetime import datetime, timedelta

import pytest

from foosrank.tasks.locks import LockUnavailableError, advisory_lock_key, postgres_advisory_lock
from foosrank.tasks.runtime import RecomputeRun, new_run_id


def test_recompute_run_duration_and_payload():
    started = datetime(2026, 2, 14, 10, 0, 0)
    ended = started + timedelta(seconds=12.5)
    run = RecomputeRun(
        run_id="abc123",
        status="success",
        started_at=started,
        ended_at=ended,
        users_reset=6,
        games_processed=40,
        metrics={"elapsed_s": 12.5},
    )

    assert run.duration_s == 12.5
    assert run.succeeded
    payload = run.to_dict()
    assert payload["run_id"] == "abc123"
    assert payload["status"] == "success"
    assert payload["games_processed"] == 40
    assert payload["metrics"]["elapsed_s"] == 12.5
    assert payload["started_at"] == "2026-02-14T10:00:00"
    assert payload["error"] is None


def test_failed_run_is_not_success():
    now = datetime(2026, 2, 14, 10, 0, 0)
    run = RecomputeRun(run_id="x", status="failed", started_at=now, ended_at=now, error="boom")
    assert not run.succeeded
    assert run.to_dict()["error"] == "boom"


def test_run_ids_are_short_and_unique():
    ids = {new_run_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(len(run_id) == 12 for run_id in ids)


def test_advisory_lock_key_is_stable_and_signed_64bit():
    key_a = advisory_lock_key("foosrank_rating_recompute")
    key_b = advisory_lock_key("foosrank_rating_recompute")
    key_c = advisory_lock_key("something_else")

    assert key_a == key_b
    assert key_a != key_c
    assert -(2**63) <= key_a < 2**63


def test_sqlite_recompute_lock_is_a_no_op(store):
    with store.recompute_lock() as held:
        assert held is True


def test_skipped_run():
    now = datetime(2026, 2, 14, 10, 0, 0)
    run = RecomputeRun(run_id="x", status="skipped", started_at=now, ended_at=now)
    assert run.skipped
    assert not run.succeeded


class _FakeLockConnection:
    """Answers pg_try_advisory_lock from a scripted list of results."""

    def __init__(self, try_results):
        self.try_results = list(try_results)
        self.statements = []

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def scalar(self, statement, parameters=None):
        sql = str(statement)
        self.statements.append(sql)
        if "pg_try_advisory_lock" in sql:
            return self.try_results.pop(0)
        return True


class _FakeEngine:
    def __init__(self, connection):
        self.connection = connection

    def connect(self):
        return self.connection


def test_held_lock_raises_lock_unavailable():
    connection = _FakeLockConnection([False])

    with pytest.raises(LockUnavailableError) as excinfo:
        with postgres_advisory_lock(_FakeEngine(connection), key=42):
            pass

    assert excinfo.value.key == 42
    assert not any("pg_advisory_unlock" in sql for sql in connection.statements)


def test_lock_waits_for_release_within_timeout():
    connection = _FakeLockConnection([False, False, True])

    with postgres_advisory_lock(
        _FakeEngine(connection),
        key=7,
        timeout_seconds=5.0,
        poll_interval_seconds=0.01,
    ) as held:
        assert held is True

    tries = [sql for sql in connection.statements if "pg_try_advisory_lock" in sql]
    assert len(tries) == 3
    assert "pg_advisory_unlock" in connection.statements[-1]


def test_lock_released_when_block_raises():
    connection = _FakeLockConnection([True])

    with pytest.raises(RuntimeError):
        with postgres_advisory_lock(_FakeEngine(connection), key=7):
            raise RuntimeError("recompute failed")

    assert "pg_advisory_unlock" in connection.statements[-1]
