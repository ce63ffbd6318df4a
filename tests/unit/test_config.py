"""Unit tests for settings validation."""

import pytest
from pydantic import ValidationError

from foosrank.config import Settings


def test_defaults():
    settings = Settings(_env_file=None)
    assert settings.baseline_rating == 500.0
    assert settings.recompute_on_error == "fatal"
    assert settings.stream_buffer_size >= 1


def test_log_level_is_normalized():
    assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"


def test_invalid_log_level_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, log_level="chatty")


def test_failure_policy_restricted():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, recompute_on_error="ignore")


def test_stream_buffer_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, stream_buffer_size=0)


def test_env_override(monkeypatch):
    monkeypatch.setenv("RECOMPUTE_INTERVAL_SECONDS", "2.5")
    monkeypatch.setenv("RECOMPUTE_ON_ERROR", "retry")
    settings = Settings(_env_file=None)
    assert settings.recompute_interval_seconds == 2.5
    assert settings.recompute_on_error == "retry"
