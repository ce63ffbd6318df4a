"""
Configuration management for foosrank.

Uses Pydantic Settings to load configuration from environment variables
with sensible defaults for development. The database URL and scheduler
policy should be set via environment variables or a .env file in
production.

Usage:
    from foosrank.config import settings
    print(settings.database_url)
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables can be set directly or via a .env file
    in the project root directory.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ==========================================================================
    # Database Configuration
    # ==========================================================================

    database_url: str = Field(
        default="sqlite:///foosrank.db",
        description="SQLAlchemy connection URL for the game store",
    )

    # Database pool settings
    db_pool_size: int = Field(
        default=5,
        description="Number of connections to keep in the pool",
    )
    db_max_overflow: int = Field(
        default=10,
        description="Max additional connections beyond pool_size",
    )

    sqlite_busy_timeout_ms: int = Field(
        default=15000,
        description="How long SQLite waits on a locked database before failing",
    )

    # ==========================================================================
    # Rating Configuration
    # ==========================================================================

    baseline_rating: float = Field(
        default=500.0,
        description="Rating every player starts from at the beginning of a replay",
    )

    # ==========================================================================
    # Recompute Scheduler Configuration
    # ==========================================================================

    recompute_interval_seconds: float = Field(
        default=60.0,
        description="Pause between two full rating recomputes",
    )
    recompute_on_startup: bool = Field(
        default=True,
        description="Run one recompute immediately when the scheduler starts",
    )
    recompute_on_error: Literal["fatal", "retry"] = Field(
        default="fatal",
        description=(
            "'fatal' stops the scheduler (and the process) on the first failed "
            "recompute. 'retry' logs the failure and retries with backoff."
        ),
    )
    recompute_retry_backoff_seconds: float = Field(
        default=5.0,
        description="First retry delay after a failed recompute ('retry' policy)",
    )
    recompute_retry_backoff_max_seconds: float = Field(
        default=300.0,
        description="Upper bound for the exponential retry delay",
    )
    recompute_lock_timeout_seconds: float = Field(
        default=0.0,
        description=(
            "How long a recompute waits for another process to release the "
            "cross-process lock before skipping its run (PostgreSQL only)"
        ),
    )

    # ==========================================================================
    # Game Stream Configuration
    # ==========================================================================

    stream_buffer_size: int = Field(
        default=8,
        description="Games the stream producer may read ahead of its consumer",
    )
    recent_games_limit: int = Field(
        default=25,
        description="Number of games shown in the recent games listing",
    )

    # ==========================================================================
    # Logging Configuration
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )

    # ==========================================================================
    # Validators
    # ==========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return upper_v

    @field_validator("stream_buffer_size", "recent_games_limit")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures we only load settings once,
    which is important because loading from .env can be slow.
    """
    return Settings()


# Convenience alias for importing
settings = get_settings()
