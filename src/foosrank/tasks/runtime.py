"""Shared runtime dataclasses for scheduled rating recomputes."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

RunStatus = Literal["success", "failed", "skipped"]


def new_run_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class RecomputeRun:
    """Normalized outcome of one full rating recompute."""

    run_id: str
    status: RunStatus
    started_at: datetime
    ended_at: datetime
    users_reset: int = 0
    games_processed: int = 0
    metrics: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    @property
    def duration_s(self) -> float:
        return (self.ended_at - self.started_at).total_seconds()

    @property
    def succeeded(self) -> bool:
        return self.status == "success"

    @property
    def skipped(self) -> bool:
        """True when another process held the recompute lock."""
        return self.status == "skipped"

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat(),
            "duration_s": self.duration_s,
            "users_reset": self.users_reset,
            "games_processed": self.games_processed,
            "metrics": self.metrics,
            "error": self.error,
        }
