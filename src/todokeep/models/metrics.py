"""Derived metrics models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class OldestPending(BaseModel):
    id: str
    content: str
    created_at: datetime
    age_seconds: float


class ActivityWindow(BaseModel):
    """Created/completed counts since the start of a window."""

    since: datetime
    created: int = 0
    completed: int = 0


class Metrics(BaseModel):
    """Aggregate view of the task set, computed on demand."""

    total: int = 0
    by_state: dict[str, int] = Field(default_factory=dict)
    completion_rate: float = 0.0
    average_completion_seconds: float | None = None
    oldest_pending: OldestPending | None = None
    activity: dict[str, ActivityWindow] = Field(default_factory=dict)
