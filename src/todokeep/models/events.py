"""Lifecycle and maintenance events."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventKind(str, Enum):
    TASK_ADDED = "task_added"
    TASK_UPDATED = "task_updated"
    TASK_STARTED = "task_started"
    TASK_COMPLETED = "task_completed"
    TASK_REOPENED = "task_reopened"
    TASK_REORDERED = "task_reordered"
    ARCHIVE_COMPLETED = "archive_completed"
    INTEGRITY_REPAIR = "integrity_repair"
    TASK_DELETED = "task_deleted"


class TaskEvent(BaseModel):
    """A structured event emitted after a mutation commits in memory.

    Attributes:
        kind: Event kind
        timestamp: When the mutation committed
        task_id: Affected task for single-task events
        payload: Kind-specific data (task snapshot, ids, repair counts)
    """

    kind: EventKind
    timestamp: datetime
    task_id: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
