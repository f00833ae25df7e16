"""Task data models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# First value of the dense ordering over non-archived tasks.
ORDER_BASE = 0


class TaskStatus(str, Enum):
    """Lifecycle state of a task."""

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


# States that take part in duplicate-content checks.
DUPLICATE_SCOPE = frozenset({TaskStatus.PENDING, TaskStatus.ACTIVE})

# Legal lifecycle edges (reopen is additionally time-boxed).
TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.ACTIVE}),
    TaskStatus.ACTIVE: frozenset({TaskStatus.COMPLETED}),
    TaskStatus.COMPLETED: frozenset({TaskStatus.ARCHIVED, TaskStatus.PENDING}),
    TaskStatus.ARCHIVED: frozenset(),
}


def can_transition(current: TaskStatus, target: TaskStatus) -> bool:
    """Return True if *current* -> *target* is an edge of the lifecycle graph."""
    return target in TRANSITIONS.get(current, frozenset())


class Task(BaseModel):
    """Task model representing a complete task entity.

    Attributes:
        id: Unique identifier for the task
        content: Free-text task description
        status: Lifecycle state
        order: Dense user-facing priority; None once archived
        tags: Normalized tags
        metadata: Auxiliary key/value data, opaque to the engine
        created_at: Creation timestamp
        updated_at: Last update timestamp
        completed_at: Most recent completion timestamp
        archived_at: Archival timestamp
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    content: str
    status: TaskStatus = TaskStatus.PENDING
    order: int | None = ORDER_BASE
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None
    archived_at: datetime | None = None

    def clone(self) -> Task:
        """Return a deep copy that shares no state with this task."""
        return self.model_copy(deep=True)


class TaskFilters(BaseModel):
    """Filters for querying tasks.

    Attributes:
        status: Exact lifecycle state
        tag: Single tag (normalized before matching)
        text: Case-insensitive substring of the content
        include_archived: Include archived tasks when no status is given
        sort: "order" (archived last) or "created"
    """

    status: TaskStatus | None = None
    tag: str | None = None
    text: str | None = None
    include_archived: bool = False
    sort: str = Field(default="order", pattern="^(order|created)$")


def normalize_tags(tags: list[str] | tuple[str, ...] | None) -> list[str]:
    """Trim, lowercase, drop empties and dedupe *tags*, keeping first-seen order.

    >>> normalize_tags(["Bug", " bug ", "BUG"])
    ['bug']
    """
    normalized: list[str] = []
    for tag in tags or []:
        if not isinstance(tag, str):
            continue
        value = tag.strip().lower()
        if value and value not in normalized:
            normalized.append(value)
    return normalized


def normalize_content(content: str) -> str:
    """Key used to compare task content for duplicates."""
    return content.strip().lower()
