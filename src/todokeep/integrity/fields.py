"""Tolerant accessors for tasks that may hold unvalidated stored values."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from todokeep.models.core import Task, TaskStatus
from todokeep.utils.helpers import parse_timestamp

TIMESTAMP_FIELDS = ("created_at", "updated_at", "completed_at", "archived_at")

_LATEST = datetime.max.replace(tzinfo=UTC)


def raw_status(task: Task) -> Any:
    status = getattr(task, "status", None)
    return status.value if isinstance(status, TaskStatus) else status


def status_of(task: Task) -> TaskStatus | None:
    """Return the task's status, or None if it is not a legal state."""
    value = raw_status(task)
    if not isinstance(value, str):
        return None
    try:
        return TaskStatus(value)
    except ValueError:
        return None


def timestamp_of(task: Task, field: str) -> datetime | None:
    return parse_timestamp(getattr(task, field, None))


def is_malformed_timestamp(value: Any) -> bool:
    return value not in (None, "") and parse_timestamp(value) is None


def valid_order(task: Task) -> int | None:
    order = getattr(task, "order", None)
    if isinstance(order, bool) or not isinstance(order, int) or order < 0:
        return None
    return order


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def sort_key(task: Task) -> tuple[float, datetime]:
    """Sort by order, then creation time; unusable values sort last."""
    order = valid_order(task)
    created = timestamp_of(task, "created_at") or _LATEST
    return (float(order) if order is not None else float("inf"), created)
