"""Derived metrics computed on demand from a task snapshot."""

from __future__ import annotations

from datetime import datetime, timedelta

from todokeep.integrity.fields import status_of, timestamp_of
from todokeep.models import ActivityWindow, Metrics, OldestPending, Task, TaskStatus


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_week(now: datetime) -> datetime:
    """Monday 00:00 of the week containing *now*."""
    return start_of_day(now) - timedelta(days=now.weekday())


def compute_metrics(tasks: list[Task], now: datetime) -> Metrics:
    """Aggregate *tasks* into counts, ratios and activity windows.

    Args:
        tasks: Point-in-time snapshot of the task set
        now: Reference time for ages and activity windows

    Returns:
        Metrics for the snapshot
    """
    by_state = {status.value: 0 for status in TaskStatus}
    durations: list[float] = []
    oldest: tuple[datetime, Task] | None = None
    windows = {
        "today": ActivityWindow(since=start_of_day(now)),
        "this_week": ActivityWindow(since=start_of_week(now)),
    }

    for task in tasks:
        status = status_of(task)
        if status is not None:
            by_state[status.value] += 1

        created = timestamp_of(task, "created_at")
        completed = timestamp_of(task, "completed_at")
        if created is not None and completed is not None and completed >= created:
            durations.append((completed - created).total_seconds())

        if status == TaskStatus.PENDING and created is not None:
            if oldest is None or created < oldest[0]:
                oldest = (created, task)

        for window in windows.values():
            if created is not None and window.since <= created <= now:
                window.created += 1
            if completed is not None and window.since <= completed <= now:
                window.completed += 1

    total = len(tasks)
    resolved = by_state[TaskStatus.COMPLETED.value] + by_state[TaskStatus.ARCHIVED.value]

    oldest_pending = None
    if oldest is not None:
        created, task = oldest
        oldest_pending = OldestPending(
            id=str(task.id),
            content=str(task.content),
            created_at=created,
            age_seconds=max((now - created).total_seconds(), 0.0),
        )

    return Metrics(
        total=total,
        by_state=by_state,
        completion_rate=resolved / total if total else 0.0,
        average_completion_seconds=sum(durations) / len(durations) if durations else None,
        oldest_pending=oldest_pending,
        activity=windows,
    )
