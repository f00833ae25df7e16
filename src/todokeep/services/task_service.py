"""Task service - Business logic for task operations.

This service layer sits between commands and the repository. It owns the
mutation path for tasks: the lifecycle state machine, dense ordering, tag
normalization and duplicate prevention. Every successful mutation returns a
copy of the resulting task and emits exactly one event.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from todokeep.integrity.fields import status_of, timestamp_of
from todokeep.models import (
    DUPLICATE_SCOPE,
    EventKind,
    IntegrityReport,
    Metrics,
    RepairOptions,
    RepairResult,
    RepairSummary,
    Task,
    TaskEvent,
    TaskFilters,
    TaskStatus,
    can_transition,
    normalize_tags,
)
from todokeep.models.exceptions import (
    DuplicateContentError,
    InvalidOrderError,
    InvalidTransitionError,
    ItemNotFoundError,
    OutsideReopenWindowError,
    ValidationError,
)
from todokeep.repositories import TaskRepository
from todokeep.services.events import EventBus, EventListener
from todokeep.services.export_service import render_snapshot
from todokeep.services.integrity_service import IntegrityService
from todokeep.services.metrics import compute_metrics
from todokeep.utils.helpers import generate_uuid, utc_now

logger = logging.getLogger(__name__)

DEFAULT_REOPEN_WINDOW = timedelta(hours=24)


class TaskService:
    """Service for task business logic.

    This service encapsulates business rules and orchestrates task operations
    using the task repository.
    """

    def __init__(
        self,
        task_repository: TaskRepository,
        *,
        reopen_window: timedelta | None = DEFAULT_REOPEN_WINDOW,
        clock: Callable[[], datetime] = utc_now,
        events: EventBus | None = None,
        history_size: int = 50,
    ):
        """Initialize the task service.

        Args:
            task_repository: TaskRepository implementation for data access
            reopen_window: How long after completion a task may be reopened;
                None disables the limit
            clock: Source of the current time (injectable for tests)
            events: Event bus; a private one is created if omitted
            history_size: Number of scheduled repair summaries to keep
        """
        self.repository = task_repository
        self.reopen_window = reopen_window
        self._clock = clock
        self.events = events or EventBus()
        self.integrity = IntegrityService(
            task_repository,
            emit=self.events.emit,
            clock=clock,
            history_size=history_size,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def add(
        self,
        content: str,
        tags: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Task:
        """Create a new pending task at the end of the ordering.

        Args:
            content: Task description (required, non-blank)
            tags: Tags; normalized before storing
            metadata: Auxiliary key/value data

        Returns:
            Created Task object

        Raises:
            ValidationError: If content is blank
            DuplicateContentError: If a pending or active task has the same content
        """
        text = self._clean_content(content)
        with self.repository.transaction():
            self._ensure_unique(text)
            now = self._clock()
            task = Task(
                id=generate_uuid(),
                content=text,
                status=TaskStatus.PENDING,
                order=self.repository.next_order(),
                tags=normalize_tags(tags),
                metadata=dict(metadata or {}),
                created_at=now,
                updated_at=now,
            )
            stored = self.repository.add(task)
            self._emit(EventKind.TASK_ADDED, now, stored)
        return stored

    def start(self, task_id: str) -> Task:
        """Move a pending task to active."""
        return self._transition(task_id, TaskStatus.ACTIVE, EventKind.TASK_STARTED)

    def complete(self, task_id: str) -> Task:
        """Move an active task to completed and stamp the completion time."""
        return self._transition(task_id, TaskStatus.COMPLETED, EventKind.TASK_COMPLETED)

    def reopen(self, task_id: str) -> Task:
        """Return a completed task to pending within the reopen window.

        The window is inclusive: reopening exactly ``reopen_window`` after
        completion succeeds. The previous completion time is kept until the
        task is completed again.

        Raises:
            ItemNotFoundError: If the task does not exist
            InvalidTransitionError: If the task is not completed
            OutsideReopenWindowError: If the window has passed
        """
        with self.repository.transaction():
            task = self.repository.get(task_id)
            if status_of(task) != TaskStatus.COMPLETED:
                raise InvalidTransitionError(
                    f"Only completed tasks can be reopened (task is {_state(task)})"
                )
            now = self._clock()
            if self.reopen_window is not None:
                completed_at = timestamp_of(task, "completed_at")
                if completed_at is None:
                    raise OutsideReopenWindowError(
                        "Completion time is missing; cannot check the reopen window"
                    )
                if now - completed_at > self.reopen_window:
                    raise OutsideReopenWindowError(
                        f"Task was completed more than {_hours(self.reopen_window)} ago"
                    )
            task.status = TaskStatus.PENDING
            task.updated_at = now
            stored = self.repository.update(task)
            self._emit(EventKind.TASK_REOPENED, now, stored)
        return stored

    def update(
        self,
        task_id: str,
        content: str | None = None,
        tags: list[str] | None = None,
    ) -> Task:
        """Edit content and/or tags; state and order are untouched.

        Args:
            task_id: Task to edit
            content: New content, or None to keep it
            tags: New tags (``[]`` clears them), or None to keep them

        Raises:
            ItemNotFoundError: If the task does not exist
            ValidationError: If content is blank
            DuplicateContentError: If the new content collides with another
                pending or active task
        """
        with self.repository.transaction():
            task = self.repository.get(task_id)
            changes: list[str] = []

            if content is not None:
                text = self._clean_content(content)
                if text != task.content:
                    if status_of(task) in DUPLICATE_SCOPE:
                        self._ensure_unique(text, exclude_id=task.id)
                    task.content = text
                    changes.append("content")

            if tags is not None:
                normalized = normalize_tags(tags)
                if normalized != task.tags:
                    task.tags = normalized
                    changes.append("tags")

            if not changes:
                return task

            now = self._clock()
            task.updated_at = now
            stored = self.repository.update(task)
            self._emit(EventKind.TASK_UPDATED, now, stored, changes=changes)
        return stored

    def reorder(self, ordered_ids: list[str]) -> list[Task]:
        """Reassign orders so non-archived tasks follow *ordered_ids*.

        Args:
            ordered_ids: Every non-archived task id, each exactly once

        Returns:
            Non-archived tasks in their new order

        Raises:
            InvalidOrderError: On a duplicate, unknown or archived id, or a
                length mismatch; existing orders are left unchanged
        """
        with self.repository.transaction():
            now = self._clock()
            changed = self.repository.apply_order(list(ordered_ids), now=now)
            if changed:
                self.events.emit(
                    TaskEvent(
                        kind=EventKind.TASK_REORDERED,
                        timestamp=now,
                        payload={
                            "order": self.repository.get_order_sequence(),
                            "changed": [task.id for task in changed],
                        },
                    )
                )
            return self._ordered()

    def move(self, task_id: str, position: int) -> list[Task]:
        """Move one task to *position* in the ordering (0-based).

        Raises:
            ItemNotFoundError: If the task does not exist
            InvalidOrderError: If the task is archived or the position is out of range
        """
        with self.repository.transaction():
            sequence = self.repository.get_order_sequence()
            if task_id not in sequence:
                self.repository.get(task_id)
                raise InvalidOrderError("Archived tasks are not part of the ordering")
            if not 0 <= position < len(sequence):
                raise InvalidOrderError(
                    f"Position {position} is out of range 0..{len(sequence) - 1}"
                )
            sequence.remove(task_id)
            sequence.insert(position, task_id)
            return self.reorder(sequence)

    def archive(self, task_id: str) -> Task:
        """Archive one completed task and close the gap it leaves in the ordering.

        Raises:
            ItemNotFoundError: If the task does not exist
            InvalidTransitionError: If the task is not completed
        """
        with self.repository.transaction():
            task = self.repository.get(task_id)
            self._check_transition(task, TaskStatus.ARCHIVED)
            now = self._clock()
            stored = self._archive(task, now)
            self.repository.densify_order()
            self.events.emit(
                TaskEvent(
                    kind=EventKind.ARCHIVE_COMPLETED,
                    timestamp=now,
                    task_id=stored.id,
                    payload={"archived_ids": [stored.id]},
                )
            )
        return stored

    def archive_completed(self) -> list[str]:
        """Archive every completed task in one batch.

        Returns:
            Ids of the archived tasks (empty when nothing was completed)
        """
        with self.repository.transaction():
            completed = self.repository.list_by_state(TaskStatus.COMPLETED)
            if not completed:
                return []
            now = self._clock()
            archived = [self._archive(task, now).id for task in completed]
            self.repository.densify_order()
            self.events.emit(
                TaskEvent(
                    kind=EventKind.ARCHIVE_COMPLETED,
                    timestamp=now,
                    payload={"archived_ids": archived},
                )
            )
        logger.info("Archived %d completed task(s)", len(archived))
        return archived

    def delete(self, task_id: str) -> Task:
        """Remove a task permanently.

        Raises:
            ItemNotFoundError: If the task does not exist
        """
        with self.repository.transaction():
            removed = self.repository.delete(task_id)
            self.repository.densify_order()
            self._emit(EventKind.TASK_DELETED, self._clock(), removed)
        return removed

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_task(self, task_id: str) -> Task | None:
        """Get a task by ID, or None if it does not exist."""
        try:
            return self.repository.get(task_id)
        except ItemNotFoundError:
            return None

    def list_tasks(
        self,
        *,
        status: TaskStatus | str | None = None,
        tag: str | None = None,
        text: str | None = None,
        include_archived: bool = False,
        sort: str = "order",
    ) -> list[Task]:
        """List tasks with filtering.

        Args:
            status: Filter by lifecycle state
            tag: Filter by tag
            text: Case-insensitive substring of the content
            include_archived: Show archived tasks when no status is given
            sort: "order" (archived last) or "created"

        Returns:
            List of Task objects matching every given filter
        """
        try:
            filters = TaskFilters(
                status=status,
                tag=tag,
                text=text,
                include_archived=include_archived,
                sort=sort,
            )
        except ValueError as e:
            raise ValidationError(f"Invalid filters: {e}") from e
        return self.repository.list_all(filters)

    def list_all(self) -> list[Task]:
        return self.repository.list_all(TaskFilters(include_archived=True))

    def list_by_state(self, status: TaskStatus) -> list[Task]:
        return self.repository.list_by_state(status)

    def list_by_tags(self, tags: list[str], match_all: bool = False) -> list[Task]:
        return self.repository.list_by_tags(tags, match_all=match_all)

    def list_active(self) -> list[Task]:
        """Open work: pending and active tasks, in order."""
        return [t for t in self.repository.list_all() if status_of(t) in DUPLICATE_SCOPE]

    def get_metrics(self) -> Metrics:
        return compute_metrics(self.repository.snapshot(), self._clock())

    def snapshot(self) -> list[Task]:
        """Point-in-time copy of every task."""
        return self.repository.snapshot()

    def export(self, fmt: str = "md", include_archived: bool = False) -> str:
        """Render the current state as markdown or JSON; never mutates."""
        tasks = self.repository.snapshot()
        now = self._clock()
        return render_snapshot(
            tasks,
            compute_metrics(tasks, now),
            fmt,
            include_archived=include_archived,
            generated_at=now,
        )

    # ------------------------------------------------------------------
    # Integrity
    # ------------------------------------------------------------------

    def check_integrity(self) -> IntegrityReport:
        return self.integrity.check()

    def repair_integrity(self, options: RepairOptions | None = None) -> RepairResult:
        return self.integrity.repair(options)

    def schedule_integrity_repair(
        self, interval_seconds: float, options: RepairOptions | None = None
    ) -> str:
        return self.integrity.schedule(interval_seconds, options)

    def cancel_scheduled_repair(self, handle: str) -> bool:
        return self.integrity.cancel(handle)

    def get_repair_history(self, limit: int | None = None) -> list[RepairSummary]:
        return self.integrity.history(limit)

    # ------------------------------------------------------------------
    # Events and resources
    # ------------------------------------------------------------------

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        return self.events.subscribe(listener)

    def flush(self) -> None:
        self.repository.flush()

    def close(self) -> None:
        """Stop scheduled repairs and flush pending writes."""
        self.integrity.shutdown()
        self.repository.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _transition(self, task_id: str, target: TaskStatus, kind: EventKind) -> Task:
        with self.repository.transaction():
            task = self.repository.get(task_id)
            self._check_transition(task, target)
            now = self._clock()
            task.status = target
            task.updated_at = now
            if target == TaskStatus.COMPLETED:
                task.completed_at = now
            stored = self.repository.update(task)
            self._emit(kind, now, stored)
        return stored

    def _check_transition(self, task: Task, target: TaskStatus) -> None:
        current = status_of(task)
        if current is None or not can_transition(current, target):
            raise InvalidTransitionError(
                f"Cannot move task from {_state(task)} to {target.value}"
            )

    def _archive(self, task: Task, now: datetime) -> Task:
        task.status = TaskStatus.ARCHIVED
        task.archived_at = now
        task.updated_at = now
        task.order = None
        return self.repository.update(task)

    def _ensure_unique(self, content: str, exclude_id: str | None = None) -> None:
        existing = self.repository.find_duplicate(content, exclude_id=exclude_id)
        if existing is not None:
            raise DuplicateContentError(
                f"A {_state(existing)} task with the same content exists: {existing.id}",
                existing_id=existing.id,
            )

    def _clean_content(self, content: str) -> str:
        if not isinstance(content, str) or not content.strip():
            raise ValidationError("Content must not be empty")
        return content.strip()

    def _ordered(self) -> list[Task]:
        return [
            t
            for t in self.repository.list_all()
            if status_of(t) != TaskStatus.ARCHIVED
        ]

    def _emit(self, kind: EventKind, now: datetime, task: Task, **payload: Any) -> None:
        self.events.emit(
            TaskEvent(
                kind=kind,
                timestamp=now,
                task_id=task.id,
                payload={"task": task.model_dump(mode="json", warnings=False), **payload},
            )
        )


def _state(task: Task) -> str:
    status = status_of(task)
    return status.value if status is not None else repr(getattr(task, "status", None))


def _hours(window: timedelta) -> str:
    hours = window.total_seconds() / 3600
    return f"{hours:g}h"
