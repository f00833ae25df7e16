"""StorageAdapter-backed implementation of TaskRepository."""

from __future__ import annotations

import contextlib
import logging
import threading
from collections.abc import Iterator
from datetime import datetime, timedelta
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from todokeep.adapters.base import Record, StorageAdapter
from todokeep.adapters.debounce import DEFAULT_DEBOUNCE_MS, DebouncedWriter
from todokeep.integrity.detectors import DEFAULT_FUTURE_TOLERANCE, detect_anomalies
from todokeep.integrity.fields import sort_key, status_of, timestamp_of, valid_order
from todokeep.integrity.repairs import renumber
from todokeep.models import (
    DUPLICATE_SCOPE,
    ORDER_BASE,
    Anomaly,
    Task,
    TaskFilters,
    TaskStatus,
    normalize_content,
    normalize_tags,
)
from todokeep.models.exceptions import InvalidOrderError, ItemNotFoundError, ValidationError
from todokeep.repositories import TaskRepository

logger = logging.getLogger(__name__)


def hydrate(record: Record) -> Task:
    """Build a Task from a stored record.

    Records that fail validation are kept as unvalidated models so the
    integrity detectors can report and repair them.
    """
    try:
        return Task.model_validate(record)
    except PydanticValidationError as e:
        logger.warning(
            "Record %r failed validation (%d error(s)); keeping it for repair",
            record.get("id"),
            e.error_count(),
        )
    values: dict[str, Any] = {}
    for name, field in Task.model_fields.items():
        if name in record:
            values[name] = record[name]
        elif field.is_required():
            values[name] = None
    return Task.model_construct(**values)


def dehydrate(task: Task) -> Record:
    """Serialize a Task to a JSON-compatible record."""
    return task.model_dump(mode="json", warnings=False)


class StoreTaskRepository(TaskRepository):
    """Task repository over an in-memory record set persisted by a StorageAdapter.

    The task list is copy-on-write: every mutation builds a new list and no
    stored Task is changed in place, so the writer can snapshot it without
    taking the repository lock.
    """

    def __init__(
        self,
        adapter: StorageAdapter,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        future_tolerance: timedelta = DEFAULT_FUTURE_TOLERANCE,
    ):
        """Initialize the repository.

        Args:
            adapter: Storage adapter holding the durable records
            debounce_ms: Debounce window for writes
            future_tolerance: Clock skew allowed before a timestamp counts as future
        """
        self.adapter = adapter
        self.future_tolerance = future_tolerance
        self._lock = threading.RLock()
        self._tasks: list[Task] = []
        self._depth = 0
        self._write_pending = False
        self.writer = DebouncedWriter(adapter, self._dump_records, debounce_ms)

    @contextlib.contextmanager
    def transaction(self) -> Iterator[None]:
        """Hold the repository lock; writes are scheduled when the outermost block exits."""
        write = False
        try:
            with self._lock:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                    if self._depth == 0 and self._write_pending:
                        self._write_pending = False
                        write = True
        finally:
            if write:
                self.writer.schedule()

    def load(self) -> int:
        records = self.adapter.load()
        tasks = []
        for record in records:
            if not isinstance(record, dict):
                logger.warning("Dropping non-object record: %r", record)
                continue
            tasks.append(hydrate(record))
        with self._lock:
            self._tasks = tasks
        logger.info("Loaded %d task(s) from %s storage", len(tasks), self.adapter.storage_type)
        return len(tasks)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_all(self, filters: TaskFilters | None = None) -> list[Task]:
        filters = filters or TaskFilters()
        tasks = self._tasks
        tag = normalize_tags([filters.tag])[0] if filters.tag and filters.tag.strip() else None
        text = filters.text.strip().lower() if filters.text and filters.text.strip() else None

        result = []
        for task in tasks:
            status = status_of(task)
            if filters.status is not None:
                if status != filters.status:
                    continue
            elif status == TaskStatus.ARCHIVED and not filters.include_archived:
                continue
            if tag is not None and tag not in _tags(task):
                continue
            if text is not None:
                content = task.content if isinstance(task.content, str) else ""
                if text not in content.lower():
                    continue
            result.append(task)

        if filters.sort == "created":
            result.sort(key=lambda t: sort_key(t)[1])
        else:
            result.sort(key=_archived_last)
        return [task.clone() for task in result]

    def get(self, task_id: str) -> Task:
        return self._find(task_id).clone()

    def list_by_state(self, status: TaskStatus) -> list[Task]:
        return self.list_all(TaskFilters(status=status))

    def list_by_tags(self, tags: list[str], match_all: bool = False) -> list[Task]:
        wanted = set(normalize_tags(tags))
        if not wanted:
            return []
        result = []
        for task in sorted(self._tasks, key=_archived_last):
            have = set(_tags(task))
            if (wanted <= have) if match_all else (wanted & have):
                result.append(task.clone())
        return result

    def find_duplicate(self, content: str, exclude_id: str | None = None) -> Task | None:
        key = normalize_content(content)
        for task in self._tasks:
            if task.id == exclude_id or status_of(task) not in DUPLICATE_SCOPE:
                continue
            if isinstance(task.content, str) and normalize_content(task.content) == key:
                return task.clone()
        return None

    def next_order(self) -> int:
        orders = [
            order
            for order in (valid_order(t) for t in self._tasks if status_of(t) != TaskStatus.ARCHIVED)
            if order is not None
        ]
        return max(orders) + 1 if orders else ORDER_BASE

    def get_order_sequence(self) -> list[str]:
        live = [t for t in self._tasks if status_of(t) != TaskStatus.ARCHIVED]
        return [t.id for t in sorted(live, key=sort_key)]

    def validate_order(self, ordered_ids: list[str]) -> None:
        current = self.get_order_sequence()
        known = set(current)
        if len(set(ordered_ids)) != len(ordered_ids):
            raise InvalidOrderError("Ordering contains duplicate ids")
        unknown = [task_id for task_id in ordered_ids if task_id not in known]
        if unknown:
            raise InvalidOrderError(
                f"Ordering references unknown or archived task(s): {', '.join(unknown)}"
            )
        if len(ordered_ids) != len(current):
            raise InvalidOrderError(
                f"Ordering has {len(ordered_ids)} id(s); expected {len(current)}"
            )

    def detect_anomalies(self, now: datetime) -> list[Anomaly]:
        return detect_anomalies(
            self.snapshot(), now=now, future_tolerance=self.future_tolerance
        )

    def snapshot(self) -> list[Task]:
        return [task.clone() for task in self._tasks]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(self, task: Task) -> Task:
        with self._lock:
            if any(t.id == task.id for t in self._tasks):
                raise ValidationError(f"Task id already exists: {task.id}")
            self._tasks = [*self._tasks, task.clone()]
        self._schedule_write()
        return task.clone()

    def update(self, task: Task) -> Task:
        with self._lock:
            index = self._index(task.id)
            tasks = list(self._tasks)
            tasks[index] = task.clone()
            self._tasks = tasks
        self._schedule_write()
        return task.clone()

    def delete(self, task_id: str) -> Task:
        with self._lock:
            index = self._index(task_id)
            tasks = list(self._tasks)
            removed = tasks.pop(index)
            self._tasks = tasks
        self._schedule_write()
        return removed.clone()

    def replace_all(self, tasks: list[Task]) -> None:
        with self._lock:
            self._tasks = [task.clone() for task in tasks]
        self._schedule_write()

    def apply_order(self, ordered_ids: list[str], now: datetime | None = None) -> list[Task]:
        with self._lock:
            self.validate_order(ordered_ids)
            position = {task_id: ORDER_BASE + i for i, task_id in enumerate(ordered_ids)}
            tasks = []
            changed = []
            for task in self._tasks:
                if task.id in position and task.order != position[task.id]:
                    task = task.clone()
                    task.order = position[task.id]
                    if now is not None:
                        task.updated_at = now
                    changed.append(task)
                tasks.append(task)
            if not changed:
                return []
            self._tasks = tasks
        self._schedule_write()
        return [task.clone() for task in changed]

    def densify_order(self) -> bool:
        with self._lock:
            tasks = self.snapshot()
            if not renumber(tasks):
                return False
            self._tasks = tasks
        self._schedule_write()
        return True

    def flush(self) -> None:
        self.writer.flush()

    def close(self) -> None:
        try:
            self.writer.close()
        finally:
            self.adapter.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _find(self, task_id: str) -> Task:
        for task in self._tasks:
            if task.id == task_id:
                return task
        raise ItemNotFoundError(task_id)

    def _index(self, task_id: str) -> int:
        for index, task in enumerate(self._tasks):
            if task.id == task_id:
                return index
        raise ItemNotFoundError(task_id)

    def _dump_records(self) -> list[Record]:
        return [dehydrate(task) for task in self._tasks]

    def _schedule_write(self) -> None:
        with self._lock:
            if self._depth:
                self._write_pending = True
                return
        self.writer.schedule()


def _tags(task: Task) -> list[str]:
    tags = getattr(task, "tags", None)
    return [t for t in tags if isinstance(t, str)] if isinstance(tags, list) else []


def _archived_last(task: Task) -> tuple[int, float, datetime]:
    archived = status_of(task) == TaskStatus.ARCHIVED
    order, created = sort_key(task)
    if archived:
        # archived tasks hold no order; keep them by archival time
        stamp = timestamp_of(task, "archived_at") or created
        return (1, 0.0, stamp)
    return (0, order, created)
