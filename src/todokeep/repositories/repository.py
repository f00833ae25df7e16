"""Repository abstraction layer for todokeep.

This module defines the abstract base class (interface) for task persistence,
following the hexagonal architecture (Ports & Adapters) pattern.

The repository is the only place where duplicate-content and order-sequence
invariants are checked against the full current record set, so every storage
backend enforces the same guarantees.
"""

from __future__ import annotations

import contextlib
from abc import ABC, abstractmethod
from collections.abc import Iterator
from datetime import datetime

from todokeep.models import Anomaly, Task, TaskFilters, TaskStatus


class TaskRepository(ABC):
    """Abstract base class for task persistence operations.

    Tasks returned by any method are copies; changing them has no effect on
    the stored set until they are passed back through ``update``.
    """

    @contextlib.contextmanager
    def transaction(self) -> Iterator[None]:
        """Hold exclusive access across several repository calls."""
        yield

    @abstractmethod
    def load(self) -> int:
        """Load the record set from storage.

        Returns:
            Number of tasks loaded

        Raises:
            NotImplementedError: Must be implemented by concrete adapter
            StorageError: If the store is unreadable and cannot be recovered
        """
        raise NotImplementedError("TaskRepository.load() must be implemented by adapter")

    @abstractmethod
    def list_all(self, filters: TaskFilters | None = None) -> list[Task]:
        """List tasks with optional filtering.

        Args:
            filters: TaskFilters object specifying filter criteria

        Returns:
            List of Task objects matching the filters

        Raises:
            NotImplementedError: Must be implemented by concrete adapter
        """
        raise NotImplementedError(
            "TaskRepository.list_all() must be implemented by adapter"
        )

    @abstractmethod
    def get(self, task_id: str) -> Task:
        """Get a specific task by ID.

        Args:
            task_id: Unique identifier for the task

        Returns:
            Task object

        Raises:
            NotImplementedError: Must be implemented by concrete adapter
            ItemNotFoundError: If task does not exist
        """
        raise NotImplementedError("TaskRepository.get() must be implemented by adapter")

    @abstractmethod
    def list_by_state(self, status: TaskStatus) -> list[Task]:
        """List tasks in one lifecycle state, in order."""
        raise NotImplementedError(
            "TaskRepository.list_by_state() must be implemented by adapter"
        )

    @abstractmethod
    def list_by_tags(self, tags: list[str], match_all: bool = False) -> list[Task]:
        """List tasks carrying any (or all) of *tags*.

        Args:
            tags: Tags to match; normalized before comparison
            match_all: Require every tag instead of at least one

        Raises:
            NotImplementedError: Must be implemented by concrete adapter
        """
        raise NotImplementedError(
            "TaskRepository.list_by_tags() must be implemented by adapter"
        )

    @abstractmethod
    def add(self, task: Task) -> Task:
        """Store a new task.

        Args:
            task: Fully built Task

        Returns:
            Copy of the stored Task

        Raises:
            NotImplementedError: Must be implemented by concrete adapter
            ValidationError: If a task with the same id exists
        """
        raise NotImplementedError("TaskRepository.add() must be implemented by adapter")

    @abstractmethod
    def update(self, task: Task) -> Task:
        """Replace the stored task that has the same id.

        Raises:
            NotImplementedError: Must be implemented by concrete adapter
            ItemNotFoundError: If task does not exist
        """
        raise NotImplementedError(
            "TaskRepository.update() must be implemented by adapter"
        )

    @abstractmethod
    def delete(self, task_id: str) -> Task:
        """Remove a task.

        Returns:
            The removed Task

        Raises:
            NotImplementedError: Must be implemented by concrete adapter
            ItemNotFoundError: If task does not exist
        """
        raise NotImplementedError(
            "TaskRepository.delete() must be implemented by adapter"
        )

    @abstractmethod
    def replace_all(self, tasks: list[Task]) -> None:
        """Swap in a whole new task set as one logical mutation."""
        raise NotImplementedError(
            "TaskRepository.replace_all() must be implemented by adapter"
        )

    @abstractmethod
    def find_duplicate(self, content: str, exclude_id: str | None = None) -> Task | None:
        """Find a pending or active task whose normalized content matches.

        Args:
            content: Content to compare
            exclude_id: Task to ignore (the one being edited)

        Returns:
            The conflicting Task, or None
        """
        raise NotImplementedError(
            "TaskRepository.find_duplicate() must be implemented by adapter"
        )

    @abstractmethod
    def next_order(self) -> int:
        """Order value for a task appended to the end of the sequence."""
        raise NotImplementedError(
            "TaskRepository.next_order() must be implemented by adapter"
        )

    @abstractmethod
    def get_order_sequence(self) -> list[str]:
        """Ids of non-archived tasks in their current order."""
        raise NotImplementedError(
            "TaskRepository.get_order_sequence() must be implemented by adapter"
        )

    @abstractmethod
    def validate_order(self, ordered_ids: list[str]) -> None:
        """Check that *ordered_ids* is a permutation of the non-archived tasks.

        Raises:
            NotImplementedError: Must be implemented by concrete adapter
            InvalidOrderError: On a duplicate id, an unknown or archived id,
                or a length mismatch
        """
        raise NotImplementedError(
            "TaskRepository.validate_order() must be implemented by adapter"
        )

    @abstractmethod
    def apply_order(self, ordered_ids: list[str], now: datetime | None = None) -> list[Task]:
        """Validate and assign dense orders following *ordered_ids*.

        Returns:
            Tasks whose order changed

        Raises:
            NotImplementedError: Must be implemented by concrete adapter
            InvalidOrderError: If the ordering is invalid; nothing changes
        """
        raise NotImplementedError(
            "TaskRepository.apply_order() must be implemented by adapter"
        )

    @abstractmethod
    def densify_order(self) -> bool:
        """Renumber non-archived tasks densely. Returns True if anything changed."""
        raise NotImplementedError(
            "TaskRepository.densify_order() must be implemented by adapter"
        )

    @abstractmethod
    def detect_anomalies(self, now: datetime) -> list[Anomaly]:
        """Run the integrity detectors over the current task set (read-only)."""
        raise NotImplementedError(
            "TaskRepository.detect_anomalies() must be implemented by adapter"
        )

    @abstractmethod
    def snapshot(self) -> list[Task]:
        """Point-in-time copy of every task, in storage order."""
        raise NotImplementedError(
            "TaskRepository.snapshot() must be implemented by adapter"
        )

    def flush(self) -> None:
        """Write pending changes now."""

    def close(self) -> None:
        """Flush and release resources."""
