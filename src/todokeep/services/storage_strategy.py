"""
Strategy Pattern: Storage Strategy Container

The storage backend (file or memory) is picked once at startup; the
StorageStrategyContext builds the repository from it and the service never
knows which backend it is using.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import timedelta
from pathlib import Path

from todokeep.adapters import (
    FileStorageAdapter,
    MemoryStorageAdapter,
    StorageAdapter,
    StoreTaskRepository,
)
from todokeep.models import RepairOptions
from todokeep.models.config_models import AppConfig, StorageConfig
from todokeep.repositories import TaskRepository
from todokeep.services.task_service import TaskService

logger = logging.getLogger(__name__)


class StorageStrategy(ABC):
    """
    Abstract base class for storage strategies.

    A strategy knows how to build the StorageAdapter for one backend.
    """

    @abstractmethod
    def create_adapter(self) -> StorageAdapter:
        """Create the storage adapter for this strategy."""

    @property
    @abstractmethod
    def storage_type(self) -> str:
        """Get storage type identifier (for logging/debugging)."""


class FileStorageStrategy(StorageStrategy):
    """
    Durable JSON file storage strategy.
    """

    def __init__(self, path: str | Path, storage: StorageConfig | None = None):
        """
        Initialize file strategy.

        Args:
            path: Store file
            storage: Write retry and backup settings
        """
        self.path = Path(path)
        self.storage = storage or StorageConfig()

    def create_adapter(self) -> StorageAdapter:
        return FileStorageAdapter(
            self.path,
            write_attempts=self.storage.write_attempts,
            retry_delay_ms=self.storage.retry_delay_ms,
            keep_backup=self.storage.keep_backup,
        )

    @property
    def storage_type(self) -> str:
        return "file"


class MemoryStorageStrategy(StorageStrategy):
    """
    In-memory storage strategy; nothing outlives the process.
    """

    def create_adapter(self) -> StorageAdapter:
        return MemoryStorageAdapter()

    @property
    def storage_type(self) -> str:
        return "memory"


class StorageStrategyContext:
    """
    Strategy context that provides access to the task repository.

    Usage:
        strategy = FileStorageStrategy("/path/to/todos.json")
        context = StorageStrategyContext(strategy, debounce_ms=250)
        task_repo = context.task_repository
    """

    def __init__(
        self,
        strategy: StorageStrategy,
        debounce_ms: int = 250,
        future_tolerance: timedelta = timedelta(minutes=5),
    ):
        self._strategy = strategy
        self._debounce_ms = debounce_ms
        self._future_tolerance = future_tolerance
        self._task_repo: TaskRepository | None = None

    @property
    def storage_type(self) -> str:
        return self._strategy.storage_type

    @property
    def task_repository(self) -> TaskRepository:
        """Get (and lazily build) the task repository for the current strategy."""
        if self._task_repo is None:
            self._task_repo = StoreTaskRepository(
                self._strategy.create_adapter(),
                debounce_ms=self._debounce_ms,
                future_tolerance=self._future_tolerance,
            )
        return self._task_repo


def build_service(
    config: AppConfig,
    *,
    store_path: str | Path | None = None,
    memory: bool = False,
    reopen_window_hours: float | None = None,
) -> TaskService:
    """Create, load and return a TaskService for *config*.

    Args:
        config: Application configuration
        store_path: Store file (required unless *memory* is set)
        memory: Use the in-memory backend
        reopen_window_hours: Overrides ``lifecycle.reopen_window_hours``

    Raises:
        StorageError: If the store cannot be loaded
    """
    if memory:
        strategy: StorageStrategy = MemoryStorageStrategy()
    else:
        if store_path is None:
            raise ValueError("store_path is required for file storage")
        strategy = FileStorageStrategy(store_path, config.storage)

    context = StorageStrategyContext(
        strategy,
        debounce_ms=config.storage.debounce_ms,
        future_tolerance=timedelta(seconds=config.integrity.future_tolerance_seconds),
    )
    hours = (
        reopen_window_hours
        if reopen_window_hours is not None
        else config.lifecycle.reopen_window_hours
    )
    repository = context.task_repository
    repository.load()

    service = TaskService(
        repository,
        reopen_window=timedelta(hours=hours) if hours is not None else None,
        history_size=config.integrity.history_size,
    )
    logger.debug("Task service ready (%s storage)", context.storage_type)

    if config.integrity.repair_on_startup:
        result = service.repair_integrity(RepairOptions())
        if result.applied:
            logger.info("Startup repair applied %d fix(es)", result.applied)
    return service
