"""Storage adapters for todokeep.

Adapters own the physical bytes of the store:
- FileStorageAdapter: durable JSON file with atomic replace, backup and retry
- MemoryStorageAdapter: same contract without file I/O
- StoreTaskRepository: TaskRepository over either of them
"""

from .base import StorageAdapter
from .debounce import DebouncedWriter
from .file_adapter import FileStorageAdapter
from .memory_adapter import MemoryStorageAdapter
from .task_repository import StoreTaskRepository

__all__ = [
    "StorageAdapter",
    "DebouncedWriter",
    "FileStorageAdapter",
    "MemoryStorageAdapter",
    "StoreTaskRepository",
]
