"""Repository interfaces for todokeep.

This package contains the abstract base class that defines the contract for
task persistence. This is the "Port" in the Hexagonal Architecture.

The implementation (Adapter) is todokeep.adapters.task_repository, which works
over any StorageAdapter (file or memory).
"""

from .repository import TaskRepository

__all__ = ["TaskRepository"]
