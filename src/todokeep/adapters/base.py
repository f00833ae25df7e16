"""Storage adapter contract."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

Record = dict[str, Any]


class StorageAdapter(ABC):
    """Abstract base class for durable, key-less record stores.

    Adapters deal in plain JSON-compatible records; translating records to
    Task models is the repository's job.
    """

    @abstractmethod
    def load(self) -> list[Record]:
        """Return the full record set.

        Raises:
            StorageError: If the store is unreadable and cannot be recovered
        """
        raise NotImplementedError("StorageAdapter.load() must be implemented by adapter")

    @abstractmethod
    def save(self, records: list[Record]) -> None:
        """Persist the full record set durably.

        Raises:
            StorageError: If the write still fails after retries
        """
        raise NotImplementedError("StorageAdapter.save() must be implemented by adapter")

    def close(self) -> None:
        """Release any resources held by the adapter."""

    @property
    @abstractmethod
    def storage_type(self) -> str:
        """Get storage type identifier (for logging/debugging)."""
