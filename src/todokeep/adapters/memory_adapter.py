"""In-memory storage adapter with the same semantics as the file adapter."""

from __future__ import annotations

import copy

from todokeep.adapters.base import Record, StorageAdapter
from todokeep.adapters.envelope import decode_envelope, encode_envelope


class MemoryStorageAdapter(StorageAdapter):
    """Record store kept in process memory, used for fast deterministic tests."""

    def __init__(self, records: list[Record] | None = None):
        self._envelope = encode_envelope(copy.deepcopy(records or []))
        self.save_count = 0

    @property
    def storage_type(self) -> str:
        return "memory"

    def load(self) -> list[Record]:
        return copy.deepcopy(decode_envelope(self._envelope))

    def save(self, records: list[Record]) -> None:
        self._envelope = encode_envelope(copy.deepcopy(records))
        self.save_count += 1

    @property
    def records(self) -> list[Record]:
        """Copy of the last persisted record set."""
        return copy.deepcopy(self._envelope["records"])
