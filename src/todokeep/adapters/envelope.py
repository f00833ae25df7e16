"""Versioned envelope for the persisted record set.

Files are written as ``{"version": "v1", "records": [...]}``. Older formats
are brought forward by a chain of migrations before use; anything that cannot
be recognized raises EnvelopeError so the adapter can try its recovery path.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Literal

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

CURRENT_VERSION = "v1"


class EnvelopeError(ValueError):
    """Raised when a payload is not a recognizable envelope."""


class StoreEnvelope(BaseModel):
    """Current on-disk format."""

    version: Literal["v1"] = CURRENT_VERSION
    records: list[dict[str, Any]]


class EnvelopeMigration(ABC):
    """Base class for forward envelope migrations."""

    @property
    @abstractmethod
    def source_version(self) -> Any:
        """Version tag this migration reads."""

    @property
    @abstractmethod
    def target_version(self) -> Any:
        """Version tag this migration produces."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of the migration."""

    @abstractmethod
    def up(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Return *payload* rewritten in the target format."""


class LegacyTodosMigration(EnvelopeMigration):
    """Numeric ``{"version": 1, "todos": [...]}`` files from the earlier tool."""

    _KEY_MAP = {
        "createdAt": "created_at",
        "updatedAt": "updated_at",
        "completedAt": "completed_at",
        "archivedAt": "archived_at",
    }
    _STATUS_MAP = {"in_progress": "active"}

    source_version = 1
    target_version = CURRENT_VERSION
    description = "Rename todos to records, snake_case timestamps, in_progress -> active"

    def up(self, payload: dict[str, Any]) -> dict[str, Any]:
        todos = payload.get("todos")
        if not isinstance(todos, list):
            raise EnvelopeError("legacy payload has no todos list")
        records = []
        for todo in todos:
            if not isinstance(todo, dict):
                records.append(todo)
                continue
            record = {self._KEY_MAP.get(key, key): value for key, value in todo.items()}
            status = record.get("status")
            record["status"] = self._STATUS_MAP.get(status, status)
            records.append(record)
        return {"version": self.target_version, "records": records}


MIGRATIONS: dict[Any, EnvelopeMigration] = {
    migration.source_version: migration for migration in (LegacyTodosMigration(),)
}


def encode_envelope(records: list[dict[str, Any]]) -> dict[str, Any]:
    """Wrap *records* in the current envelope."""
    return {"version": CURRENT_VERSION, "records": records}


def decode_envelope(payload: Any) -> list[dict[str, Any]]:
    """Validate *payload*, migrating older versions forward.

    Raises:
        EnvelopeError: For unversioned, unknown or malformed payloads
    """
    if not isinstance(payload, dict) or "version" not in payload:
        raise EnvelopeError("payload is not a versioned envelope")

    seen: set[Any] = set()
    while payload.get("version") != CURRENT_VERSION:
        version = payload.get("version")
        # bool is an int subclass; True must not match version 1
        if (
            isinstance(version, bool)
            or not isinstance(version, (str, int))
            or version in seen
        ):
            raise EnvelopeError(f"unsupported envelope version: {version!r}")
        migration = MIGRATIONS.get(version)
        if migration is None:
            raise EnvelopeError(f"unsupported envelope version: {version!r}")
        seen.add(version)
        payload = migration.up(payload)

    try:
        envelope = StoreEnvelope.model_validate(payload)
    except PydanticValidationError as e:
        raise EnvelopeError(f"invalid envelope: {e.error_count()} error(s)") from e
    return envelope.records
