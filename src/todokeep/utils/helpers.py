"""Small helpers shared by the engine layers."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any


def generate_uuid() -> str:
    """Generate a new UUID as string.

    Returns:
        UUID string (e.g., "123e4567-e89b-12d3-a456-426614174000")
    """
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Get the current timezone-aware UTC time."""
    return datetime.now(UTC)


def parse_timestamp(value: Any) -> datetime | None:
    """Best-effort conversion of a stored timestamp to an aware datetime.

    Accepts datetimes and ISO-8601 strings (a trailing ``Z`` is understood).
    Naive values are assumed to be UTC.

    Returns:
        The parsed datetime, or None when *value* is empty or unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
