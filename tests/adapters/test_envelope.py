"""Tests for the versioned store envelope and its migrations."""

import pytest

from todokeep.adapters.envelope import (
    CURRENT_VERSION,
    MIGRATIONS,
    EnvelopeError,
    decode_envelope,
    encode_envelope,
)


def test_encode_wraps_records_in_current_version():
    assert encode_envelope([{"id": "a"}]) == {"version": "v1", "records": [{"id": "a"}]}


def test_decode_current_version():
    records = decode_envelope({"version": CURRENT_VERSION, "records": [{"id": "a"}]})
    assert records == [{"id": "a"}]


def test_legacy_todos_file_is_migrated():
    """Numeric version 1 files use todos, camelCase stamps and in_progress."""
    payload = {
        "version": 1,
        "todos": [
            {
                "id": "t1",
                "content": "Write report",
                "status": "in_progress",
                "createdAt": "2026-01-01T00:00:00Z",
                "updatedAt": "2026-01-02T00:00:00Z",
            },
            {"id": "t2", "content": "Ship it", "status": "completed"},
        ],
    }

    records = decode_envelope(payload)

    assert records[0]["status"] == "active"
    assert records[0]["created_at"] == "2026-01-01T00:00:00Z"
    assert "createdAt" not in records[0]
    assert records[1]["status"] == "completed"


def test_legacy_payload_without_todos_is_rejected():
    with pytest.raises(EnvelopeError):
        decode_envelope({"version": 1, "items": []})


@pytest.mark.parametrize(
    "payload",
    [
        [{"id": "a"}],
        {"records": []},
        {"version": "v99", "records": []},
        {"version": True, "records": []},
        {"version": "v1", "records": "nope"},
        "just text",
    ],
)
def test_unrecognized_payloads_raise(payload):
    with pytest.raises(EnvelopeError):
        decode_envelope(payload)


def test_migrations_are_keyed_by_source_version():
    migration = MIGRATIONS[1]
    assert migration.source_version == 1
    assert migration.target_version == CURRENT_VERSION
    assert migration.description
