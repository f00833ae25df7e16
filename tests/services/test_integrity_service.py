"""Tests for check/repair through the service layer."""

from datetime import timedelta

import pytest

from conftest import T0, FakeClock
from todokeep.adapters import MemoryStorageAdapter, StoreTaskRepository
from todokeep.models import AnomalyType, EventKind, RepairOptions, Severity, TaskStatus
from todokeep.services.task_service import TaskService

STAMP = (T0 - timedelta(hours=1)).isoformat()


def record(task_id, content, order, status="pending", **extra):
    values = {
        "id": task_id,
        "content": content,
        "status": status,
        "order": order,
        "tags": [],
        "metadata": {},
        "created_at": STAMP,
        "updated_at": STAMP,
    }
    values.update(extra)
    return values


@pytest.fixture()
def broken():
    """Service over a store with a duplicate, a gap in the ordering and unnormalized tags."""
    adapter = MemoryStorageAdapter(
        [
            record("a", "Buy milk", 0),
            record("b", "Write report", 5, tags=["Work"]),
            record("c", "buy MILK", 6),
        ]
    )
    repo = StoreTaskRepository(adapter, debounce_ms=0)
    repo.load()
    service = TaskService(repo, clock=FakeClock())
    received = []
    service.subscribe(received.append)
    service.received = received
    yield service
    service.close()


def test_check_reports_without_mutating(broken):
    before = [t.model_dump() for t in broken.snapshot()]
    metrics = broken.get_metrics()

    report = broken.check_integrity()

    assert report.total_records == 3
    assert report.checked_at == T0
    assert {"duplicate_active_content", "order_gap"} <= set(report.by_type)
    assert set(report.by_severity) == {"low", "medium", "high"}
    assert [t.model_dump() for t in broken.snapshot()] == before
    assert broken.get_metrics() == metrics
    assert broken.received == []


def test_repair_fixes_everything_and_is_idempotent(broken):
    result = broken.repair_integrity()

    assert result.applied > 0
    assert result.remaining == 0
    assert result.errors == []
    assert broken.check_integrity().is_clean

    duplicate = broken.get_task("c")
    assert duplicate.status == TaskStatus.ARCHIVED
    assert duplicate.metadata["archived_reason"] == "duplicate"
    assert broken.get_task("b").order == 1

    again = broken.repair_integrity()
    assert again.detected == 0
    assert again.applied == 0


def test_repair_emits_one_event(broken):
    broken.repair_integrity()
    broken.repair_integrity()

    [event] = broken.received
    assert event.kind == EventKind.INTEGRITY_REPAIR
    assert event.payload["remaining"] == 0
    assert event.payload["applied"] > 0


def test_repair_commits_in_one_write(broken):
    adapter = broken.repository.adapter
    saves = adapter.save_count

    broken.repair_integrity()

    assert adapter.save_count == saves + 1


def test_dry_run_changes_nothing(broken):
    before = [t.model_dump() for t in broken.snapshot()]

    result = broken.repair_integrity(RepairOptions(dry_run=True))

    assert result.dry_run is True
    assert result.detected > 0
    assert result.applied == 0
    assert result.remaining == result.detected
    assert [t.model_dump() for t in broken.snapshot()] == before
    assert broken.received == []


def test_type_filter(broken):
    result = broken.repair_integrity(RepairOptions(anomaly_types={AnomalyType.ORDER_GAP}))

    assert result.applied > 0
    assert all(a.type == AnomalyType.ORDER_GAP for a in result.anomalies)
    assert broken.get_task("c").status == TaskStatus.PENDING
    remaining = broken.check_integrity().by_type
    assert "order_gap" not in remaining
    assert remaining["duplicate_active_content"] == 1


def test_severity_filter(broken):
    result = broken.repair_integrity(RepairOptions(min_severity=Severity.HIGH))
    assert result.detected == 0
    assert result.applied == 0


def test_max_repairs_bounds_the_run(broken):
    result = broken.repair_integrity(RepairOptions(max_repairs=1))

    assert result.applied == 1
    assert broken.get_task("b").tags == ["work"]
    assert broken.check_integrity().by_type["duplicate_active_content"] == 1


def test_unrepairable_anomaly_is_skipped(clock):
    adapter = MemoryStorageAdapter([record("a", "", 0)])
    repo = StoreTaskRepository(adapter, debounce_ms=0)
    repo.load()
    service = TaskService(repo, clock=clock)

    result = service.repair_integrity(RepairOptions(anomaly_types={AnomalyType.MISSING_REQUIRED_FIELD}))

    assert result.skipped == 1
    assert result.applied == 0
    assert result.remaining == 1
    service.close()


def test_schedule_and_cancel_through_service(service):
    handle = service.schedule_integrity_repair(60)
    assert service.cancel_scheduled_repair(handle) is True
    assert service.cancel_scheduled_repair(handle) is False
    assert service.get_repair_history() == []


def test_repair_rekeys_shared_ids(clock):
    adapter = MemoryStorageAdapter([record("same", "Buy milk", 0), record("same", "Write report", 1)])
    repo = StoreTaskRepository(adapter, debounce_ms=0)
    repo.load()
    service = TaskService(repo, clock=clock)

    report = service.check_integrity()
    assert report.by_type == {"malformed_data": 1}
    assert report.anomalies[0].task_id == "same"

    result = service.repair_integrity()

    assert result.applied == 1
    assert result.remaining == 0
    first, second = service.snapshot()
    assert first.id == "same"
    assert second.id != "same"
    service.reorder([second.id, first.id])
    service.delete("same")
    assert [t.content for t in service.snapshot()] == ["Write report"]
    service.close()
