"""Remediations for detected anomalies.

Each remediation works on the current state of a working copy of the task
set, so it is a no-op (returns False) when an earlier remediation in the same
run already resolved the problem.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from todokeep.integrity.detectors import REFERENCE_KEYS, coerce_status
from todokeep.integrity.fields import (
    TIMESTAMP_FIELDS,
    is_blank,
    sort_key,
    status_of,
    timestamp_of,
    valid_order,
)
from todokeep.models.core import (
    DUPLICATE_SCOPE,
    ORDER_BASE,
    Task,
    TaskStatus,
    normalize_tags,
)
from todokeep.models.integrity import Anomaly, AnomalyType
from todokeep.utils.helpers import generate_uuid


class RemediationNotAvailable(Exception):
    """Raised when an anomaly has no automatic remediation."""


def _locate(anomaly: Anomaly, tasks: list[Task]) -> Task:
    index = anomaly.details.get("index")
    if isinstance(index, int) and 0 <= index < len(tasks):
        return tasks[index]
    for task in tasks:
        if anomaly.task_id is not None and getattr(task, "id", None) == anomaly.task_id:
            return task
    raise RemediationNotAvailable(f"task for anomaly {anomaly.type.value} is gone")


def _latest_stamp(task: Task, now: datetime) -> datetime:
    stamps = [timestamp_of(task, field) for field in TIMESTAMP_FIELDS]
    valid = [stamp for stamp in stamps if stamp is not None and stamp <= now]
    return max(valid) if valid else now


def _earliest_stamp(task: Task, now: datetime) -> datetime:
    stamps = [timestamp_of(task, field) for field in TIMESTAMP_FIELDS]
    valid = [stamp for stamp in stamps if stamp is not None and stamp <= now]
    return min(valid) if valid else now


def renumber(tasks: list[Task]) -> bool:
    """Densify the order of non-archived tasks; archived tasks hold None."""
    changed = False
    live = sorted(
        (t for t in tasks if status_of(t) != TaskStatus.ARCHIVED), key=sort_key
    )
    for position, task in enumerate(live, start=ORDER_BASE):
        if getattr(task, "order", None) != position or isinstance(task.order, bool):
            task.order = position
            changed = True
    for task in tasks:
        if status_of(task) == TaskStatus.ARCHIVED and getattr(task, "order", None) is not None:
            task.order = None
            changed = True
    return changed


def _repair_duplicates(anomaly: Anomaly, tasks: list[Task], now: datetime) -> bool:
    changed = False
    for index in anomaly.details.get("indexes", []):
        if not (isinstance(index, int) and 0 <= index < len(tasks)):
            continue
        task = tasks[index]
        if status_of(task) not in DUPLICATE_SCOPE:
            continue
        task.status = TaskStatus.ARCHIVED
        task.archived_at = now
        task.updated_at = now
        task.order = None
        metadata = task.metadata if isinstance(task.metadata, dict) else {}
        metadata["archived_reason"] = "duplicate"
        task.metadata = metadata
        changed = True
    if changed:
        renumber(tasks)
    return changed


def _repair_order(anomaly: Anomaly, tasks: list[Task], now: datetime) -> bool:
    return renumber(tasks)


def _repair_state(anomaly: Anomaly, tasks: list[Task], now: datetime) -> bool:
    task = _locate(anomaly, tasks)
    status = status_of(task)
    if status is None:
        task.status = coerce_status(getattr(task, "status", None))
        return True
    if status == TaskStatus.COMPLETED and getattr(task, "completed_at", None) is None:
        task.completed_at = _latest_stamp(task, now)
        return True
    if status == TaskStatus.ARCHIVED and getattr(task, "archived_at", None) is None:
        task.archived_at = _latest_stamp(task, now)
        return True
    return False


def _next_order(tasks: list[Task]) -> int:
    orders = [
        order
        for order in (valid_order(t) for t in tasks if status_of(t) != TaskStatus.ARCHIVED)
        if order is not None
    ]
    return max(orders) + 1 if orders else ORDER_BASE


def _repair_missing(anomaly: Anomaly, tasks: list[Task], now: datetime) -> bool:
    task = _locate(anomaly, tasks)
    field = anomaly.details.get("field")
    if field == "id":
        if not is_blank(getattr(task, "id", None)):
            return False
        task.id = generate_uuid()
    elif field == "content":
        raise RemediationNotAvailable("empty content must be edited or deleted by hand")
    elif field == "created_at":
        if getattr(task, "created_at", None) not in (None, ""):
            return False
        task.created_at = _earliest_stamp(task, now)
    elif field == "updated_at":
        if getattr(task, "updated_at", None) not in (None, ""):
            return False
        task.updated_at = _latest_stamp(task, now)
    elif field == "order":
        if getattr(task, "order", None) is not None or status_of(task) == TaskStatus.ARCHIVED:
            return False
        task.order = _next_order(tasks)
    else:
        raise RemediationNotAvailable(f"no remediation for missing {field!r}")
    return True


def _coerce_order(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer() and value >= 0:
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _repair_malformed(anomaly: Anomaly, tasks: list[Task], now: datetime) -> bool:
    task = _locate(anomaly, tasks)
    field = anomaly.details.get("field")
    value = getattr(task, field, None) if isinstance(field, str) else None

    if field in TIMESTAMP_FIELDS:
        if value in (None, "") or timestamp_of(task, field) is not None:
            return False
        # Clear first so the fallback ignores the broken value.
        setattr(task, field, None)
        status = status_of(task)
        if field == "created_at":
            task.created_at = _earliest_stamp(task, now)
        elif field == "updated_at":
            task.updated_at = _latest_stamp(task, now)
        elif field == "completed_at" and status == TaskStatus.COMPLETED:
            task.completed_at = _latest_stamp(task, now)
        elif field == "archived_at" and status == TaskStatus.ARCHIVED:
            task.archived_at = _latest_stamp(task, now)
        return True
    if field == "id":
        # The first occurrence keeps the id; later ones are re-keyed.
        index = anomaly.details.get("index")
        if is_blank(value) or not isinstance(index, int):
            return False
        if not any(getattr(t, "id", None) == value for t in tasks[:index]):
            return False
        task.id = generate_uuid()
        return True
    if field == "content":
        if value is None or isinstance(value, str):
            return False
        task.content = str(value)
        return True
    if field == "tags":
        if isinstance(value, list) and all(isinstance(t, str) for t in value):
            return False
        if isinstance(value, str):
            task.tags = normalize_tags(value.split(","))
        elif isinstance(value, (list, tuple)):
            task.tags = normalize_tags([t for t in value if isinstance(t, str)])
        else:
            task.tags = []
        return True
    if field == "metadata":
        if isinstance(value, dict):
            return False
        task.metadata = {}
        return True
    if field == "order":
        if value is None or valid_order(task) is not None:
            return False
        # None is picked up as a missing order on the next pass.
        task.order = _coerce_order(value)
        return True
    raise RemediationNotAvailable(f"no remediation for malformed {field!r}")


def _repair_future(anomaly: Anomaly, tasks: list[Task], now: datetime) -> bool:
    task = _locate(anomaly, tasks)
    field = anomaly.details.get("field")
    value = timestamp_of(task, field)
    if value is None or value <= now:
        return False
    setattr(task, field, now)
    return True


def _repair_negative(anomaly: Anomaly, tasks: list[Task], now: datetime) -> bool:
    task = _locate(anomaly, tasks)
    field = anomaly.details.get("field")
    created = timestamp_of(task, "created_at")
    value = timestamp_of(task, field)
    if created is None or value is None or value >= created:
        return False
    setattr(task, field, created)
    return True


def _repair_drift(anomaly: Anomaly, tasks: list[Task], now: datetime) -> bool:
    task = _locate(anomaly, tasks)
    stamps = [
        timestamp_of(task, field)
        for field in ("updated_at", "completed_at", "archived_at")
    ]
    latest = max((s for s in stamps if s is not None), default=None)
    updated = timestamp_of(task, "updated_at")
    if latest is None or updated is None or updated >= latest:
        return False
    task.updated_at = latest
    return True


def _repair_inconsistent(anomaly: Anomaly, tasks: list[Task], now: datetime) -> bool:
    task = _locate(anomaly, tasks)
    field = anomaly.details.get("field")
    if field == "tags":
        tags = getattr(task, "tags", [])
        if not isinstance(tags, list):
            return False
        normalized = normalize_tags(tags)
        if normalized == tags:
            return False
        task.tags = normalized
        return True
    if field == "archived_at":
        if status_of(task) == TaskStatus.ARCHIVED or getattr(task, "archived_at", None) is None:
            return False
        task.archived_at = None
        return True
    raise RemediationNotAvailable(f"no remediation for inconsistent {field!r}")


def _repair_orphan(anomaly: Anomaly, tasks: list[Task], now: datetime) -> bool:
    task = _locate(anomaly, tasks)
    key = anomaly.details.get("key")
    reference = anomaly.details.get("reference")
    metadata = getattr(task, "metadata", None)
    if key not in REFERENCE_KEYS or not isinstance(metadata, dict) or key not in metadata:
        return False
    value = metadata[key]
    if isinstance(value, list):
        kept = [ref for ref in value if ref != reference]
        if len(kept) == len(value):
            return False
        if kept:
            metadata[key] = kept
        else:
            del metadata[key]
        return True
    if value != reference:
        return False
    del metadata[key]
    return True


REMEDIATIONS: dict[AnomalyType, Callable[[Anomaly, list[Task], datetime], bool]] = {
    AnomalyType.DUPLICATE_ACTIVE_CONTENT: _repair_duplicates,
    AnomalyType.ORDER_GAP: _repair_order,
    AnomalyType.INVALID_STATE: _repair_state,
    AnomalyType.MISSING_REQUIRED_FIELD: _repair_missing,
    AnomalyType.MALFORMED_DATA: _repair_malformed,
    AnomalyType.FUTURE_TIMESTAMP: _repair_future,
    AnomalyType.NEGATIVE_DURATION: _repair_negative,
    AnomalyType.TIMESTAMP_DRIFT: _repair_drift,
    AnomalyType.INCONSISTENT_METADATA: _repair_inconsistent,
    AnomalyType.ORPHANED_REFERENCE: _repair_orphan,
}

# Field-level fixes go first so structural fixes see clean values.
REPAIR_PRIORITY: tuple[AnomalyType, ...] = (
    AnomalyType.MALFORMED_DATA,
    AnomalyType.MISSING_REQUIRED_FIELD,
    AnomalyType.INVALID_STATE,
    AnomalyType.FUTURE_TIMESTAMP,
    AnomalyType.NEGATIVE_DURATION,
    AnomalyType.TIMESTAMP_DRIFT,
    AnomalyType.INCONSISTENT_METADATA,
    AnomalyType.ORPHANED_REFERENCE,
    AnomalyType.DUPLICATE_ACTIVE_CONTENT,
    AnomalyType.ORDER_GAP,
)


def apply_remediation(anomaly: Anomaly, tasks: list[Task], now: datetime) -> bool:
    """Apply the remediation for *anomaly* to *tasks* in place.

    Args:
        anomaly: The anomaly to fix
        tasks: Working copies of the task set
        now: Reference time for stamps and clamping

    Returns:
        True if the task set changed

    Raises:
        RemediationNotAvailable: If the anomaly cannot be fixed automatically
    """
    remediation = REMEDIATIONS.get(anomaly.type)
    if remediation is None:
        raise RemediationNotAvailable(f"no remediation for {anomaly.type.value}")
    return remediation(anomaly, tasks, now)
