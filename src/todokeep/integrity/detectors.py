"""Anomaly detectors.

Every detector is a pure function over a snapshot of the task set and never
mutates it. ``details["index"]`` records the task's position in the snapshot
so remediations can find records whose id itself is broken.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta

from todokeep.integrity.fields import (
    TIMESTAMP_FIELDS,
    is_blank,
    is_malformed_timestamp,
    raw_status,
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
    normalize_content,
    normalize_tags,
)
from todokeep.models.integrity import Anomaly, AnomalyType, Severity

DEFAULT_FUTURE_TOLERANCE = timedelta(minutes=5)

# Metadata keys holding references to other tasks.
REFERENCE_KEYS = ("parent_id", "depends_on")

# Unknown states are coerced to the nearest legal predecessor.
STATUS_ALIASES: dict[str, TaskStatus] = {
    "in_progress": TaskStatus.ACTIVE,
    "in-progress": TaskStatus.ACTIVE,
    "inprogress": TaskStatus.ACTIVE,
    "started": TaskStatus.ACTIVE,
    "doing": TaskStatus.ACTIVE,
    "done": TaskStatus.COMPLETED,
    "complete": TaskStatus.COMPLETED,
    "closed": TaskStatus.COMPLETED,
}


def coerce_status(value: object) -> TaskStatus:
    """Map an illegal stored state to the nearest legal one."""
    if isinstance(value, str):
        key = value.strip().lower()
        try:
            return TaskStatus(key)
        except ValueError:
            return STATUS_ALIASES.get(key, TaskStatus.PENDING)
    return TaskStatus.PENDING


def _task_id(task: Task) -> str | None:
    value = getattr(task, "id", None)
    return value if isinstance(value, str) and value.strip() else None


def detect_duplicates(tasks: list[Task]) -> list[Anomaly]:
    groups: dict[str, list[int]] = {}
    for index, task in enumerate(tasks):
        if status_of(task) not in DUPLICATE_SCOPE:
            continue
        content = getattr(task, "content", None)
        if not isinstance(content, str) or not content.strip():
            continue
        groups.setdefault(normalize_content(content), []).append(index)

    anomalies = []
    for content, indexes in groups.items():
        if len(indexes) < 2:
            continue
        ranked = sorted(indexes, key=lambda i: sort_key(tasks[i]))
        keep, extra = ranked[0], ranked[1:]
        anomalies.append(
            Anomaly(
                type=AnomalyType.DUPLICATE_ACTIVE_CONTENT,
                task_id=_task_id(tasks[extra[0]]),
                description=f"{len(indexes)} pending/active tasks share the content {content!r}",
                severity=Severity.MEDIUM,
                suggested_fix="Archive the later duplicates",
                details={
                    "content": content,
                    "ids": [_task_id(tasks[i]) for i in ranked],
                    "count": len(indexes),
                    "keep_index": keep,
                    "indexes": extra,
                    "index": extra[0],
                },
            )
        )
    return anomalies


def detect_order_gaps(tasks: list[Task]) -> list[Anomaly]:
    anomalies = []
    ordered = sorted(
        (i for i, task in enumerate(tasks) if status_of(task) != TaskStatus.ARCHIVED),
        key=lambda i: sort_key(tasks[i]),
    )
    seen: set[int] = set()
    for position, index in enumerate(ordered):
        order = valid_order(tasks[index])
        if order is None:
            # reported as a missing or malformed field
            continue
        expected = ORDER_BASE + position
        if order != expected:
            duplicate = order in seen
            anomalies.append(
                Anomaly(
                    type=AnomalyType.ORDER_GAP,
                    task_id=_task_id(tasks[index]),
                    description=(
                        f"Order {order} is duplicated"
                        if duplicate
                        else f"Expected order {expected}, found {order}"
                    ),
                    severity=Severity.LOW,
                    suggested_fix="Renumber non-archived tasks densely",
                    details={
                        "expected_order": expected,
                        "actual_order": order,
                        "duplicate": duplicate,
                        "index": index,
                    },
                )
            )
        seen.add(order)

    for index, task in enumerate(tasks):
        if status_of(task) == TaskStatus.ARCHIVED and getattr(task, "order", None) is not None:
            anomalies.append(
                Anomaly(
                    type=AnomalyType.ORDER_GAP,
                    task_id=_task_id(task),
                    description="Archived task still holds an order value",
                    severity=Severity.LOW,
                    suggested_fix="Clear the order of archived tasks",
                    details={"actual_order": task.order, "archived": True, "index": index},
                )
            )
    return anomalies


def detect_invalid_states(tasks: list[Task]) -> list[Anomaly]:
    anomalies = []
    for index, task in enumerate(tasks):
        status = status_of(task)
        if status is None:
            value = raw_status(task)
            target = coerce_status(value)
            anomalies.append(
                Anomaly(
                    type=AnomalyType.INVALID_STATE,
                    task_id=_task_id(task),
                    description=f"Unknown state {value!r}",
                    severity=Severity.HIGH,
                    suggested_fix=f"Coerce state to {target.value!r}",
                    details={"issue": "unknown_state", "status": value, "index": index},
                )
            )
            continue
        if status == TaskStatus.COMPLETED and getattr(task, "completed_at", None) is None:
            anomalies.append(
                Anomaly(
                    type=AnomalyType.INVALID_STATE,
                    task_id=_task_id(task),
                    description="Completed task has no completion timestamp",
                    severity=Severity.HIGH,
                    suggested_fix="Stamp completed_at from updated_at",
                    details={"issue": "missing_completed_at", "status": status.value, "index": index},
                )
            )
        if status == TaskStatus.ARCHIVED and getattr(task, "archived_at", None) is None:
            anomalies.append(
                Anomaly(
                    type=AnomalyType.INVALID_STATE,
                    task_id=_task_id(task),
                    description="Archived task has no archival timestamp",
                    severity=Severity.HIGH,
                    suggested_fix="Stamp archived_at from updated_at",
                    details={"issue": "missing_archived_at", "status": status.value, "index": index},
                )
            )
    return anomalies


def detect_missing_fields(tasks: list[Task]) -> list[Anomaly]:
    anomalies = []
    for index, task in enumerate(tasks):
        missing = []
        if is_blank(getattr(task, "id", None)):
            missing.append("id")
        content = getattr(task, "content", None)
        if content is None or (isinstance(content, str) and not content.strip()):
            missing.append("content")
        for field in ("created_at", "updated_at"):
            if getattr(task, field, None) in (None, ""):
                missing.append(field)
        if status_of(task) != TaskStatus.ARCHIVED and getattr(task, "order", None) is None:
            missing.append("order")

        for field in missing:
            anomalies.append(
                Anomaly(
                    type=AnomalyType.MISSING_REQUIRED_FIELD,
                    task_id=_task_id(task),
                    description=f"Required field {field!r} is missing",
                    severity=Severity.HIGH,
                    suggested_fix=(
                        "Edit or delete the task"
                        if field == "content"
                        else f"Fill in {field!r}"
                    ),
                    details={"field": field, "index": index},
                )
            )
    return anomalies


def detect_malformed_data(tasks: list[Task]) -> list[Anomaly]:
    anomalies = []

    def add(task: Task, index: int, field: str, problem: str) -> None:
        anomalies.append(
            Anomaly(
                type=AnomalyType.MALFORMED_DATA,
                task_id=_task_id(task),
                description=f"Field {field!r} {problem}",
                severity=Severity.MEDIUM,
                suggested_fix=f"Reset {field!r} to a valid value",
                details={"field": field, "index": index},
            )
        )

    for index, task in enumerate(tasks):
        for field in TIMESTAMP_FIELDS:
            if is_malformed_timestamp(getattr(task, field, None)):
                add(task, index, field, "is not a valid timestamp")
        content = getattr(task, "content", None)
        if content is not None and not isinstance(content, str):
            add(task, index, "content", "is not text")
        tags = getattr(task, "tags", [])
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            add(task, index, "tags", "is not a list of strings")
        if not isinstance(getattr(task, "metadata", {}), dict):
            add(task, index, "metadata", "is not a key/value mapping")
        order = getattr(task, "order", None)
        if order is not None and valid_order(task) is None:
            add(task, index, "order", "is not a non-negative integer")
    return anomalies


def detect_duplicate_ids(tasks: list[Task]) -> list[Anomaly]:
    first_seen: dict[str, int] = {}
    anomalies = []
    for index, task in enumerate(tasks):
        task_id = _task_id(task)
        if task_id is None:
            # reported as a missing field
            continue
        if task_id not in first_seen:
            first_seen[task_id] = index
            continue
        anomalies.append(
            Anomaly(
                type=AnomalyType.MALFORMED_DATA,
                task_id=task_id,
                description=f"Field 'id' is shared with another task ({task_id!r})",
                severity=Severity.HIGH,
                suggested_fix="Assign a fresh id to every later occurrence",
                details={
                    "field": "id",
                    "duplicate_of": first_seen[task_id],
                    "index": index,
                },
            )
        )
    return anomalies


def detect_timestamp_issues(
    tasks: list[Task], now: datetime, tolerance: timedelta
) -> list[Anomaly]:
    anomalies = []
    horizon = now + tolerance
    for index, task in enumerate(tasks):
        stamps = {field: timestamp_of(task, field) for field in TIMESTAMP_FIELDS}

        for field, value in stamps.items():
            if value is not None and value > horizon:
                anomalies.append(
                    Anomaly(
                        type=AnomalyType.FUTURE_TIMESTAMP,
                        task_id=_task_id(task),
                        description=f"{field} {value.isoformat()} is in the future",
                        severity=Severity.MEDIUM,
                        suggested_fix="Clamp to the current time",
                        details={"field": field, "value": value.isoformat(), "index": index},
                    )
                )

        created = stamps["created_at"]
        if created is not None:
            for field in ("completed_at", "updated_at", "archived_at"):
                value = stamps[field]
                if value is not None and value < created:
                    anomalies.append(
                        Anomaly(
                            type=AnomalyType.NEGATIVE_DURATION,
                            task_id=_task_id(task),
                            description=f"{field} is earlier than created_at",
                            severity=Severity.MEDIUM,
                            suggested_fix=f"Raise {field} to created_at",
                            details={"field": field, "index": index},
                        )
                    )

        updated = stamps["updated_at"]
        if updated is not None:
            for field in ("completed_at", "archived_at"):
                value = stamps[field]
                if value is not None and updated < value:
                    anomalies.append(
                        Anomaly(
                            type=AnomalyType.TIMESTAMP_DRIFT,
                            task_id=_task_id(task),
                            description=f"updated_at is earlier than {field}",
                            severity=Severity.LOW,
                            suggested_fix="Move updated_at to the latest lifecycle timestamp",
                            details={"field": field, "index": index},
                        )
                    )
    return anomalies


def detect_inconsistent_metadata(tasks: list[Task]) -> list[Anomaly]:
    anomalies = []
    for index, task in enumerate(tasks):
        tags = getattr(task, "tags", [])
        if isinstance(tags, list) and all(isinstance(t, str) for t in tags):
            if tags != normalize_tags(tags):
                anomalies.append(
                    Anomaly(
                        type=AnomalyType.INCONSISTENT_METADATA,
                        task_id=_task_id(task),
                        description="Tags are not normalized",
                        severity=Severity.LOW,
                        suggested_fix="Normalize tags",
                        details={"field": "tags", "tags": tags, "index": index},
                    )
                )
        status = status_of(task)
        if status is not None and status != TaskStatus.ARCHIVED:
            if getattr(task, "archived_at", None) is not None:
                anomalies.append(
                    Anomaly(
                        type=AnomalyType.INCONSISTENT_METADATA,
                        task_id=_task_id(task),
                        description=f"{status.value} task carries an archival timestamp",
                        severity=Severity.LOW,
                        suggested_fix="Clear archived_at",
                        details={"field": "archived_at", "index": index},
                    )
                )
    return anomalies


def detect_orphaned_references(tasks: list[Task]) -> list[Anomaly]:
    known = {task_id for task_id in (_task_id(t) for t in tasks) if task_id}
    anomalies = []
    for index, task in enumerate(tasks):
        metadata = getattr(task, "metadata", None)
        if not isinstance(metadata, dict):
            continue
        for key in REFERENCE_KEYS:
            value = metadata.get(key)
            refs = value if isinstance(value, list) else [value]
            for ref in refs:
                if isinstance(ref, str) and ref and ref not in known:
                    anomalies.append(
                        Anomaly(
                            type=AnomalyType.ORPHANED_REFERENCE,
                            task_id=_task_id(task),
                            description=f"metadata.{key} references unknown task {ref!r}",
                            severity=Severity.LOW,
                            suggested_fix="Drop the dangling reference",
                            details={"key": key, "reference": ref, "index": index},
                        )
                    )
    return anomalies


DETECTORS: tuple[Callable[[list[Task]], list[Anomaly]], ...] = (
    detect_duplicates,
    detect_order_gaps,
    detect_invalid_states,
    detect_missing_fields,
    detect_malformed_data,
    detect_duplicate_ids,
    detect_inconsistent_metadata,
    detect_orphaned_references,
)


def detect_anomalies(
    tasks: list[Task],
    *,
    now: datetime,
    future_tolerance: timedelta = DEFAULT_FUTURE_TOLERANCE,
) -> list[Anomaly]:
    """Run the full detector battery over *tasks*."""
    anomalies: list[Anomaly] = []
    for detector in DETECTORS:
        anomalies.extend(detector(tasks))
    anomalies.extend(detect_timestamp_issues(tasks, now, future_tolerance))
    return anomalies
