"""Integrity diagnostics models.

Anomalies are computed on demand and never persisted.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class AnomalyType(str, Enum):
    """Classification of a structural inconsistency in the task set."""

    DUPLICATE_ACTIVE_CONTENT = "duplicate_active_content"
    ORDER_GAP = "order_gap"
    INVALID_STATE = "invalid_state"
    MISSING_REQUIRED_FIELD = "missing_required_field"
    TIMESTAMP_DRIFT = "timestamp_drift"
    FUTURE_TIMESTAMP = "future_timestamp"
    NEGATIVE_DURATION = "negative_duration"
    MALFORMED_DATA = "malformed_data"
    ORPHANED_REFERENCE = "orphaned_reference"
    INCONSISTENT_METADATA = "inconsistent_metadata"


class Severity(str, Enum):
    """Anomaly severity."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2}


class Anomaly(BaseModel):
    """A detected structural inconsistency.

    Attributes:
        type: Classification tag
        task_id: Offending task, if any
        description: Human-readable description
        severity: low / medium / high
        suggested_fix: Remediation hint, if one is defined
        details: Detector-specific data
    """

    type: AnomalyType
    task_id: str | None = None
    description: str
    severity: Severity
    suggested_fix: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class IntegrityReport(BaseModel):
    """Result of a read-only integrity check."""

    checked_at: datetime
    total_records: int
    anomalies: list[Anomaly] = Field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not self.anomalies

    @property
    def by_type(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for anomaly in self.anomalies:
            counts[anomaly.type.value] = counts.get(anomaly.type.value, 0) + 1
        return counts

    @property
    def by_severity(self) -> dict[str, int]:
        return count_by_severity(self.anomalies)


class RepairOptions(BaseModel):
    """Options controlling an integrity repair run.

    Attributes:
        dry_run: Report what would be repaired without mutating
        severity_levels: Only consider these severities
        min_severity: Only consider anomalies at or above this severity
        anomaly_types: Only consider these anomaly types
        max_repairs: Upper bound on remediations applied in one run
        emit_events: Emit an integrity_repair event when something changed
    """

    dry_run: bool = False
    severity_levels: set[Severity] | None = None
    min_severity: Severity | None = None
    anomaly_types: set[AnomalyType] | None = None
    max_repairs: int | None = Field(default=None, ge=0)
    emit_events: bool = True

    def accepts(self, anomaly: Anomaly) -> bool:
        if self.severity_levels is not None and anomaly.severity not in self.severity_levels:
            return False
        if self.min_severity is not None and anomaly.severity.rank < self.min_severity.rank:
            return False
        if self.anomaly_types is not None and anomaly.type not in self.anomaly_types:
            return False
        return True


class RepairError(BaseModel):
    """A remediation attempt that failed."""

    anomaly_type: AnomalyType
    task_id: str | None = None
    message: str


class RepairResult(BaseModel):
    """Outcome of one repair run."""

    dry_run: bool = False
    detected: int = 0
    applied: int = 0
    skipped: int = 0
    remaining: int = 0
    errors: list[RepairError] = Field(default_factory=list)
    by_severity: dict[str, int] = Field(default_factory=dict)
    duration_ms: float = 0.0
    anomalies: list[Anomaly] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        return not self.dry_run and self.applied > 0


class RepairSummary(BaseModel):
    """History entry recorded for each scheduled repair run."""

    timestamp: datetime
    handle: str
    detected: int
    applied: int
    remaining: int
    duration_ms: float
    by_severity: dict[str, int] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)


def count_by_severity(anomalies: list[Anomaly]) -> dict[str, int]:
    """Count anomalies per severity, always listing every level."""
    counts = {severity.value: 0 for severity in Severity}
    for anomaly in anomalies:
        counts[anomaly.severity.value] += 1
    return counts
