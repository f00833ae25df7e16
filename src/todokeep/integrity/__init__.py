"""Integrity subsystem: anomaly detection, remediation and scheduled repair."""

from .detectors import detect_anomalies
from .repairs import REPAIR_PRIORITY, RemediationNotAvailable, apply_remediation
from .scheduler import RepairScheduler

__all__ = [
    "detect_anomalies",
    "apply_remediation",
    "RemediationNotAvailable",
    "REPAIR_PRIORITY",
    "RepairScheduler",
]
