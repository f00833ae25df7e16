"""todokeep domain models.

This package contains Pydantic models for the task entity, integrity
diagnostics, derived metrics, events and configuration.
"""

from .config_models import AppConfig
from .core import (
    DUPLICATE_SCOPE,
    ORDER_BASE,
    Task,
    TaskFilters,
    TaskStatus,
    can_transition,
    normalize_content,
    normalize_tags,
)
from .events import EventKind, TaskEvent
from .integrity import (
    Anomaly,
    AnomalyType,
    IntegrityReport,
    RepairError,
    RepairOptions,
    RepairResult,
    RepairSummary,
    Severity,
)
from .metrics import ActivityWindow, Metrics, OldestPending

__all__ = [
    # Task models
    "Task",
    "TaskFilters",
    "TaskStatus",
    "ORDER_BASE",
    "DUPLICATE_SCOPE",
    "can_transition",
    "normalize_tags",
    "normalize_content",
    # Integrity models
    "Anomaly",
    "AnomalyType",
    "Severity",
    "IntegrityReport",
    "RepairOptions",
    "RepairResult",
    "RepairError",
    "RepairSummary",
    # Metrics
    "Metrics",
    "ActivityWindow",
    "OldestPending",
    # Events
    "EventKind",
    "TaskEvent",
    # Config
    "AppConfig",
]
