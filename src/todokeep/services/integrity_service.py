"""Integrity service - check, repair and scheduled repair of the task set."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime

from todokeep.integrity import (
    REPAIR_PRIORITY,
    RemediationNotAvailable,
    RepairScheduler,
    apply_remediation,
    detect_anomalies,
)
from todokeep.integrity.scheduler import DEFAULT_HISTORY_SIZE
from todokeep.models import (
    Anomaly,
    EventKind,
    IntegrityReport,
    RepairError,
    RepairOptions,
    RepairResult,
    RepairSummary,
    Task,
    TaskEvent,
)
from todokeep.models.integrity import count_by_severity
from todokeep.repositories import TaskRepository
from todokeep.utils.helpers import utc_now

logger = logging.getLogger(__name__)

# One pass fixes field-level problems; later passes pick up what they expose.
MAX_REPAIR_PASSES = 5

_PRIORITY = {anomaly_type: rank for rank, anomaly_type in enumerate(REPAIR_PRIORITY)}


def _anomaly_key(anomaly: Anomaly) -> tuple:
    return (
        anomaly.type.value,
        anomaly.details.get("index"),
        anomaly.details.get("field"),
        anomaly.details.get("issue"),
        anomaly.details.get("reference"),
    )


class IntegrityService:
    """Service for integrity diagnostics and self-repair.

    Detection always runs over a read-only snapshot. Remediations run on a
    working copy that is committed with a single ``replace_all``, so one
    repair run is one logical mutation.
    """

    def __init__(
        self,
        repository: TaskRepository,
        emit: Callable[[TaskEvent], None] | None = None,
        clock: Callable[[], datetime] = utc_now,
        history_size: int = DEFAULT_HISTORY_SIZE,
    ):
        """Initialize the integrity service.

        Args:
            repository: TaskRepository implementation for data access
            emit: Event sink for integrity_repair events
            clock: Source of the current time
            history_size: Number of scheduled-run summaries to keep
        """
        self.repository = repository
        self._emit = emit
        self._clock = clock
        self.scheduler = RepairScheduler(self.repair, history_size=history_size, clock=clock)

    def check(self) -> IntegrityReport:
        """Run every detector; never mutates."""
        now = self._clock()
        snapshot = self.repository.snapshot()
        anomalies = self.repository.detect_anomalies(now)
        return IntegrityReport(
            checked_at=now,
            total_records=len(snapshot),
            anomalies=anomalies,
        )

    def repair(self, options: RepairOptions | None = None) -> RepairResult:
        """Detect and remediate anomalies selected by *options*.

        Args:
            options: Filters, budget and dry-run switch

        Returns:
            RepairResult with counts applied/remaining and per-attempt errors
        """
        options = options or RepairOptions()
        started = time.perf_counter()

        with self.repository.transaction():
            now = self._clock()
            considered = [a for a in self.repository.detect_anomalies(now) if options.accepts(a)]
            result = RepairResult(
                dry_run=options.dry_run,
                detected=len(considered),
                by_severity=count_by_severity(considered),
                anomalies=considered,
            )

            if options.dry_run or not considered:
                result.remaining = len(considered)
                result.duration_ms = (time.perf_counter() - started) * 1000
                return result

            working = self.repository.snapshot()
            budget = options.max_repairs
            unavailable: set[tuple] = set()
            failed: set[tuple] = set()
            anomalies = considered

            for _ in range(MAX_REPAIR_PASSES):
                progressed = False
                for anomaly in sorted(anomalies, key=lambda a: _PRIORITY.get(a.type, len(_PRIORITY))):
                    if budget is not None and result.applied >= budget:
                        break
                    key = _anomaly_key(anomaly)
                    if key in unavailable or key in failed:
                        continue
                    try:
                        changed = apply_remediation(anomaly, working, now)
                    except RemediationNotAvailable as e:
                        unavailable.add(key)
                        result.skipped += 1
                        logger.debug("No remediation for %s: %s", anomaly.type.value, e)
                        continue
                    except (TypeError, ValueError, AttributeError) as e:
                        failed.add(key)
                        result.errors.append(
                            RepairError(
                                anomaly_type=anomaly.type,
                                task_id=anomaly.task_id,
                                message=f"{type(e).__name__}: {e}",
                            )
                        )
                        logger.warning("Remediation of %s failed: %s", anomaly.type.value, e)
                        continue
                    if changed:
                        result.applied += 1
                        progressed = True

                if not progressed or (budget is not None and result.applied >= budget):
                    break
                anomalies = [a for a in self._detect(working, now) if options.accepts(a)]

            if result.applied:
                self.repository.replace_all(working)

            result.remaining = len(
                [a for a in self.repository.detect_anomalies(now) if options.accepts(a)]
            )

        result.duration_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "Integrity repair: detected=%d applied=%d skipped=%d remaining=%d errors=%d",
            result.detected,
            result.applied,
            result.skipped,
            result.remaining,
            len(result.errors),
        )
        if result.changed and options.emit_events and self._emit is not None:
            self._emit(
                TaskEvent(
                    kind=EventKind.INTEGRITY_REPAIR,
                    timestamp=now,
                    payload={
                        "detected": result.detected,
                        "applied": result.applied,
                        "remaining": result.remaining,
                        "by_severity": result.by_severity,
                        "errors": len(result.errors),
                    },
                )
            )
        return result

    def schedule(self, interval_seconds: float, options: RepairOptions | None = None) -> str:
        return self.scheduler.schedule(interval_seconds, options)

    def cancel(self, handle: str) -> bool:
        return self.scheduler.cancel(handle)

    def history(self, limit: int | None = None) -> list[RepairSummary]:
        return self.scheduler.history(limit)

    def shutdown(self) -> None:
        self.scheduler.shutdown()

    def _detect(self, tasks: list[Task], now: datetime) -> list[Anomaly]:
        tolerance = getattr(self.repository, "future_tolerance", None)
        if tolerance is None:
            return detect_anomalies(tasks, now=now)
        return detect_anomalies(tasks, now=now, future_tolerance=tolerance)
