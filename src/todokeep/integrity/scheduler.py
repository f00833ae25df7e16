"""Periodic background integrity repair."""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable
from datetime import datetime

from todokeep.models.exceptions import ValidationError
from todokeep.models.integrity import RepairOptions, RepairResult, RepairSummary
from todokeep.utils.helpers import generate_uuid, utc_now

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_SIZE = 50


class _Job:
    def __init__(self, handle: str, interval: float, options: RepairOptions):
        self.handle = handle
        self.interval = interval
        self.options = options
        self.stop = threading.Event()
        self.thread: threading.Thread | None = None


class RepairScheduler:
    """Run a repair callable on fixed intervals, one daemon thread per handle.

    Cancelling a handle takes effect before its next tick; a run already in
    progress is allowed to finish.
    """

    def __init__(
        self,
        run_repair: Callable[[RepairOptions], RepairResult],
        history_size: int = DEFAULT_HISTORY_SIZE,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._run_repair = run_repair
        self._clock = clock
        self._lock = threading.Lock()
        self._jobs: dict[str, _Job] = {}
        self._history: deque[RepairSummary] = deque(maxlen=history_size)

    def schedule(self, interval_seconds: float, options: RepairOptions | None = None) -> str:
        """Start a periodic repair job.

        Args:
            interval_seconds: Delay between runs; the first run happens after one interval
            options: Repair options used for every run

        Returns:
            Handle for cancel()

        Raises:
            ValidationError: If the interval is not positive
        """
        if interval_seconds <= 0:
            raise ValidationError("Repair interval must be positive")

        job = _Job(generate_uuid(), float(interval_seconds), options or RepairOptions())
        job.thread = threading.Thread(
            target=self._loop,
            args=(job,),
            name=f"todokeep-repair-{job.handle[:8]}",
            daemon=True,
        )
        with self._lock:
            self._jobs[job.handle] = job
        job.thread.start()
        logger.info("Scheduled integrity repair %s every %.1fs", job.handle, job.interval)
        return job.handle

    def cancel(self, handle: str) -> bool:
        """Stop a job. Returns False if the handle is unknown."""
        with self._lock:
            job = self._jobs.pop(handle, None)
        if job is None:
            return False
        job.stop.set()
        logger.info("Cancelled integrity repair %s", handle)
        return True

    def history(self, limit: int | None = None) -> list[RepairSummary]:
        """Return recorded run summaries, newest last."""
        with self._lock:
            entries = list(self._history)
        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []
        return [entry.model_copy(deep=True) for entry in entries]

    @property
    def handles(self) -> list[str]:
        with self._lock:
            return list(self._jobs)

    def run_once(self, handle: str, options: RepairOptions) -> RepairSummary:
        """Run one repair and record its summary."""
        started = self._clock()
        try:
            result = self._run_repair(options)
        except Exception as e:
            logger.exception("Scheduled integrity repair %s failed", handle)
            summary = RepairSummary(
                timestamp=started,
                handle=handle,
                detected=0,
                applied=0,
                remaining=0,
                duration_ms=0.0,
                errors=[f"{type(e).__name__}: {e}"],
            )
        else:
            summary = RepairSummary(
                timestamp=started,
                handle=handle,
                detected=result.detected,
                applied=result.applied,
                remaining=result.remaining,
                duration_ms=result.duration_ms,
                by_severity=dict(result.by_severity),
                errors=[f"{err.anomaly_type.value}: {err.message}" for err in result.errors],
            )
        with self._lock:
            self._history.append(summary)
        return summary

    def shutdown(self, wait: bool = False) -> None:
        """Cancel every job; optionally wait for in-flight runs to finish."""
        with self._lock:
            jobs = list(self._jobs.values())
            self._jobs.clear()
        for job in jobs:
            job.stop.set()
        if wait:
            for job in jobs:
                if job.thread is not None and job.thread is not threading.current_thread():
                    job.thread.join()

    def _loop(self, job: _Job) -> None:
        while not job.stop.wait(job.interval):
            self.run_once(job.handle, job.options)
