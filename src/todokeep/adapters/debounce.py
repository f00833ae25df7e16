"""Debounced writer owning all writes to one storage adapter.

Mutations call ``schedule()``; bursts inside the debounce window coalesce into
a single ``adapter.save``. The record snapshot is taken when the write runs,
so the newest in-memory state is what reaches the store.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from todokeep.adapters.base import Record, StorageAdapter
from todokeep.models.exceptions import StorageError

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 250


class DebouncedWriter:
    """Coalesce dirty signals into debounced writes on a background timer."""

    def __init__(
        self,
        adapter: StorageAdapter,
        snapshot: Callable[[], list[Record]],
        delay_ms: int = DEFAULT_DEBOUNCE_MS,
    ):
        """Initialize the writer.

        Args:
            adapter: Adapter that receives the writes
            snapshot: Returns the record set to persist
            delay_ms: Debounce window; 0 writes inline on every schedule()
        """
        self.adapter = adapter
        self.delay = max(delay_ms, 0) / 1000.0
        self._snapshot = snapshot
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._dirty = False
        self._error: StorageError | None = None
        self._closed = False
        self.write_count = 0

    @property
    def pending(self) -> bool:
        """True while changes are waiting to be written."""
        with self._lock:
            return self._dirty

    def schedule(self) -> None:
        """Mark the store dirty and (re)start the debounce timer.

        Raises:
            StorageError: A previous background write failed after its retries.
                The data is still dirty and will be written again.
        """
        with self._lock:
            self._dirty = True
            error, self._error = self._error, None
            inline = self.delay <= 0 or self._closed
            if not inline:
                if self._timer is not None:
                    self._timer.cancel()
                self._timer = threading.Timer(self.delay, self._on_timer)
                self._timer.daemon = True
                self._timer.start()

        if inline:
            self.flush()
        if error is not None:
            raise error

    def flush(self) -> None:
        """Write pending changes now, synchronously.

        Raises:
            StorageError: If the adapter fails after its retries
        """
        with self._write_lock:
            with self._lock:
                if self._timer is not None:
                    self._timer.cancel()
                    self._timer = None
                if not self._dirty:
                    return
                self._dirty = False

            records = self._snapshot()
            try:
                self.adapter.save(records)
            except StorageError:
                with self._lock:
                    self._dirty = True
                raise

            with self._lock:
                self._error = None
                self.write_count += 1

    def close(self) -> None:
        """Cancel the timer and flush anything pending."""
        with self._lock:
            self._closed = True
        self.flush()

    def _on_timer(self) -> None:
        try:
            self.flush()
        except StorageError as e:
            logger.error("Debounced write failed: %s", e)
            with self._lock:
                self._error = e
