"""Synchronous in-process event stream."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable

from todokeep.models import TaskEvent

logger = logging.getLogger(__name__)
event_logger = logging.getLogger("todokeep.events")

EventListener = Callable[[TaskEvent], None]


class EventBus:
    """Explicit list of subscriber functions called after a mutation commits.

    Listeners run in the emitting thread. A failing listener is logged and
    never breaks the mutation that emitted the event.
    """

    def __init__(self):
        self._listeners: list[EventListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Register *listener*; returns a function that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: TaskEvent) -> None:
        event_logger.info(json.dumps(event.model_dump(mode="json"), sort_keys=True))
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener failed for %s", event.kind.value)

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)
