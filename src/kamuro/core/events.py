"""
Minimal observer used for state-changed notifications.

Components publish `(event, payload)` pairs; the presentation layer subscribes and
re-renders from the payload (or from the component's own snapshot).
"""

from __future__ import annotations

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

Listener = Callable[[str, Any], None]


class EventEmitter:
    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register `listener`; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: str, payload: Any = None) -> None:
        logger.debug("emit %s", event)
        # Snapshot so listeners may unsubscribe while being notified.
        for listener in list(self._listeners):
            listener(event, payload)
