"""
Process-wide fan-out for graph, generation and log events.

GraphState fires into ``global_emitter``; the Socket.IO bridge is its main
listener. A listener that raises is logged and skipped.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

EventListener = Callable[[Dict[str, Any]], None]


class EventEmitter:
    def __init__(self) -> None:
        self._listeners: List[EventListener] = []

    def on_event(self, callback: EventListener) -> None:
        self._listeners.append(callback)

    def off_event(self, callback: EventListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def fire(self, payload: Dict[str, Any]) -> None:
        """Deliver a copy of *payload*, stamped with ``ts`` in epoch milliseconds."""
        event = dict(payload)
        event.setdefault("ts", int(time.time() * 1000))
        for callback in list(self._listeners):
            try:
                callback(event)
            except Exception:
                logger.exception("Event listener failed on %s", event.get("type"))


global_emitter = EventEmitter()
