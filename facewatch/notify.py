"""Appearance events and their delivery to listeners."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List

LOGGER = logging.getLogger("facewatch.notify")


@dataclass(frozen=True)
class IdentityAppeared:
    """An enrolled identity newly came into view."""

    name: str
    distance: float
    cycle_index: int
    timestamp: float = field(default_factory=time.time)

    @property
    def message(self) -> str:
        return f"{self.name} has been detected by the camera."


EventListener = Callable[[IdentityAppeared], None]


class EventDispatcher:
    """Fans events out to listeners; delivery can be switched off at runtime.

    A failing listener is logged and does not prevent delivery to the others.
    """

    def __init__(self, enabled: bool = True) -> None:
        self._lock = threading.Lock()
        self._listeners: List[EventListener] = []
        self.enabled = enabled
        self.delivered = 0
        self.suppressed = 0

    def subscribe(self, listener: EventListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: EventListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = bool(enabled)
        LOGGER.info("Notifications %s", "enabled" if self.enabled else "disabled")

    def dispatch(self, event: IdentityAppeared) -> None:
        if not self.enabled:
            self.suppressed += 1
            LOGGER.debug("Notifications disabled; dropping appearance of %s", event.name)
            return
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:  # noqa: BLE001 - one bad listener must not block the rest
                LOGGER.exception("Listener %r failed for %s", listener, event.name)
        self.delivered += 1

    __call__ = dispatch


class LoggingNotifier:
    """Listener that writes each appearance to the log."""

    def __init__(self, logger: logging.Logger = LOGGER) -> None:
        self.logger = logger

    def __call__(self, event: IdentityAppeared) -> None:
        self.logger.info("Face Detected: %s (distance=%.3f)", event.message, event.distance)
