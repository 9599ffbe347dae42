from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Awaitable, Callable, Union

from coach.speech.models import now_ms

logger = logging.getLogger("coach.session.events")

SESSION_STARTED = "session_started"
SESSION_START_FAILED = "session_start_failed"
SESSION_STOPPED = "session_stopped"
STATUS_CHANGED = "status_changed"
RECORDING_TOGGLED = "recording_toggled"
TRANSCRIPT_UPDATED = "transcript_updated"
ANALYTICS_UPDATED = "analytics_updated"
SUGGESTION_UPDATED = "suggestion_updated"
SUGGESTION_DISMISSED = "suggestion_dismissed"
ERROR_RAISED = "error_raised"
ERROR_CLEARED = "error_cleared"
REPORT_STARTED = "report_started"
REPORT_COMPLETED = "report_completed"
REPORT_FAILED = "report_failed"
TRANSCRIPT_CLEARED = "transcript_cleared"


@dataclass(frozen=True)
class SessionEvent:
    type: str
    session_id: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp_ms: int = field(default_factory=now_ms)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "sessionId": self.session_id,
            "payload": dict(self.payload),
            "timestampMs": self.timestamp_ms,
        }


EventHandler = Callable[[SessionEvent], Union[None, Awaitable[None]]]


class SessionEventBus:
    def __init__(self):
        self._lock = Lock()
        self._handlers: list[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        with self._lock:
            self._handlers.append(handler)

        def _unsubscribe() -> None:
            with self._lock:
                if handler in self._handlers:
                    self._handlers.remove(handler)

        return _unsubscribe

    async def publish(self, event: SessionEvent) -> None:
        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("session event handler failed | type=%s session_id=%s", event.type, event.session_id)
