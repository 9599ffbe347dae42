from __future__ import annotations

import logging
import uuid
from typing import Any, Callable

from coach.ai_service.models import AISuggestion
from coach.report.assembler import PerformanceReportAssembler, SessionRecord
from coach.session import events
from coach.session.dispatcher import SuggestionDispatcher
from coach.session.events import SessionEvent, SessionEventBus
from coach.session.producer import ProducerCallbacks, TranscriptProducer
from coach.session.state import SessionBuffers, SessionState, SessionStatus
from coach.speech.models import SpeechAnalytics, TranscriptSegment, now_ms
from coach.system_metrics import increment_metric
from core.logger import log_event

logger = logging.getLogger("coach.session.machine")


def _new_session_id() -> str:
    return f"session_{uuid.uuid4().hex[:12]}"


class SessionStateMachine:
    """
    idle -> capturing -> processing -> idle, with error reachable from
    capturing on producer failures.

    Every transition is published on the event bus. Mutable transcript data
    lives in SessionBuffers; snapshot() hands out an immutable SessionState.
    """

    def __init__(
        self,
        producer: TranscriptProducer,
        dispatcher: SuggestionDispatcher,
        assembler: PerformanceReportAssembler,
        *,
        event_bus: SessionEventBus | None = None,
        clock: Callable[[], int] = now_ms,
        session_id_factory: Callable[[], str] = _new_session_id,
    ):
        self.producer = producer
        self.dispatcher = dispatcher
        self.assembler = assembler
        self.event_bus = event_bus or SessionEventBus()
        self._clock = clock
        self._session_id_factory = session_id_factory

        self.buffers = SessionBuffers()
        self._session_id = ""
        self._status = SessionStatus.IDLE
        self._active = False
        self._recording = False
        self._generating_report = False
        self._current_suggestion: AISuggestion | None = None
        self._error_message: str | None = None
        self._session_start_ms: int | None = None
        self._final_elapsed_seconds = 0
        self._last_record_id: str | None = None

        self.dispatcher.bind(
            on_suggestion=self._apply_suggestion,
            on_error=self._on_suggestion_error,
            is_active=lambda: self._active,
        )

    # ---- read side ----

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def is_active(self) -> bool:
        return self._active

    def _elapsed_seconds(self) -> int:
        if self._active and self._session_start_ms is not None:
            return max(0, (self._clock() - self._session_start_ms) // 1000)
        return self._final_elapsed_seconds

    def snapshot(self) -> SessionState:
        return SessionState(
            session_id=self._session_id,
            status=self._status,
            is_active=self._active,
            is_recording=self._recording,
            is_generating_report=self._generating_report,
            transcript=self.buffers.transcript,
            segments=tuple(self.buffers.segments),
            analytics=self.buffers.analytics,
            current_suggestion=self._current_suggestion,
            error_message=self._error_message,
            session_start_ms=self._session_start_ms,
            elapsed_seconds=self._elapsed_seconds(),
            last_record_id=self._last_record_id,
        )

    # ---- internals ----

    async def _publish(self, event_type: str, **payload: Any) -> None:
        await self.event_bus.publish(SessionEvent(type=event_type, session_id=self._session_id, payload=payload))

    async def _set_status(self, status: SessionStatus) -> None:
        if status == self._status:
            return
        previous = self._status
        self._status = status
        log_event("session", "status_changed", session_id=self._session_id, previous=previous.value, status=status.value)
        await self._publish(events.STATUS_CHANGED, previous=previous.value, status=status.value)

    def _callbacks(self) -> ProducerCallbacks:
        return ProducerCallbacks(
            on_transcript=self.on_transcript,
            on_analytics=self.on_analytics,
            on_error=self.on_error,
            on_status_change=self.on_status_change,
        )

    async def _fail_start(self, message: str) -> bool:
        self._error_message = message
        increment_metric("sessions_failed_to_start")
        logger.warning("session failed to start | session_id=%s reason=%s", self._session_id, message)
        await self._set_status(SessionStatus.ERROR)
        await self._publish(events.SESSION_START_FAILED, error=message)
        return False

    # ---- commands ----

    async def start_session(self) -> bool:
        if self._active or self._status == SessionStatus.ERROR:
            logger.info("start ignored | status=%s active=%s", self._status.value, self._active)
            return False

        self._session_id = self._session_id_factory()
        self.buffers.reset()
        self._current_suggestion = None
        self._error_message = None
        self._final_elapsed_seconds = 0
        self._session_start_ms = self._clock()
        self.dispatcher.reset(self._session_id)

        if not self.producer.is_supported():
            return await self._fail_start("Speech capture is not supported on this client")

        try:
            await self.producer.start(self._callbacks(), self._session_start_ms)
        except Exception as exc:
            logger.exception("producer start failed | session_id=%s", self._session_id)
            return await self._fail_start(f"Could not start speech capture: {exc}")

        self._active = True
        self._recording = True
        increment_metric("sessions_started")
        await self._set_status(SessionStatus.CAPTURING)
        await self._publish(events.SESSION_STARTED, session_start_ms=self._session_start_ms)
        return True

    async def stop_session(self) -> SessionRecord | None:
        """Stop capture, then wait for the report before going idle."""
        if not self._active:
            return None

        try:
            await self.producer.stop()
        except Exception:
            logger.exception("producer stop failed | session_id=%s", self._session_id)

        self._final_elapsed_seconds = self._elapsed_seconds()
        self._active = False
        self._recording = False
        self._generating_report = True
        await self._set_status(SessionStatus.PROCESSING)
        await self._publish(events.REPORT_STARTED)

        record: SessionRecord | None = None
        try:
            record = await self.assembler.assemble(
                session_id=self._session_id,
                transcript=self.buffers.transcript,
                segments=list(self.buffers.segments),
                analytics=self.buffers.analytics,
                session_start_ms=self._session_start_ms or self._clock(),
                suggestions=list(self.buffers.delivered_suggestions),
            )
        except Exception as exc:
            self._error_message = f"Failed to generate performance report: {exc}"
            logger.warning("report failed, finishing teardown | session_id=%s err=%s", self._session_id, exc)
            await self._publish(events.REPORT_FAILED, error=str(exc))
        else:
            if record is not None:
                self._last_record_id = record.id
                await self._publish(events.REPORT_COMPLETED, record=record.to_dict())
        finally:
            self._generating_report = False
            await self._set_status(SessionStatus.IDLE)
            increment_metric("sessions_stopped")
            await self._publish(events.SESSION_STOPPED, record_id=record.id if record else None)

        return record

    async def toggle_recording(self) -> bool:
        if not self._active:
            return False
        try:
            if self._recording:
                await self.producer.pause()
            else:
                await self.producer.resume()
        except Exception as exc:
            logger.exception("toggle recording failed | session_id=%s", self._session_id)
            await self.on_error(f"Could not toggle recording: {exc}")
            return self._recording

        self._recording = not self._recording
        await self._publish(events.RECORDING_TOGGLED, is_recording=self._recording)
        return self._recording

    async def clear_error(self) -> None:
        self._error_message = None
        if self._status == SessionStatus.ERROR:
            await self._set_status(SessionStatus.CAPTURING if self._active else SessionStatus.IDLE)
        await self._publish(events.ERROR_CLEARED)

    async def dismiss_suggestion(self) -> None:
        if self._current_suggestion is None:
            return
        dismissed = self._current_suggestion.id
        self._current_suggestion = None
        await self._publish(events.SUGGESTION_DISMISSED, suggestion_id=dismissed)

    async def clear_transcript(self) -> None:
        self.buffers.transcript = ""
        self.buffers.segments = []
        self.buffers.analytics = SpeechAnalytics()
        self.producer.clear()
        await self._publish(events.TRANSCRIPT_CLEARED)

    # ---- producer callbacks ----

    async def on_transcript(self, transcript: str, segments: list[TranscriptSegment]) -> None:
        if not self._active:
            logger.debug("transcript after stop ignored | session_id=%s", self._session_id)
            return
        self.buffers.transcript = str(transcript or "")
        self.buffers.segments = list(segments or [])
        await self._publish(
            events.TRANSCRIPT_UPDATED,
            transcript=self.buffers.transcript,
            segment=self.buffers.segments[-1].to_dict() if self.buffers.segments else None,
        )
        self.dispatcher.on_transcript_update(self.buffers.transcript, self.buffers.segments)

    async def on_analytics(self, analytics: SpeechAnalytics) -> None:
        if not self._active:
            return
        self.buffers.analytics = analytics
        await self._publish(events.ANALYTICS_UPDATED, analytics=analytics.to_dict())

    async def on_error(self, message: str) -> None:
        self._error_message = str(message or "Unknown capture error")
        log_event("session", "error", session_id=self._session_id, error=self._error_message)
        await self._set_status(SessionStatus.ERROR)
        await self._publish(events.ERROR_RAISED, error=self._error_message)

    async def on_status_change(self, producer_status: str) -> None:
        logger.info("producer status | session_id=%s status=%s", self._session_id, producer_status)
        if producer_status == "error" and self._status != SessionStatus.ERROR:
            await self._set_status(SessionStatus.ERROR)

    # ---- dispatcher callbacks ----

    async def _apply_suggestion(self, suggestion: AISuggestion) -> None:
        self._current_suggestion = suggestion
        self.buffers.delivered_suggestions.append(suggestion.to_dict())
        await self._publish(events.SUGGESTION_UPDATED, suggestion=suggestion.to_dict())

    async def _on_suggestion_error(self, message: str) -> None:
        # Session keeps capturing; only the message is surfaced.
        self._error_message = message
        await self._publish(events.ERROR_RAISED, error=message, source="suggestion")
