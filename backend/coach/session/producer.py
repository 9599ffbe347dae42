from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol

from coach.speech.analytics import SpeechAnalyticsAccumulator
from coach.speech.models import SpeechAnalytics, TranscriptSegment, now_ms

logger = logging.getLogger("coach.session.producer")

MIN_FINAL_CONFIDENCE = 0.7
DEFAULT_CONFIDENCE = 0.8


@dataclass
class ProducerCallbacks:
    on_transcript: Callable[[str, list[TranscriptSegment]], Awaitable[None]]
    on_analytics: Callable[[SpeechAnalytics], Awaitable[None]]
    on_error: Callable[[str], Awaitable[None]]
    on_status_change: Callable[[str], Awaitable[None]]


class TranscriptProducer(Protocol):
    """External speech source. It pushes into the session; the session never pulls."""

    def is_supported(self) -> bool:
        ...

    async def start(self, callbacks: ProducerCallbacks, session_start_ms: int) -> None:
        ...

    async def stop(self) -> None:
        ...

    async def pause(self) -> None:
        ...

    async def resume(self) -> None:
        ...

    def clear(self) -> None:
        ...


class WebSocketTranscriptProducer:
    """
    Producer fed by recognition results relayed over the session websocket.

    Interim results are not recorded. Final results below
    MIN_FINAL_CONFIDENCE are dropped as misrecognitions.
    """

    def __init__(self, clock: Callable[[], int] = now_ms, supported: bool = True):
        self._clock = clock
        self._supported = bool(supported)
        self._callbacks: ProducerCallbacks | None = None
        self._accumulator = SpeechAnalyticsAccumulator()
        self._transcript = ""
        self._running = False
        self._paused = False

    def is_supported(self) -> bool:
        return self._supported

    @property
    def running(self) -> bool:
        return self._running

    @property
    def paused(self) -> bool:
        return self._paused

    async def start(self, callbacks: ProducerCallbacks, session_start_ms: int) -> None:
        if not self._supported:
            raise RuntimeError("speech capture is not supported by this client")
        self._callbacks = callbacks
        self._accumulator.reset(session_start_ms)
        self._transcript = ""
        self._running = True
        self._paused = False
        await callbacks.on_status_change("listening")

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        self._paused = False
        callbacks = self._callbacks
        self._callbacks = None
        if callbacks is not None:
            await callbacks.on_status_change("stopped")

    async def pause(self) -> None:
        if self._running and not self._paused:
            self._paused = True
            if self._callbacks is not None:
                await self._callbacks.on_status_change("paused")

    async def resume(self) -> None:
        if self._running and self._paused:
            self._paused = False
            if self._callbacks is not None:
                await self._callbacks.on_status_change("listening")

    def clear(self) -> None:
        """Forget accumulated text and segments while keeping the stream open."""
        self._accumulator.replace_segments([])
        self._transcript = ""

    async def ingest(self, text: str, confidence: float | None = None, is_final: bool = True) -> bool:
        """Returns True when the result became a segment."""
        if not self._running or self._paused or self._callbacks is None:
            return False
        if not is_final:
            return False

        text = str(text or "").strip()
        if not text:
            return False

        score = float(confidence or DEFAULT_CONFIDENCE)
        if score < MIN_FINAL_CONFIDENCE:
            logger.info("low-confidence result ignored | confidence=%.2f", score)
            return False

        callbacks = self._callbacks
        segment = TranscriptSegment(text=text, timestamp_ms=self._clock(), confidence=score, is_final=True)
        analytics = self._accumulator.add_segment(segment)
        self._transcript = f"{self._transcript} {text}".strip()

        await callbacks.on_transcript(self._transcript, self._accumulator.segments)
        await callbacks.on_analytics(analytics)
        return True

    async def fail(self, message: str) -> None:
        """Relay a client-side capture failure."""
        if self._callbacks is None:
            return
        await self._callbacks.on_error(str(message or "speech recognition error"))
        await self._callbacks.on_status_change("error")
