from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import TYPE_CHECKING, Awaitable, Callable, Sequence

from coach.ai_service.fallback import LOCAL_PROVIDER_ID
from coach.ai_service.models import AISuggestion, SuggestionResponse
from coach.speech.models import QuestionEvent, TranscriptSegment
from coach.speech.question_detector import QuestionDetector
from coach.system_metrics import increment_metric, observe_suggestion_latency_ms
from core.config import SUGGESTION_THROTTLE_SEC
from core.logger import log_event

if TYPE_CHECKING:
    from coach.ai_service.service import AIService

logger = logging.getLogger("coach.session.dispatcher")

CONTEXT_WORDS = 150
CACHE_TTL_SEC = 300.0
CONFIDENCE_SCALE = 0.7
LENGTH_BONUS = 0.1


def build_context(transcript: str, words: int = CONTEXT_WORDS) -> str:
    recent = " ".join(str(transcript or "").split()[-words:])
    return f"Recent conversation: {recent}"


def classify_suggestion(text: str, provider_id: str | None = None) -> str:
    if provider_id == LOCAL_PROVIDER_ID:
        return "tip"
    lowered = str(text or "").lower()
    if "clarify" in lowered or "could you" in lowered:
        return "clarification"
    if "follow up" in lowered or "additionally" in lowered:
        return "follow-up"
    return "answer"


def score_suggestion(question_confidence: float, text: str) -> float:
    score = float(question_confidence or 0.0) * CONFIDENCE_SCALE
    if 20 <= len(str(text or "").split()) <= 80:
        score += LENGTH_BONUS
    return round(min(1.0, max(0.0, score)), 3)


class ThrottleGate:
    """At most one pass per window; calls inside the window are dropped."""

    def __init__(self, window_sec: float = SUGGESTION_THROTTLE_SEC):
        self.window_sec = float(window_sec)
        self.last_fired: float | None = None

    def can_fire(self, now: float) -> bool:
        if self.last_fired is not None and (float(now) - self.last_fired) < self.window_sec:
            return False
        self.last_fired = float(now)
        return True

    def reset(self) -> None:
        self.last_fired = None


class SuggestionCache:
    def __init__(self, ttl_sec: float = CACHE_TTL_SEC, clock: Callable[[], float] = time.monotonic):
        self.ttl_sec = float(ttl_sec)
        self._clock = clock
        self._entries: dict[str, tuple[float, SuggestionResponse]] = {}

    @staticmethod
    def key(question_type: str, question: str) -> str:
        normalized = re.sub(r"\s+", " ", str(question or "").lower()).strip()
        return f"{question_type}_{normalized[:50]}"

    def get(self, key: str) -> SuggestionResponse | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, response = entry
        if (self._clock() - stored_at) > self.ttl_sec:
            self._entries.pop(key, None)
            return None
        return response

    def put(self, key: str, response: SuggestionResponse) -> None:
        self._entries[key] = (self._clock(), response)

    def clear(self) -> None:
        self._entries.clear()


SuggestionHandler = Callable[[AISuggestion], Awaitable[None]]
ErrorHandler = Callable[[str], Awaitable[None]]


class SuggestionDispatcher:
    """
    Turns question-bearing transcript updates into suggestion requests.

    Requests run as background tasks and carry a sequence number. A reply
    older than the newest one already applied is discarded, as is any reply
    that arrives after the session stopped or restarted.
    """

    def __init__(
        self,
        ai_service: "AIService",
        *,
        detector: QuestionDetector | None = None,
        throttle_sec: float = SUGGESTION_THROTTLE_SEC,
        clock: Callable[[], float] = time.monotonic,
        framework: str | None = None,
        cache: SuggestionCache | None = None,
    ):
        self.ai_service = ai_service
        self.detector = detector or QuestionDetector()
        self.framework = framework
        self._clock = clock
        self._gate = ThrottleGate(throttle_sec)
        self._cache = cache if cache is not None else SuggestionCache(clock=clock)
        self._tasks: set[asyncio.Task] = set()
        self._issued_seq = 0
        self._applied_seq = 0
        self._generation = 0
        self._session_id = ""
        self._on_suggestion: SuggestionHandler | None = None
        self._on_error: ErrorHandler | None = None
        self._is_active: Callable[[], bool] = lambda: False

    def bind(self, *, on_suggestion: SuggestionHandler, on_error: ErrorHandler, is_active: Callable[[], bool]) -> None:
        self._on_suggestion = on_suggestion
        self._on_error = on_error
        self._is_active = is_active

    def reset(self, session_id: str = "") -> None:
        """Start a new session; replies to earlier requests will be ignored."""
        self._generation += 1
        self._session_id = session_id
        self._applied_seq = self._issued_seq
        self._gate.reset()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def on_transcript_update(self, transcript: str, segments: Sequence[TranscriptSegment]) -> bool:
        """Returns True when a request was issued for this update."""
        if not segments:
            return False

        question = self.detector.detect(segments[-1].text)
        if not question.is_question:
            return False

        if not self._gate.can_fire(self._clock()):
            increment_metric("suggestions_throttled")
            logger.debug("question inside throttle window dropped | session_id=%s", self._session_id)
            return False

        self._issued_seq += 1
        increment_metric("suggestions_requested")
        task = asyncio.create_task(
            self._request(self._issued_seq, self._generation, question, build_context(transcript))
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def _fetch(self, question: QuestionEvent, context: str) -> SuggestionResponse:
        key = SuggestionCache.key(question.question_type, question.transcript)
        cached = self._cache.get(key)
        if cached is not None:
            increment_metric("suggestions_cache_hits")
            return cached
        response = await self.ai_service.generate_suggestion(context, question.question_type, self.framework)
        self._cache.put(key, response)
        return response

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and self._is_active()

    async def _request(self, seq: int, generation: int, question: QuestionEvent, context: str) -> None:
        started = self._clock()
        try:
            response = await self._fetch(question, context)
        except Exception as exc:
            increment_metric("suggestions_failed")
            logger.warning("suggestion request failed | session_id=%s seq=%s err=%s", self._session_id, seq, exc)
            if self._is_current(generation) and self._on_error is not None:
                await self._on_error(f"AI suggestion failed: {exc}")
            return

        if not self._is_current(generation) or seq < self._applied_seq:
            increment_metric("suggestions_stale_discarded")
            logger.info("stale suggestion discarded | session_id=%s seq=%s applied=%s", self._session_id, seq, self._applied_seq)
            return
        self._applied_seq = seq

        suggestion = AISuggestion(
            suggestion=response.suggestion,
            type=classify_suggestion(response.suggestion, response.provider_id),
            confidence=score_suggestion(question.confidence, response.suggestion),
            framework=response.framework,
            context=question.transcript,
            provider_id=response.provider_id,
        )
        observe_suggestion_latency_ms((self._clock() - started) * 1000)
        increment_metric("suggestions_delivered")
        log_event(
            "dispatcher",
            "suggestion_delivered",
            session_id=self._session_id,
            seq=seq,
            provider=response.provider_id,
            question_type=question.question_type,
            suggestion=suggestion.suggestion,
        )
        if self._on_suggestion is not None:
            await self._on_suggestion(suggestion)

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
