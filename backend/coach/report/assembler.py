from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Sequence

from coach.report.history import SessionHistoryStore
from coach.resilience.errors import ReportGenerationError
from coach.speech.models import SpeechAnalytics, TranscriptSegment, now_ms
from coach.system_metrics import increment_metric
from core.config import SESSION_PLATFORM
from core.logger import log_event

if TYPE_CHECKING:
    from coach.ai_service.service import AIService

logger = logging.getLogger("coach.report.assembler")


@dataclass
class SessionRecord:
    id: str
    timestamp: int
    platform: str
    duration: float
    transcript: str
    analytics: dict[str, Any]
    suggestions: list[dict[str, Any]] = field(default_factory=list)
    performance_report: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "platform": self.platform,
            "duration": self.duration,
            "transcript": self.transcript,
            "analytics": dict(self.analytics),
            "suggestions": list(self.suggestions),
            "performanceReport": dict(self.performance_report),
        }


class PerformanceReportAssembler:
    def __init__(
        self,
        ai_service: "AIService",
        history: SessionHistoryStore,
        *,
        platform: str = SESSION_PLATFORM,
        clock: Callable[[], int] = now_ms,
    ):
        self.ai_service = ai_service
        self.history = history
        self.platform = platform
        self._clock = clock

    async def assemble(
        self,
        *,
        session_id: str,
        transcript: str,
        segments: Sequence[TranscriptSegment],
        analytics: SpeechAnalytics,
        session_start_ms: int,
        suggestions: Sequence[dict[str, Any]] | None = None,
    ) -> SessionRecord | None:
        """
        Build the end-of-session report and append it to history.

        Returns None (after a warning) when there is nothing to report.
        Raises ReportGenerationError when the AI call fails; nothing is saved then.
        """
        if not str(transcript or "").strip() or not segments:
            logger.warning("no transcript data available for performance report | session_id=%s", session_id)
            increment_metric("reports_skipped_empty")
            return None

        finished_ms = self._clock()
        duration_minutes = max(0, finished_ms - int(session_start_ms)) / 60000

        try:
            report = await self.ai_service.generate_performance_report(
                transcript,
                analytics,
                list(segments),
                duration_minutes,
                session_id,
            )
        except Exception as exc:
            increment_metric("reports_failed")
            log_event("report", "failed", session_id=session_id, error=str(exc))
            raise ReportGenerationError(f"performance report failed: {exc}") from exc

        record = SessionRecord(
            id=session_id,
            timestamp=finished_ms,
            platform=self.platform,
            duration=duration_minutes,
            transcript=transcript,
            analytics=analytics.to_record_dict(),
            suggestions=[dict(item) for item in suggestions or []],
            performance_report=report.to_dict(),
        )
        self.history.save_session(record.to_dict())
        increment_metric("reports_generated")
        log_event(
            "report",
            "saved",
            session_id=session_id,
            provider=report.provider_id,
            duration_minutes=round(duration_minutes, 2),
            overall_score=report.metrics.overall_score,
        )
        return record
