from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from coach.ai_service.models import AISuggestion
from coach.speech.models import SpeechAnalytics, TranscriptSegment


class SessionStatus(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    PROCESSING = "processing"
    ERROR = "error"


@dataclass
class SessionBuffers:
    """
    Mutable per-session data read by callbacks registered earlier.
    Only the state machine writes here; consumers read SessionState snapshots.
    """
    transcript: str = ""
    segments: list[TranscriptSegment] = field(default_factory=list)
    analytics: SpeechAnalytics = field(default_factory=SpeechAnalytics)
    delivered_suggestions: list[dict[str, Any]] = field(default_factory=list)

    def reset(self) -> None:
        self.transcript = ""
        self.segments = []
        self.analytics = SpeechAnalytics()
        self.delivered_suggestions = []


@dataclass(frozen=True)
class SessionState:
    session_id: str
    status: SessionStatus = SessionStatus.IDLE
    is_active: bool = False
    is_recording: bool = False
    is_generating_report: bool = False
    transcript: str = ""
    segments: tuple[TranscriptSegment, ...] = ()
    analytics: SpeechAnalytics = field(default_factory=SpeechAnalytics)
    current_suggestion: AISuggestion | None = None
    error_message: str | None = None
    session_start_ms: int | None = None
    elapsed_seconds: int = 0
    last_record_id: str | None = None

    @property
    def can_start(self) -> bool:
        return not self.is_active and self.status != SessionStatus.ERROR

    @property
    def has_error(self) -> bool:
        return bool(self.error_message)

    @property
    def has_active_suggestion(self) -> bool:
        return self.current_suggestion is not None

    @property
    def word_count(self) -> int:
        return len(self.transcript.split())

    @property
    def average_confidence(self) -> float:
        if not self.segments:
            return 0.0
        return round(sum(s.confidence for s in self.segments) / len(self.segments), 3)

    @property
    def session_duration(self) -> str:
        total = max(0, int(self.elapsed_seconds))
        minutes, seconds = divmod(total, 60)
        return f"{minutes:02d}:{seconds:02d}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "status": self.status.value,
            "isActive": self.is_active,
            "isRecording": self.is_recording,
            "isGeneratingReport": self.is_generating_report,
            "transcript": self.transcript,
            "segmentCount": len(self.segments),
            "analytics": self.analytics.to_dict(),
            "currentSuggestion": self.current_suggestion.to_dict() if self.current_suggestion else None,
            "errorMessage": self.error_message,
            "sessionStartMs": self.session_start_ms,
            "sessionDuration": self.session_duration,
            "canStart": self.can_start,
            "hasError": self.has_error,
            "hasActiveSuggestion": self.has_active_suggestion,
            "wordCount": self.word_count,
            "averageConfidence": self.average_confidence,
            "lastRecordId": self.last_record_id,
        }
