from dataclasses import asdict, dataclass, field
from typing import Literal
import time
import uuid


QuestionType = Literal["behavioral", "technical", "situational", "general"]
Urgency = Literal["low", "medium", "high"]


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class TranscriptSegment:
    """
    One recognized unit of speech.
    Immutable once created; the session only ever appends new segments.
    """
    text: str
    timestamp_ms: int
    confidence: float = 0.0
    is_final: bool = True
    id: str = field(default_factory=lambda: f"seg_{uuid.uuid4().hex[:12]}")

    def __post_init__(self):
        clamped = max(0.0, min(1.0, float(self.confidence or 0.0)))
        object.__setattr__(self, "confidence", clamped)
        object.__setattr__(self, "text", str(self.text or "").strip())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "timestampMs": self.timestamp_ms,
            "confidence": self.confidence,
            "isFinal": self.is_final,
        }


@dataclass(frozen=True)
class SpeechAnalytics:
    words_per_minute: int = 0
    filler_word_count: int = 0
    confidence_score: int = 0
    total_words: int = 0
    speaking_time_seconds: float = 0.0
    pause_duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)

    def to_record_dict(self) -> dict:
        # Shape persisted inside session records.
        return {
            "wordsPerMinute": self.words_per_minute,
            "fillerWords": self.filler_word_count,
            "confidenceScore": self.confidence_score,
        }


@dataclass(frozen=True)
class QuestionEvent:
    transcript: str
    is_question: bool
    question_type: QuestionType = "general"
    confidence: float = 0.0
    speaker_changed: bool = False
    urgency: Urgency = "low"

    def to_dict(self) -> dict:
        return asdict(self)
