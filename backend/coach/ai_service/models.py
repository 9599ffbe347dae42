from dataclasses import dataclass, field
from typing import Literal, Optional
import uuid

from coach.speech.models import now_ms

SuggestionType = Literal["answer", "clarification", "follow-up", "tip"]


@dataclass
class SuggestionResponse:
    """Raw reply of the remote capability for one suggestion request."""
    suggestion: str
    confidence: float
    framework: Optional[str] = None
    reasoning: Optional[str] = None
    provider_id: Optional[str] = None


@dataclass
class AISuggestion:
    suggestion: str
    type: SuggestionType = "answer"
    confidence: float = 0.0
    framework: Optional[str] = None
    context: Optional[str] = None
    provider_id: Optional[str] = None
    timestamp_ms: int = field(default_factory=now_ms)
    id: str = field(default_factory=lambda: f"suggestion_{uuid.uuid4().hex[:12]}")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "suggestion": self.suggestion,
            "confidence": self.confidence,
            "framework": self.framework,
            "context": self.context,
            "provider": self.provider_id,
            "timestampMs": self.timestamp_ms,
        }


@dataclass
class PerformanceMetrics:
    communication_score: int = 0
    technical_score: int = 0
    leadership_score: int = 0
    confidence_score: int = 0
    clarity_score: int = 0
    response_relevance_score: int = 0
    overall_score: int = 0

    def to_dict(self) -> dict:
        return {
            "communicationScore": self.communication_score,
            "technicalScore": self.technical_score,
            "leadershipScore": self.leadership_score,
            "confidenceScore": self.confidence_score,
            "clarityScore": self.clarity_score,
            "responseRelevanceScore": self.response_relevance_score,
            "overallScore": self.overall_score,
        }


@dataclass
class PerformanceReport:
    session_id: str
    duration_minutes: float
    metrics: PerformanceMetrics = field(default_factory=PerformanceMetrics)
    summary: str = ""
    strengths: list[str] = field(default_factory=list)
    improvements: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    next_steps: list[str] = field(default_factory=list)
    speech: dict = field(default_factory=dict)
    provider_id: Optional[str] = None
    timestamp_ms: int = field(default_factory=now_ms)

    def to_dict(self) -> dict:
        return {
            "sessionId": self.session_id,
            "timestamp": self.timestamp_ms,
            "duration": round(float(self.duration_minutes), 2),
            "metrics": self.metrics.to_dict(),
            "summary": self.summary,
            "strengths": list(self.strengths),
            "improvements": list(self.improvements),
            "recommendations": list(self.recommendations),
            "nextSteps": list(self.next_steps),
            "speech": dict(self.speech),
            "provider": self.provider_id,
        }
