from typing import Literal

from pydantic import BaseModel, Field

from coach.speech.models import SpeechAnalytics

CommandType = Literal[
    "start",
    "stop",
    "toggle_recording",
    "transcript",
    "analytics",
    "error",
    "dismiss_suggestion",
    "clear_error",
    "clear_transcript",
]


class AnalyticsPayload(BaseModel):
    words_per_minute: int = Field(default=0, ge=0)
    filler_word_count: int = Field(default=0, ge=0)
    confidence_score: int = Field(default=0, ge=0, le=100)
    total_words: int = Field(default=0, ge=0)
    speaking_time_seconds: float = Field(default=0.0, ge=0.0)
    pause_duration_seconds: float = Field(default=0.0, ge=0.0)

    def to_analytics(self) -> SpeechAnalytics:
        return SpeechAnalytics(**self.model_dump())


class SessionCommand(BaseModel):
    type: CommandType
    text: str | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    is_final: bool = True
    analytics: AnalyticsPayload | None = None
    message: str | None = None


class HealthResponse(BaseModel):
    status: str
    providers: int
    healthy_providers: int


class ProviderStatus(BaseModel):
    id: str
    name: str
    model: str
    priority: int
    healthy: bool
    last_checked_ms: int
    response_time_ms: int
    error_count: int
