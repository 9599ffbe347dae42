from typing import Literal

from pydantic import BaseModel, Field

from core import config as settings

ProviderName = Literal["openai", "claude", "gemini"]
ResponseStyle = Literal["concise", "balanced", "detailed"]
Framework = Literal["star", "soar", "prep", "car", "soal"]


class ProviderModels(BaseModel):
    openai: str = "gpt-4o-mini"
    claude: str = "claude-3-haiku-20240307"
    gemini: str = "gemini-1.5-flash"


class ProviderKeys(BaseModel):
    openai: str = ""
    claude: str = ""
    gemini: str = ""


class AIConfig(BaseModel):
    primary_provider: ProviderName = "openai"
    response_style: ResponseStyle = "balanced"
    framework: Framework = "star"
    models: ProviderModels = Field(default_factory=ProviderModels)
    keys: ProviderKeys = Field(default_factory=ProviderKeys)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=150, gt=0)
    report_max_tokens: int = Field(default=900, gt=0)
    timeout_sec: float = Field(default=20.0, gt=0.0)
    local_fallback: bool = False

    def provider_order(self) -> list[str]:
        """Primary first, then the remaining providers in a fixed order."""
        rest = [name for name in ("openai", "claude", "gemini") if name != self.primary_provider]
        return [self.primary_provider, *rest]

    def max_tokens_for_style(self) -> int:
        scale = {"concise": 0.6, "balanced": 1.0, "detailed": 1.6}[self.response_style]
        return max(32, int(self.max_tokens * scale))


def load_ai_config() -> AIConfig:
    return AIConfig(
        primary_provider=settings.PRIMARY_PROVIDER,
        response_style=settings.RESPONSE_STYLE,
        framework=settings.COACHING_FRAMEWORK,
        models=ProviderModels(
            openai=settings.OPENAI_MODEL,
            claude=settings.CLAUDE_MODEL,
            gemini=settings.GEMINI_MODEL,
        ),
        keys=ProviderKeys(
            openai=settings.OPENAI_API_KEY,
            claude=settings.ANTHROPIC_API_KEY,
            gemini=settings.GEMINI_API_KEY,
        ),
        timeout_sec=settings.PROVIDER_TIMEOUT_SEC,
        local_fallback=settings.LOCAL_FALLBACK_ENABLED,
    )
