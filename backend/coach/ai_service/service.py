from __future__ import annotations

import json
import logging
import re
from typing import Any, Sequence

from coach.ai_service.config import AIConfig, load_ai_config
from coach.ai_service.fallback import LOCAL_CONFIDENCE, LOCAL_PROVIDER_ID, LocalTemplateProvider
from coach.ai_service.models import PerformanceMetrics, PerformanceReport, SuggestionResponse
from coach.ai_service.prompts import (
    REPORT_SYSTEM_PROMPT,
    SUGGESTION_SYSTEM_PROMPT,
    build_performance_report_prompt,
    build_suggestion_prompt,
)
from coach.report.scoring import describe_session, score_session
from coach.resilience.errors import ProviderError
from coach.router.fallback import ProviderFallbackRouter
from coach.router.providers import ClaudeProvider, GeminiProvider, OpenAIProvider, ProviderClient, ProviderConfig
from coach.speech.models import SpeechAnalytics, TranscriptSegment

logger = logging.getLogger("coach.ai_service")

REMOTE_CONFIDENCE = 0.85
REPORT_TEMPERATURE = 0.3

_PROVIDER_NAMES = {
    "openai": "OpenAI",
    "claude": "Anthropic Claude",
    "gemini": "Google Gemini",
    LOCAL_PROVIDER_ID: "Local templates",
}

_METRIC_FIELDS = {
    "communicationScore": "communication_score",
    "technicalScore": "technical_score",
    "leadershipScore": "leadership_score",
    "confidenceScore": "confidence_score",
    "clarityScore": "clarity_score",
    "responseRelevanceScore": "response_relevance_score",
    "overallScore": "overall_score",
}


_FENCE_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.IGNORECASE | re.DOTALL)
_DECODER = json.JSONDecoder()


def extract_json_dict(text: str) -> dict | None:
    """
    Pull the first JSON object out of a model reply.

    Accepts a bare object, a ```json fenced block, or an object wrapped in
    prose. Arrays and scalars are not reports and yield None.
    """
    text = str(text or "").strip()
    if not text:
        return None

    for candidate in [text, *(m.group(1) for m in _FENCE_RE.finditer(text))]:
        try:
            parsed = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(parsed, dict):
            return parsed

    start = text.find("{")
    while start != -1:
        try:
            parsed, _end = _DECODER.raw_decode(text, start)
        except ValueError:
            parsed = None
        if isinstance(parsed, dict):
            return parsed
        start = text.find("{", start + 1)
    return None


def _score_or(value: Any, fallback: int) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    return int(round(min(100.0, max(0.0, number))))


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item or "").strip()]


def merge_metrics(local: PerformanceMetrics, remote: dict | None) -> PerformanceMetrics:
    """AI-provided scores win field by field; anything missing or malformed keeps the local score."""
    merged = PerformanceMetrics(**vars(local))
    if not isinstance(remote, dict):
        return merged
    for key, attr in _METRIC_FIELDS.items():
        setattr(merged, attr, _score_or(remote.get(key), getattr(local, attr)))
    return merged


class AIService:
    def __init__(
        self,
        router: ProviderFallbackRouter,
        clients: dict[str, ProviderClient],
        config: AIConfig | None = None,
    ):
        self.router = router
        self.clients = dict(clients)
        self.config = config or AIConfig()

    def _client_for(self, provider: ProviderConfig) -> ProviderClient:
        client = self.clients.get(provider.id)
        if client is None:
            raise ProviderError(f"no client registered for provider {provider.id}", provider=provider.id)
        return client

    async def generate_suggestion(
        self,
        context: str,
        question_type: str = "general",
        framework: str | None = None,
    ) -> SuggestionResponse:
        framework = framework or self.config.framework
        prompt = build_suggestion_prompt(context, question_type, framework, self.config.response_style)

        async def _operation(provider: ProviderConfig, _params: Any) -> str:
            client = self._client_for(provider)
            if provider.id == LOCAL_PROVIDER_ID:
                return await client.generate(context)
            text = await client.generate(
                prompt,
                system=SUGGESTION_SYSTEM_PROMPT,
                max_tokens=self.config.max_tokens_for_style(),
                temperature=self.config.temperature,
            )
            if not text:
                raise ProviderError(f"empty response from {provider.id}", provider=provider.id)
            return text

        outcome = await self.router.execute_with_fallback(_operation)
        is_local = outcome.provider_id == LOCAL_PROVIDER_ID
        return SuggestionResponse(
            suggestion=outcome.result,
            confidence=LOCAL_CONFIDENCE if is_local else REMOTE_CONFIDENCE,
            framework=framework,
            reasoning="Fallback response - no AI provider available" if is_local else None,
            provider_id=outcome.provider_id,
        )

    async def generate_performance_report(
        self,
        transcript: str,
        analytics: SpeechAnalytics,
        segments: Sequence[TranscriptSegment],
        duration_minutes: float,
        session_id: str,
    ) -> PerformanceReport:
        local_metrics = score_session(transcript, analytics)
        local_notes = describe_session(local_metrics, analytics)

        payload = {
            "session_id": session_id,
            "duration_minutes": round(float(duration_minutes), 2),
            "segment_count": len(segments),
            "speech": analytics.to_dict(),
            "baseline_scores": local_metrics.to_dict(),
            "transcript_excerpt": " ".join(transcript.split()[-400:]),
        }
        prompt = build_performance_report_prompt(payload)

        async def _operation(provider: ProviderConfig, _params: Any) -> str:
            client = self._client_for(provider)
            if provider.id == LOCAL_PROVIDER_ID:
                return await client.generate(prompt, expect_json=True)
            return await client.generate(
                prompt,
                system=REPORT_SYSTEM_PROMPT,
                max_tokens=self.config.report_max_tokens,
                temperature=REPORT_TEMPERATURE,
            )

        outcome = await self.router.execute_with_fallback(_operation)
        parsed = extract_json_dict(outcome.result)
        if parsed is None and outcome.provider_id != LOCAL_PROVIDER_ID:
            logger.warning("report reply was not JSON, using local scores | provider=%s", outcome.provider_id)
        parsed = parsed or {}

        return PerformanceReport(
            session_id=session_id,
            duration_minutes=float(duration_minutes),
            metrics=merge_metrics(local_metrics, parsed.get("metrics")),
            summary=str(parsed.get("summary") or "").strip() or f"Session of {duration_minutes:.1f} minutes reviewed.",
            strengths=_string_list(parsed.get("strengths")) or local_notes["strengths"],
            improvements=_string_list(parsed.get("improvements")) or local_notes["improvements"],
            recommendations=_string_list(parsed.get("recommendations")) or local_notes["recommendations"],
            next_steps=_string_list(parsed.get("nextSteps")) or local_notes["next_steps"],
            speech=analytics.to_dict(),
            provider_id=outcome.provider_id,
        )

    def provider_status(self) -> list[dict]:
        return self.router.get_provider_status()

    async def _probe(self, provider: ProviderConfig) -> bool:
        client = self._client_for(provider)
        text = await client.generate("Reply with OK.", max_tokens=5, temperature=0.0)
        return bool(text)

    async def check_health(self) -> dict[str, bool]:
        return await self.router.check_health(self._probe)

    def start_health_checks(self, interval_sec: float) -> None:
        self.router.start_health_checks(self._probe, interval_sec)

    async def stop_health_checks(self) -> None:
        await self.router.stop_health_checks()


def build_ai_service(config: AIConfig | None = None, router: ProviderFallbackRouter | None = None) -> AIService:
    """Register one provider per configured key, primary first, local templates last."""
    config = config or load_ai_config()
    router = router or ProviderFallbackRouter()
    clients: dict[str, ProviderClient] = {}

    factories = {
        "openai": lambda: OpenAIProvider(config.keys.openai, config.models.openai, config.timeout_sec),
        "claude": lambda: ClaudeProvider(config.keys.claude, config.models.claude, config.timeout_sec),
        "gemini": lambda: GeminiProvider(config.keys.gemini, config.models.gemini, config.timeout_sec),
    }

    for priority, provider_id in enumerate(config.provider_order(), start=1):
        api_key = getattr(config.keys, provider_id)
        if not api_key:
            continue
        clients[provider_id] = factories[provider_id]()
        router.add_provider(
            ProviderConfig(
                id=provider_id,
                name=_PROVIDER_NAMES[provider_id],
                api_key=api_key,
                model=getattr(config.models, provider_id),
                priority=priority,
            )
        )

    if config.local_fallback:
        clients[LOCAL_PROVIDER_ID] = LocalTemplateProvider(config.framework)
        router.add_provider(
            ProviderConfig(id=LOCAL_PROVIDER_ID, name=_PROVIDER_NAMES[LOCAL_PROVIDER_ID], model="templates", priority=100)
        )

    if not clients:
        logger.warning("no AI providers configured; suggestions and reports will fail")

    return AIService(router, clients, config)
