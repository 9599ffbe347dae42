import os
import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Read once by core.config at import time, so they must be set before any coach import.
os.environ.setdefault("SESSION_HISTORY_PERSIST", "false")
os.environ.setdefault("LOCAL_FALLBACK_ENABLED", "true")
os.environ.setdefault("OPENAI_API_KEY", "")
os.environ.setdefault("ANTHROPIC_API_KEY", "")
os.environ.setdefault("GEMINI_API_KEY", "")


@pytest.fixture(autouse=True)
def _test_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("QA_MODE", "true")
    monkeypatch.setenv("SESSION_HISTORY_PERSIST", "false")


@pytest.fixture(autouse=True)
def _fresh_metrics():
    from coach.system_metrics import reset_metrics

    reset_metrics()
    yield
    reset_metrics()


class FakeClock:
    """Manually advanced clock; `now()` for monotonic seconds, `ms()` for epoch-style milliseconds."""

    def __init__(self, start: float = 1000.0):
        self.value = float(start)

    def now(self) -> float:
        return self.value

    def ms(self) -> int:
        return int(self.value * 1000)

    def advance(self, seconds: float) -> None:
        self.value += float(seconds)


class RecordingSleep:
    def __init__(self, clock: FakeClock | None = None):
        self.delays: list[float] = []
        self.clock = clock

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.clock is not None:
            self.clock.advance(delay)


class FakeProviderClient:
    """Scripted ProviderClient: each call pops the next reply; exceptions are raised."""

    def __init__(self, provider_id: str, replies=None, default: str = "Mention a concrete outcome."):
        self.provider_id = provider_id
        self.replies = list(replies or [])
        self.default = default
        self.calls: list[dict] = []

    async def generate(self, prompt: str, *, system: str = "", max_tokens: int = 150, temperature: float = 0.7) -> str:
        self.calls.append({"prompt": prompt, "system": system, "max_tokens": max_tokens, "temperature": temperature})
        reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, BaseException):
            raise reply
        return reply


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_ai_service(recording_sleep):
    """Build an AIService over scripted clients: make_ai_service({"openai": FakeProviderClient(...)})."""
    from coach.ai_service.config import AIConfig
    from coach.ai_service.service import AIService
    from coach.router.fallback import ProviderFallbackRouter
    from coach.router.providers import ProviderConfig

    def _make(clients: dict, config: AIConfig | None = None):
        router = ProviderFallbackRouter(sleep=recording_sleep)
        for priority, provider_id in enumerate(clients, start=1):
            router.add_provider(ProviderConfig(id=provider_id, name=provider_id.title(), model="test", priority=priority))
        return AIService(router, clients, config or AIConfig())

    return _make
