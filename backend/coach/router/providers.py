from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Protocol

import anthropic
import google.generativeai as genai
import openai
from anthropic import AsyncAnthropic
from google.api_core import exceptions as google_exceptions
from openai import AsyncOpenAI

from coach.resilience.errors import ProviderError, ProviderTimeoutError
from core.config import PROVIDER_TIMEOUT_SEC

logger = logging.getLogger("coach.router.providers")


@dataclass
class ProviderConfig:
    id: str
    name: str
    api_key: str = ""
    model: str = ""
    priority: int = 100
    healthy: bool = True
    last_checked_ms: int = 0
    response_time_ms: int = 0
    error_count: int = 0

    def to_status(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "model": self.model,
            "priority": self.priority,
            "healthy": self.healthy,
            "last_checked_ms": self.last_checked_ms,
            "response_time_ms": self.response_time_ms,
            "error_count": self.error_count,
        }


class ProviderClient(Protocol):
    provider_id: str

    async def generate(
        self,
        prompt: str,
        *,
        system: str = "",
        max_tokens: int = 150,
        temperature: float = 0.7,
    ) -> str:
        ...


async def _with_timeout(provider_id: str, timeout_sec: float, awaitable):
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_sec)
    except asyncio.TimeoutError as exc:
        raise ProviderTimeoutError(provider_id, timeout_sec) from exc


class OpenAIProvider:
    provider_id = "openai"

    def __init__(self, api_key: str, model: str, timeout_sec: float = PROVIDER_TIMEOUT_SEC, client: Any = None):
        self.model = model
        self.timeout_sec = float(timeout_sec)
        self.client = client if client is not None else AsyncOpenAI(api_key=api_key)

    async def generate(self, prompt: str, *, system: str = "", max_tokens: int = 150, temperature: float = 0.7) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        try:
            response = await _with_timeout(
                self.provider_id,
                self.timeout_sec,
                self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    max_tokens=int(max_tokens),
                    temperature=float(temperature),
                ),
            )
        except openai.APITimeoutError as exc:
            raise ProviderTimeoutError(self.provider_id, self.timeout_sec) from exc
        except openai.APIStatusError as exc:
            raise ProviderError(f"OpenAI API error {exc.status_code}: {exc}", provider=self.provider_id, status=exc.status_code) from exc
        except openai.APIConnectionError as exc:
            raise ProviderError(f"OpenAI network error: {exc}", provider=self.provider_id) from exc

        content = response.choices[0].message.content if response.choices else None
        return str(content or "").strip()


class ClaudeProvider:
    provider_id = "claude"

    def __init__(self, api_key: str, model: str, timeout_sec: float = PROVIDER_TIMEOUT_SEC, client: Any = None):
        self.model = model
        self.timeout_sec = float(timeout_sec)
        self.client = client if client is not None else AsyncAnthropic(api_key=api_key)

    async def generate(self, prompt: str, *, system: str = "", max_tokens: int = 150, temperature: float = 0.7) -> str:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": int(max_tokens),
            "temperature": float(temperature),
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system

        try:
            response = await _with_timeout(self.provider_id, self.timeout_sec, self.client.messages.create(**kwargs))
        except anthropic.APITimeoutError as exc:
            raise ProviderTimeoutError(self.provider_id, self.timeout_sec) from exc
        except anthropic.APIStatusError as exc:
            raise ProviderError(f"Claude API error {exc.status_code}: {exc}", provider=self.provider_id, status=exc.status_code) from exc
        except anthropic.APIConnectionError as exc:
            raise ProviderError(f"Claude network error: {exc}", provider=self.provider_id) from exc

        parts = [getattr(block, "text", "") for block in (response.content or [])]
        return "".join(part for part in parts if part).strip()


ModelFactory = Callable[[str], Any]


class GeminiProvider:
    provider_id = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout_sec: float = PROVIDER_TIMEOUT_SEC,
        model_factory: ModelFactory | None = None,
    ):
        self.model = model
        self.timeout_sec = float(timeout_sec)
        if model_factory is None:
            genai.configure(api_key=api_key)
            model_factory = self._default_model_factory
        self._model_factory = model_factory

    def _default_model_factory(self, system: str):
        return genai.GenerativeModel(model_name=self.model, system_instruction=system or None)

    async def generate(self, prompt: str, *, system: str = "", max_tokens: int = 150, temperature: float = 0.7) -> str:
        model = self._model_factory(system)
        try:
            response = await _with_timeout(
                self.provider_id,
                self.timeout_sec,
                model.generate_content_async(
                    prompt,
                    generation_config={
                        "max_output_tokens": int(max_tokens),
                        "temperature": float(temperature),
                    },
                ),
            )
        except google_exceptions.DeadlineExceeded as exc:
            raise ProviderTimeoutError(self.provider_id, self.timeout_sec) from exc
        except google_exceptions.GoogleAPICallError as exc:
            status = exc.code if isinstance(exc.code, int) else None
            raise ProviderError(f"Gemini API error {status}: {exc}", provider=self.provider_id, status=status) from exc

        return str(getattr(response, "text", "") or "").strip()
