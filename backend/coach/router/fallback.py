from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Awaitable, Callable, Generic, TypeVar

from coach.resilience.errors import AllProvidersFailedError, NoHealthyProvidersError
from coach.resilience.retry import SleepFn, retry_api_call
from coach.router.providers import ProviderConfig
from coach.speech.models import now_ms
from coach.system_metrics import increment_metric

logger = logging.getLogger("coach.router.fallback")

T = TypeVar("T")

ProviderOperation = Callable[[ProviderConfig, Any], Awaitable[T]]
HealthProbe = Callable[[ProviderConfig], Awaitable[bool]]


@dataclass
class FallbackResult(Generic[T]):
    result: T
    provider_id: str
    response_time_ms: int


class ProviderFallbackRouter:
    """
    Owns the priority-ordered provider set and its health.

    Health is sticky: a provider that failed is skipped by later calls
    until a successful call or a health probe marks it healthy again.
    `start_health_checks` runs those probes on an interval so an outage
    that took every provider down does not last past the next round.
    """

    def __init__(self, providers: list[ProviderConfig] | None = None, sleep: SleepFn = asyncio.sleep):
        self._lock = Lock()
        self._providers: list[ProviderConfig] = []
        self._sleep = sleep
        self._health_task: asyncio.Task | None = None
        for provider in providers or []:
            self.add_provider(provider)

    def _sort(self) -> None:
        self._providers.sort(key=lambda p: (int(p.priority), p.id))

    def _find(self, provider_id: str) -> ProviderConfig | None:
        for provider in self._providers:
            if provider.id == provider_id:
                return provider
        return None

    def add_provider(self, provider: ProviderConfig) -> None:
        with self._lock:
            existing = self._find(provider.id)
            if existing is not None:
                self._providers.remove(existing)
            self._providers.append(provider)
            self._sort()
        logger.info("provider registered | id=%s priority=%s", provider.id, provider.priority)

    def remove_provider(self, provider_id: str) -> None:
        with self._lock:
            self._providers = [p for p in self._providers if p.id != provider_id]

    def update_health(self, provider_id: str, healthy: bool, response_time_ms: int | None = None) -> None:
        with self._lock:
            provider = self._find(provider_id)
            if provider is None:
                return
            provider.healthy = bool(healthy)
            provider.last_checked_ms = now_ms()
            if healthy:
                provider.error_count = max(0, provider.error_count - 1)
                if response_time_ms is not None:
                    prev = provider.response_time_ms
                    provider.response_time_ms = int(response_time_ms if prev == 0 else round((prev + response_time_ms) / 2))
            else:
                provider.error_count += 1

    @property
    def providers(self) -> list[ProviderConfig]:
        with self._lock:
            return list(self._providers)

    def get_healthy_providers(self) -> list[ProviderConfig]:
        with self._lock:
            return [p for p in self._providers if p.healthy]

    def get_primary_provider(self) -> ProviderConfig | None:
        healthy = self.get_healthy_providers()
        return healthy[0] if healthy else None

    def get_provider_status(self) -> list[dict]:
        with self._lock:
            return [p.to_status() for p in self._providers]

    async def execute_with_fallback(self, operation: ProviderOperation, params: Any = None) -> FallbackResult:
        healthy = self.get_healthy_providers()
        if not healthy:
            raise NoHealthyProvidersError()

        errors: dict[str, Exception] = {}
        for provider in healthy:
            started = time.monotonic()

            async def _call(p: ProviderConfig = provider):
                return await operation(p, params)

            try:
                result = await retry_api_call(_call, provider.id, sleep=self._sleep)
            except Exception as exc:
                errors[provider.id] = exc
                self.update_health(provider.id, False)
                increment_metric("provider_failures_total")
                logger.warning("provider failed, trying next | id=%s err=%s", provider.id, exc)
                continue

            elapsed_ms = int((time.monotonic() - started) * 1000)
            self.update_health(provider.id, True, response_time_ms=elapsed_ms)
            if provider.id != healthy[0].id:
                logger.warning("fallback provider served request | id=%s", provider.id)
            return FallbackResult(result=result, provider_id=provider.id, response_time_ms=elapsed_ms)

        raise AllProvidersFailedError(errors)

    async def check_health(self, probe: HealthProbe) -> dict[str, bool]:
        """Probe every provider, healthy or not, and record the outcome."""
        results: dict[str, bool] = {}
        for provider in self.providers:
            started = time.monotonic()
            try:
                ok = bool(await probe(provider))
            except Exception as exc:
                logger.warning("health probe failed | id=%s err=%s", provider.id, exc)
                ok = False
            elapsed_ms = int((time.monotonic() - started) * 1000)
            self.update_health(provider.id, ok, response_time_ms=elapsed_ms if ok else None)
            results[provider.id] = ok
        return results

    async def run_health_checks(
        self,
        probe: HealthProbe,
        interval_sec: float,
        *,
        sleep: SleepFn = asyncio.sleep,
        rounds: int | None = None,
    ) -> None:
        """Sleep, then probe every provider; repeat `rounds` times or until cancelled."""
        done = 0
        while rounds is None or done < rounds:
            await sleep(interval_sec)
            results = await self.check_health(probe)
            increment_metric("provider_health_checks")
            healthy = [pid for pid, ok in results.items() if ok]
            logger.info("periodic health check | healthy=%s total=%s", len(healthy), len(results))
            done += 1

    def start_health_checks(
        self,
        probe: HealthProbe,
        interval_sec: float = 300.0,
        *,
        sleep: SleepFn = asyncio.sleep,
    ) -> asyncio.Task | None:
        if interval_sec <= 0:
            logger.info("periodic health checks disabled")
            return None
        if self._health_task is not None and not self._health_task.done():
            return self._health_task
        self._health_task = asyncio.create_task(self.run_health_checks(probe, interval_sec, sleep=sleep))
        logger.info("periodic health checks started | interval_sec=%s", interval_sec)
        return self._health_task

    async def stop_health_checks(self) -> None:
        task, self._health_task = self._health_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("periodic health checks stopped")
