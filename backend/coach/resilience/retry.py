from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Generic, TypeVar

from coach.resilience.errors import ProviderTimeoutError

logger = logging.getLogger("coach.resilience.retry")

T = TypeVar("T")

RetryPredicate = Callable[[BaseException], bool]
SleepFn = Callable[[float], Awaitable[Any]]

RETRYABLE_STATUSES = {429, 502, 503, 504}


def _status_of(error: BaseException) -> int | None:
    for attr in ("status", "status_code", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def is_retryable_error(error: BaseException) -> bool:
    """Timeouts, network failures and HTTP 429/502/503/504 are worth another try."""
    if isinstance(error, (ProviderTimeoutError, asyncio.TimeoutError, ConnectionError)):
        return True
    message = str(error or "").lower()
    if "timeout" in message or "network" in message:
        return True
    return _status_of(error) in RETRYABLE_STATUSES


@dataclass(frozen=True)
class RetryOptions:
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    backoff_factor: float = 2.0
    retry_predicate: RetryPredicate = field(default=is_retryable_error)

    def delay_for(self, attempt: int) -> float:
        """Delay after failed attempt number `attempt` (1-based)."""
        raw = self.base_delay * (self.backoff_factor ** max(0, attempt - 1))
        return min(raw, self.max_delay)


DEFAULT_RETRY_OPTIONS = RetryOptions()


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    options: RetryOptions | None = None,
    *,
    sleep: SleepFn = asyncio.sleep,
) -> T:
    config = options or DEFAULT_RETRY_OPTIONS
    attempts = max(1, int(config.max_attempts))

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except Exception as exc:
            if attempt >= attempts or not config.retry_predicate(exc):
                raise

            delay = config.delay_for(attempt)
            logger.info("attempt %s failed, retrying in %.2fs | err=%s", attempt, delay, exc)
            await sleep(delay)

    raise RuntimeError("execute_with_retry exhausted without result")


def _provider_predicate(provider: str) -> RetryPredicate:
    name = str(provider or "").strip().lower()

    def _openai_like(error: BaseException) -> bool:
        status = _status_of(error)
        if status is None:
            return is_retryable_error(error)
        return status == 429 or status >= 500

    def _claude(error: BaseException) -> bool:
        status = _status_of(error)
        if status is None:
            return is_retryable_error(error)
        # 529: Anthropic "overloaded"
        return status == 529 or status >= 500

    if name in {"openai", "gemini"}:
        return _openai_like
    if name == "claude":
        return _claude
    return is_retryable_error


API_CALL_OPTIONS = RetryOptions(max_attempts=3, base_delay=1.0, max_delay=10.0)


async def retry_api_call(
    api_call: Callable[[], Awaitable[T]],
    provider: str,
    *,
    sleep: SleepFn = asyncio.sleep,
) -> T:
    options = replace(API_CALL_OPTIONS, retry_predicate=_provider_predicate(provider))
    return await execute_with_retry(api_call, options, sleep=sleep)


@dataclass
class BulkResult(Generic[T]):
    success: bool
    result: T | None = None
    error: BaseException | None = None


BULK_OPTIONS = RetryOptions(max_attempts=2, base_delay=0.5)

ProgressFn = Callable[[int, int, dict], None]


async def retry_bulk_operations(
    operations: list[tuple[str, Callable[[], Awaitable[T]]]],
    on_progress: ProgressFn | None = None,
    *,
    sleep: SleepFn = asyncio.sleep,
) -> dict[str, BulkResult[T]]:
    """Run named operations one after another; a failed item never aborts the batch."""
    results: dict[str, BulkResult[T]] = {}
    total = len(operations)

    for index, (item_id, operation) in enumerate(operations, start=1):
        try:
            value = await execute_with_retry(operation, BULK_OPTIONS, sleep=sleep)
            results[item_id] = BulkResult(success=True, result=value)
        except Exception as exc:
            logger.warning("bulk item failed | id=%s err=%s", item_id, exc)
            results[item_id] = BulkResult(success=False, error=exc)

        if on_progress is not None:
            try:
                on_progress(index, total, dict(results))
            except Exception:
                logger.exception("bulk progress callback failed")

    return results
