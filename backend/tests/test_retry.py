import asyncio

import pytest

from conftest import FakeClock, RecordingSleep
from coach.resilience.errors import ProviderError, ProviderTimeoutError
from coach.resilience.retry import (
    RetryOptions,
    execute_with_retry,
    is_retryable_error,
    retry_api_call,
    retry_bulk_operations,
)


def _flaky(failures: list[BaseException], result="ok"):
    calls = {"n": 0}

    async def _op():
        calls["n"] += 1
        if failures:
            raise failures.pop(0)
        return result

    return _op, calls


@pytest.mark.asyncio
async def test_third_attempt_success_waits_one_then_two_seconds():
    clock = FakeClock(start=0.0)
    sleep = RecordingSleep(clock)
    op, calls = _flaky([ProviderTimeoutError("openai", 5), ProviderTimeoutError("openai", 5)])

    result = await execute_with_retry(op, RetryOptions(max_attempts=3, base_delay=1.0, backoff_factor=2.0), sleep=sleep)

    assert result == "ok"
    assert calls["n"] == 3
    assert sleep.delays == [1.0, 2.0]
    assert clock.now() >= 3.0


@pytest.mark.asyncio
async def test_exhaustion_reraises_last_error():
    sleep = RecordingSleep()
    last = ProviderError("upstream 503", status=503)
    op, calls = _flaky([ProviderError("first", status=503), ProviderError("second", status=503), last])

    with pytest.raises(ProviderError) as excinfo:
        await execute_with_retry(op, RetryOptions(max_attempts=3), sleep=sleep)

    assert excinfo.value is last
    assert calls["n"] == 3
    assert len(sleep.delays) == 2


@pytest.mark.asyncio
async def test_non_retryable_error_fails_immediately():
    sleep = RecordingSleep()
    op, calls = _flaky([ProviderError("bad request", status=400)])

    with pytest.raises(ProviderError):
        await execute_with_retry(op, sleep=sleep)

    assert calls["n"] == 1
    assert sleep.delays == []


def test_delay_is_capped():
    options = RetryOptions(base_delay=1.0, max_delay=5.0, backoff_factor=2.0)
    assert [options.delay_for(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]


@pytest.mark.parametrize(
    "error, expected",
    [
        (ProviderTimeoutError("claude", 10), True),
        (asyncio.TimeoutError(), True),
        (ConnectionError("reset"), True),
        (RuntimeError("network unreachable"), True),
        (ProviderError("rate limited", status=429), True),
        (ProviderError("bad gateway", status=502), True),
        (ProviderError("server error", status=500), False),
        (ProviderError("unauthorized", status=401), False),
        (ValueError("bad json"), False),
    ],
)
def test_default_retry_predicate(error, expected):
    assert is_retryable_error(error) is expected


@pytest.mark.asyncio
async def test_claude_retries_overloaded_529():
    sleep = RecordingSleep()
    op, calls = _flaky([ProviderError("overloaded", status=529)])
    assert await retry_api_call(op, "claude", sleep=sleep) == "ok"
    assert calls["n"] == 2


@pytest.mark.asyncio
async def test_openai_retries_any_5xx_but_not_4xx():
    sleep = RecordingSleep()
    op, calls = _flaky([ProviderError("internal", status=500)])
    assert await retry_api_call(op, "openai", sleep=sleep) == "ok"
    assert calls["n"] == 2

    op, calls = _flaky([ProviderError("forbidden", status=403)])
    with pytest.raises(ProviderError):
        await retry_api_call(op, "openai", sleep=sleep)
    assert calls["n"] == 1


@pytest.mark.asyncio
async def test_api_call_delays_are_capped_at_ten_seconds():
    sleep = RecordingSleep()
    op, _ = _flaky([ProviderError("a", status=503), ProviderError("b", status=503), ProviderError("c", status=503)])
    with pytest.raises(ProviderError):
        await retry_api_call(op, "gemini", sleep=sleep)
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_bulk_operations_report_progress_and_isolate_failures():
    sleep = RecordingSleep()
    ok_op, _ = _flaky([], result="saved")
    bad_op, bad_calls = _flaky([ProviderTimeoutError("x", 1), ProviderTimeoutError("x", 1)])
    progress: list[tuple[int, int, int]] = []

    results = await retry_bulk_operations(
        [("a", ok_op), ("b", bad_op)],
        on_progress=lambda done, total, partial: progress.append((done, total, len(partial))),
        sleep=sleep,
    )

    assert results["a"].success is True
    assert results["a"].result == "saved"
    assert results["b"].success is False
    assert isinstance(results["b"].error, ProviderTimeoutError)
    assert bad_calls["n"] == 2
    assert sleep.delays == [0.5]
    assert progress == [(1, 2, 1), (2, 2, 2)]
