import threading
import time
from typing import Any


_lock = threading.Lock()

_COUNTERS = (
    "sessions_started",
    "sessions_stopped",
    "sessions_failed_to_start",
    "ws_connections_active",
    "suggestions_requested",
    "suggestions_delivered",
    "suggestions_throttled",
    "suggestions_stale_discarded",
    "suggestions_failed",
    "suggestions_cache_hits",
    "provider_failures_total",
    "provider_health_checks",
    "reports_generated",
    "reports_failed",
    "reports_skipped_empty",
    "suggestion_latency_total_ms",
    "suggestion_latency_samples",
)

_metrics: dict[str, float] = {name: 0.0 for name in _COUNTERS}


def increment_metric(name: str, amount: float = 1.0) -> None:
    key = str(name or "").strip()
    if not key:
        return
    with _lock:
        _metrics[key] = float(_metrics.get(key, 0.0)) + float(amount)


def decrement_metric(name: str, amount: float = 1.0) -> None:
    key = str(name or "").strip()
    if not key:
        return
    with _lock:
        next_value = float(_metrics.get(key, 0.0)) - float(amount)
        _metrics[key] = max(0.0, next_value)


def observe_suggestion_latency_ms(value_ms: float) -> None:
    latency = max(0.0, float(value_ms or 0.0))
    with _lock:
        _metrics["suggestion_latency_total_ms"] = float(_metrics.get("suggestion_latency_total_ms", 0.0)) + latency
        _metrics["suggestion_latency_samples"] = float(_metrics.get("suggestion_latency_samples", 0.0)) + 1.0


def get_metric(name: str) -> float:
    with _lock:
        return float(_metrics.get(str(name or "").strip(), 0.0))


def reset_metrics() -> None:
    with _lock:
        for key in list(_metrics.keys()):
            _metrics[key] = 0.0


def get_metrics_snapshot(extra: dict[str, Any] | None = None) -> dict[str, Any]:
    with _lock:
        data = dict(_metrics)

    latency_samples = max(1.0, float(data.get("suggestion_latency_samples") or 0.0))

    payload: dict[str, Any] = {"generated_at": time.time()}
    for key, value in data.items():
        if key.startswith("suggestion_latency_"):
            continue
        payload[key] = int(value or 0.0)
    payload["avg_suggestion_latency_ms"] = round(float(data.get("suggestion_latency_total_ms") or 0.0) / latency_samples, 2)

    if extra:
        payload.update(extra)
    return payload
