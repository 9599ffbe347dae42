import json
import logging
from typing import Any

logger = logging.getLogger("coach.events")

# Free text spoken by the user or produced by a model; logged as size only.
_REDACTED_KEYS = {"text", "transcript", "context", "prompt", "suggestion", "reasoning", "api_key"}
_MAX_FIELD_CHARS = 300


def _redacted(value: Any) -> dict:
    text = str(value or "")
    return {"redacted": True, "chars": len(text), "words": len(text.split())}


def _clean(key: str, value: Any) -> Any:
    if key.lower() in _REDACTED_KEYS:
        return _redacted(value)
    if isinstance(value, str):
        return value if len(value) <= _MAX_FIELD_CHARS else value[:_MAX_FIELD_CHARS] + "..."
    if isinstance(value, (int, float, bool)) or value is None:
        return value
    if isinstance(value, dict):
        return {str(k): _clean(str(k), v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_clean(key, item) for item in value]
    return str(value)


def build_event(
    component: str,
    event: str,
    session_id: str | None = None,
    *,
    provider: str | None = None,
    seq: int | None = None,
    **fields: Any,
) -> dict:
    """
    Shape one structured event line.

    `provider` and `seq` are only present when set, so dispatcher and
    report lines can be correlated with router warnings.
    """
    payload: dict[str, Any] = {
        "component": str(component or "coach"),
        "event": str(event or "unknown"),
        "session_id": str(session_id or ""),
    }
    if provider:
        payload["provider"] = str(provider)
    if seq is not None:
        payload["seq"] = int(seq)
    for key, value in fields.items():
        payload[str(key)] = _clean(str(key), value)
    return payload


def log_event(component: str, event: str, session_id: str | None = None, **fields: Any) -> None:
    logger.info(json.dumps(build_event(component, event, session_id, **fields), ensure_ascii=False, default=str))
