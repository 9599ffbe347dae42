import json
import logging

from core.logger import build_event, log_event


def test_event_carries_provider_and_seq_only_when_set():
    full = build_event("dispatcher", "suggestion_delivered", "s1", provider="claude", seq=7)
    assert full == {
        "component": "dispatcher",
        "event": "suggestion_delivered",
        "session_id": "s1",
        "provider": "claude",
        "seq": 7,
    }

    bare = build_event("session", "status_changed")
    assert "provider" not in bare
    assert "seq" not in bare
    assert bare["session_id"] == ""


def test_free_text_is_redacted_and_long_errors_are_truncated():
    payload = build_event(
        "report",
        "failed",
        "s2",
        transcript="I led the migration",
        error="x" * 500,
        details={"prompt": "secret prompt", "attempts": 3},
    )

    assert payload["transcript"] == {"redacted": True, "chars": 19, "words": 4}
    assert len(payload["error"]) == 303
    assert payload["details"] == {"prompt": {"redacted": True, "chars": 13, "words": 2}, "attempts": 3}


def test_log_event_writes_one_json_line(caplog):
    with caplog.at_level(logging.INFO, logger="coach.events"):
        log_event("ws_session", "connect", provider="openai", suggestion="Say the outcome first.")

    line = json.loads(caplog.records[-1].getMessage())
    assert line["provider"] == "openai"
    assert line["suggestion"]["redacted"] is True
