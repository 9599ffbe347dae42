import pytest
from fastapi.testclient import TestClient

from coach.ai_service.fallback import LocalTemplateProvider
from coach.api.ws_session import CoachServices
from coach.main import create_app
from coach.report.assembler import PerformanceReportAssembler
from coach.report.history import SessionHistoryStore


@pytest.fixture
def client(make_ai_service):
    ai_service = make_ai_service({"local": LocalTemplateProvider()})
    history = SessionHistoryStore()
    services = CoachServices(ai_service=ai_service, assembler=PerformanceReportAssembler(ai_service, history))
    with TestClient(create_app(services)) as test_client:
        yield test_client


def _reply_to(ws, command: str) -> dict:
    while True:
        message = ws.receive_json()
        if message.get("type") == "state" and message.get("command") == command:
            return message
        if message.get("type") == "error":
            return message


def test_health_and_providers(client):
    health = client.get("/health").json()
    assert health == {"status": "ok", "providers": 1, "healthy_providers": 1}

    providers = client.get("/providers").json()
    assert providers[0]["id"] == "local"
    assert "api_key" not in providers[0]


def test_metrics_snapshot(client):
    payload = client.get("/metrics").json()
    assert payload["sessions_started"] == 0
    assert "avg_suggestion_latency_ms" in payload


def test_websocket_session_round_trip(client):
    with client.websocket_connect("/ws/session") as ws:
        initial = ws.receive_json()
        assert initial["type"] == "state"
        assert initial["state"]["status"] == "idle"
        assert initial["state"]["canStart"] is True

        ws.send_json({"type": "start"})
        started = _reply_to(ws, "start")
        assert started["result"] == {"started": True}
        assert started["state"]["status"] == "capturing"

        ws.send_json({"type": "transcript", "text": "I rebuilt the billing pipeline.", "confidence": 0.93})
        said = _reply_to(ws, "transcript")
        assert said["result"] == {"accepted": True}
        assert said["state"]["wordCount"] == 5

        ws.send_json({"type": "stop"})
        stopped = _reply_to(ws, "stop")
        assert stopped["state"]["status"] == "idle"
        assert stopped["result"]["record_id"] == started["state"]["sessionId"]

    sessions = client.get("/sessions", params={"limit": 5}).json()["sessions"]
    assert len(sessions) == 1
    assert sessions[0]["platform"] == "Live Meeting"
    assert set(sessions[0]["analytics"]) == {"wordsPerMinute", "fillerWords", "confidenceScore"}


def test_invalid_message_is_rejected_without_closing(client):
    with client.websocket_connect("/ws/session") as ws:
        ws.receive_json()
        ws.send_text('{"type": "explode"}')
        assert ws.receive_json() == {"type": "error", "detail": "invalid message"}

        ws.send_text("not json at all")
        assert ws.receive_json()["type"] == "error"

        ws.send_json({"type": "clear_error"})
        assert _reply_to(ws, "clear_error")["state"]["hasError"] is False


def test_disconnect_mid_session_still_saves_the_record(client):
    history = client.app.state.services.assembler.history

    with client.websocket_connect("/ws/session") as ws:
        ws.receive_json()
        ws.send_json({"type": "start"})
        session_id = _reply_to(ws, "start")["state"]["sessionId"]
        ws.send_json({"type": "transcript", "text": "We shipped the search rewrite in March.", "confidence": 0.9})
        assert _reply_to(ws, "transcript")["result"] == {"accepted": True}

    assert len(history) == 1
    assert history.get_session(session_id)["transcript"] == "We shipped the search rewrite in March."
    assert client.get("/metrics").json()["ws_connections_active"] == 0


def test_lifespan_runs_periodic_health_checks(make_ai_service):
    ai_service = make_ai_service({"local": LocalTemplateProvider()})
    services = CoachServices(ai_service=ai_service, assembler=PerformanceReportAssembler(ai_service, SessionHistoryStore()))
    app = create_app(services, health_check_interval_sec=300)

    with TestClient(app):
        task = ai_service.router._health_task
        assert task is not None and not task.done()

    assert ai_service.router._health_task is None
    assert task.cancelled()
