import asyncio

import pytest

from conftest import FakeClock, FakeProviderClient
from coach.ai_service.fallback import LocalTemplateProvider
from coach.report.assembler import PerformanceReportAssembler
from coach.report.history import SessionHistoryStore
from coach.resilience.errors import ProviderError
from coach.session import events
from coach.session.dispatcher import SuggestionDispatcher
from coach.session.machine import SessionStateMachine
from coach.session.producer import WebSocketTranscriptProducer
from coach.session.state import SessionStatus
from coach.speech.models import SpeechAnalytics


class _Harness:
    def __init__(self, ai_service, *, supported: bool = True, history: SessionHistoryStore | None = None):
        self.clock = FakeClock()
        self.history = history or SessionHistoryStore(limit=50)
        self.producer = WebSocketTranscriptProducer(clock=self.clock.ms, supported=supported)
        self.dispatcher = SuggestionDispatcher(ai_service, clock=self.clock.now)
        self.assembler = PerformanceReportAssembler(ai_service, self.history, clock=self.clock.ms)
        counter = {"n": 0}

        def _next_id():
            counter["n"] += 1
            return f"session_{counter['n']}"

        self.machine = SessionStateMachine(
            self.producer,
            self.dispatcher,
            self.assembler,
            clock=self.clock.ms,
            session_id_factory=_next_id,
        )
        self.events: list = []
        self.machine.event_bus.subscribe(self.events.append)

    def event_types(self) -> list[str]:
        return [e.type for e in self.events]


@pytest.fixture
def harness(make_ai_service):
    def _make(clients=None, **kwargs) -> _Harness:
        return _Harness(make_ai_service(clients or {"local": LocalTemplateProvider()}), **kwargs)

    return _make


@pytest.mark.asyncio
async def test_start_moves_idle_to_capturing(harness):
    h = harness()
    assert h.machine.snapshot().can_start is True

    assert await h.machine.start_session() is True

    state = h.machine.snapshot()
    assert state.status == SessionStatus.CAPTURING
    assert state.is_active and state.is_recording
    assert state.can_start is False
    assert events.SESSION_STARTED in h.event_types()
    assert h.producer.running is True


@pytest.mark.asyncio
async def test_unsupported_capture_fails_fast(harness):
    h = harness(supported=False)

    assert await h.machine.start_session() is False

    state = h.machine.snapshot()
    assert state.status == SessionStatus.ERROR
    assert state.is_active is False
    assert state.has_error is True
    assert events.SESSION_START_FAILED in h.event_types()

    await h.machine.clear_error()
    assert h.machine.snapshot().status == SessionStatus.IDLE
    assert h.machine.snapshot().can_start is True


@pytest.mark.asyncio
async def test_stop_with_transcript_saves_exactly_one_record(harness):
    h = harness()
    await h.machine.start_session()
    h.clock.advance(30)
    await h.producer.ingest("I led the rollout and we delivered early.", 0.92)
    h.clock.advance(30)
    await h.producer.ingest("The team cut latency by forty percent.", 0.88)

    record = await h.machine.stop_session()

    assert record is not None
    assert len(h.history) == 1
    saved = h.history.list_sessions()[0]
    assert saved["id"] == "session_1"
    assert saved["duration"] == pytest.approx(1.0)
    assert set(saved) == {"id", "timestamp", "platform", "duration", "transcript", "analytics", "suggestions", "performanceReport"}
    assert set(saved["analytics"]) == {"wordsPerMinute", "fillerWords", "confidenceScore"}
    state = h.machine.snapshot()
    assert state.status == SessionStatus.IDLE
    assert state.is_active is False
    assert state.last_record_id == "session_1"


@pytest.mark.asyncio
async def test_stop_with_empty_transcript_saves_nothing(harness):
    h = harness()
    await h.machine.start_session()

    record = await h.machine.stop_session()

    assert record is None
    assert len(h.history) == 0
    assert h.machine.snapshot().status == SessionStatus.IDLE
    assert h.machine.snapshot().has_error is False


@pytest.mark.asyncio
async def test_stop_order_is_producer_processing_report_idle(harness):
    order: list[str] = []
    h = harness()

    original_stop = h.producer.stop

    async def _tracking_stop():
        order.append("producer_stopped")
        await original_stop()

    async def _tracking_assemble(**kwargs):
        order.append(f"assemble:{h.machine.status.value}")
        await asyncio.sleep(0)
        return None

    h.producer.stop = _tracking_stop
    h.assembler.assemble = _tracking_assemble
    h.machine.event_bus.subscribe(
        lambda e: order.append(f"status:{e.payload['status']}") if e.type == events.STATUS_CHANGED else None
    )

    await h.machine.start_session()
    order.clear()
    await h.machine.stop_session()

    assert order == ["producer_stopped", "status:processing", "assemble:processing", "status:idle"]


@pytest.mark.asyncio
async def test_transcript_after_stop_is_ignored(harness):
    h = harness()
    await h.machine.start_session()
    await h.machine.stop_session()

    assert await h.producer.ingest("late words", 0.9) is False
    await h.machine.on_transcript("late words", [])
    assert h.machine.snapshot().transcript == ""


@pytest.mark.asyncio
async def test_report_failure_sets_error_but_finishes_teardown(harness):
    h = harness({"openai": FakeProviderClient("openai", [ProviderError("denied", status=401)])})
    await h.machine.start_session()
    await h.producer.ingest("We migrated the billing stack.", 0.9)

    record = await h.machine.stop_session()

    state = h.machine.snapshot()
    assert record is None
    assert state.status == SessionStatus.IDLE
    assert state.is_active is False
    assert state.error_message.startswith("Failed to generate performance report")
    assert len(h.history) == 0
    assert events.REPORT_FAILED in h.event_types()
    assert h.event_types()[-1] == events.SESSION_STOPPED


@pytest.mark.asyncio
async def test_toggle_recording_keeps_accumulated_state(harness):
    h = harness()
    await h.machine.start_session()
    await h.producer.ingest("First thought here.", 0.9)

    assert await h.machine.toggle_recording() is False
    assert h.producer.paused is True
    assert await h.producer.ingest("ignored while paused", 0.9) is False

    assert await h.machine.toggle_recording() is True
    await h.producer.ingest("Second thought.", 0.9)

    state = h.machine.snapshot()
    assert state.transcript == "First thought here. Second thought."
    assert len(state.segments) == 2
    assert state.status == SessionStatus.CAPTURING


@pytest.mark.asyncio
async def test_low_confidence_final_results_are_dropped(harness):
    h = harness()
    await h.machine.start_session()

    assert await h.producer.ingest("mumbled", 0.4) is False
    assert await h.producer.ingest("interim text", 0.95, is_final=False) is False
    assert await h.producer.ingest("clear words", None) is True

    state = h.machine.snapshot()
    assert state.transcript == "clear words"
    assert state.average_confidence == 0.8


@pytest.mark.asyncio
async def test_capture_error_then_clear_returns_to_capturing(harness):
    h = harness()
    await h.machine.start_session()
    await h.producer.ingest("Some words first.", 0.9)

    await h.producer.fail("microphone disconnected")
    state = h.machine.snapshot()
    assert state.status == SessionStatus.ERROR
    assert state.error_message == "microphone disconnected"
    assert state.can_start is False

    await h.machine.clear_error()
    state = h.machine.snapshot()
    assert state.status == SessionStatus.CAPTURING
    assert state.has_error is False
    assert state.transcript == "Some words first."


@pytest.mark.asyncio
async def test_question_produces_current_suggestion_and_dismiss_clears_it(harness):
    h = harness({"openai": FakeProviderClient("openai", ["Walk through the situation, then the result."])})
    await h.machine.start_session()

    await h.producer.ingest("Tell me about a time you led a project", 0.9)
    await h.dispatcher.wait_idle()

    state = h.machine.snapshot()
    assert state.has_active_suggestion is True
    assert state.current_suggestion.suggestion == "Walk through the situation, then the result."
    assert state.status == SessionStatus.CAPTURING

    await h.machine.dismiss_suggestion()
    assert h.machine.snapshot().current_suggestion is None
    assert events.SUGGESTION_DISMISSED in h.event_types()


@pytest.mark.asyncio
async def test_suggestion_failure_surfaces_error_but_keeps_capturing(harness):
    h = harness({"openai": FakeProviderClient("openai", [ProviderError("bad key", status=401)])})
    await h.machine.start_session()

    await h.producer.ingest("What is your biggest strength?", 0.9)
    await h.dispatcher.wait_idle()

    state = h.machine.snapshot()
    assert state.status == SessionStatus.CAPTURING
    assert state.is_active is True
    assert "AI suggestion failed" in state.error_message


@pytest.mark.asyncio
async def test_delivered_suggestions_are_saved_with_record(harness):
    h = harness({
        "openai": FakeProviderClient("openai", ["Open with the outcome.", '{"summary": "Good session."}']),
    })
    await h.machine.start_session()
    await h.producer.ingest("Tell me about a time you failed", 0.9)
    await h.dispatcher.wait_idle()

    record = await h.machine.stop_session()

    assert record is not None
    assert [s["suggestion"] for s in record.suggestions] == ["Open with the outcome."]
    assert record.performance_report["summary"] == "Good session."


@pytest.mark.asyncio
async def test_clear_transcript_and_derived_flags(harness):
    h = harness()
    await h.machine.start_session()
    await h.producer.ingest("one two three four", 0.9)
    h.clock.advance(75)

    state = h.machine.snapshot()
    assert state.word_count == 4
    assert state.session_duration == "01:15"

    await h.machine.clear_transcript()
    await h.producer.ingest("fresh start", 0.9)
    state = h.machine.snapshot()
    assert state.transcript == "fresh start"
    assert len(state.segments) == 1


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_break_transitions(harness):
    h = harness()

    def _boom(_event):
        raise RuntimeError("subscriber bug")

    h.machine.event_bus.subscribe(_boom)
    assert await h.machine.start_session() is True
    assert h.machine.snapshot().status == SessionStatus.CAPTURING


@pytest.mark.asyncio
async def test_analytics_callback_updates_snapshot(harness):
    h = harness()
    await h.machine.start_session()
    await h.machine.on_analytics(SpeechAnalytics(words_per_minute=140, confidence_score=90))
    assert h.machine.snapshot().analytics.words_per_minute == 140
