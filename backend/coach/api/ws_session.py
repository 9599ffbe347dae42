from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from starlette.websockets import WebSocketState

from coach.ai_service.service import AIService
from coach.report.assembler import PerformanceReportAssembler
from coach.schemas import SessionCommand
from coach.session.dispatcher import SuggestionDispatcher
from coach.session.events import SessionEvent, SessionEventBus
from coach.session.machine import SessionStateMachine
from coach.session.producer import WebSocketTranscriptProducer
from coach.system_metrics import decrement_metric, increment_metric
from core.config import SUGGESTION_THROTTLE_SEC
from core.logger import log_event

logger = logging.getLogger("coach.api.ws_session")

router = APIRouter()

MAX_WS_TEXT_BYTES = max(1024, int(os.getenv("WS_MAX_TEXT_BYTES", "65536")))


@dataclass
class CoachServices:
    ai_service: AIService
    assembler: PerformanceReportAssembler


def build_session_machine(services: CoachServices) -> tuple[SessionStateMachine, WebSocketTranscriptProducer]:
    producer = WebSocketTranscriptProducer()
    dispatcher = SuggestionDispatcher(
        services.ai_service,
        throttle_sec=SUGGESTION_THROTTLE_SEC,
        framework=services.ai_service.config.framework,
    )
    machine = SessionStateMachine(producer, dispatcher, services.assembler, event_bus=SessionEventBus())
    return machine, producer


async def handle_command(
    command: SessionCommand,
    machine: SessionStateMachine,
    producer: WebSocketTranscriptProducer,
) -> dict:
    result: dict = {}
    if command.type == "start":
        result["started"] = await machine.start_session()
    elif command.type == "stop":
        record = await machine.stop_session()
        result["record_id"] = record.id if record else None
    elif command.type == "toggle_recording":
        result["is_recording"] = await machine.toggle_recording()
    elif command.type == "transcript":
        result["accepted"] = await producer.ingest(command.text or "", command.confidence, command.is_final)
    elif command.type == "analytics":
        if command.analytics is not None:
            await machine.on_analytics(command.analytics.to_analytics())
    elif command.type == "error":
        message = command.message or "speech recognition error"
        if producer.running:
            await producer.fail(message)
        else:
            await machine.on_error(message)
    elif command.type == "dismiss_suggestion":
        await machine.dismiss_suggestion()
    elif command.type == "clear_error":
        await machine.clear_error()
    elif command.type == "clear_transcript":
        await machine.clear_transcript()
    return result


@router.websocket("/ws/session")
async def session_ws(websocket: WebSocket):
    services: CoachServices = websocket.app.state.services
    machine, producer = build_session_machine(services)

    await websocket.accept()
    increment_metric("ws_connections_active")
    log_event("ws_session", "connect")

    async def _safe_send(payload: dict) -> None:
        if websocket.client_state != WebSocketState.CONNECTED:
            return
        try:
            await websocket.send_text(json.dumps(payload, default=str))
        except Exception as exc:
            logger.warning("ws send failed | err=%s", exc)

    async def _forward_event(event: SessionEvent) -> None:
        await _safe_send({"type": "event", "event": event.to_dict()})

    unsubscribe = machine.event_bus.subscribe(_forward_event)
    await _safe_send({"type": "state", "state": machine.snapshot().to_dict()})

    try:
        while True:
            raw = await websocket.receive_text()
            if len(raw.encode("utf-8")) > MAX_WS_TEXT_BYTES:
                await _safe_send({"type": "error", "detail": "message too large"})
                continue
            try:
                command = SessionCommand.model_validate_json(raw)
            except ValidationError as exc:
                logger.warning("invalid ws message | err=%s", exc.errors()[:1])
                await _safe_send({"type": "error", "detail": "invalid message"})
                continue

            try:
                result = await handle_command(command, machine, producer)
            except Exception as exc:
                logger.exception("ws command failed | type=%s", command.type)
                await _safe_send({"type": "error", "detail": str(exc)})
                continue

            await _safe_send({
                "type": "state",
                "command": command.type,
                "result": result,
                "state": machine.snapshot().to_dict(),
            })
    except WebSocketDisconnect:
        logger.info("ws disconnected | session_id=%s", machine.snapshot().session_id)
    finally:
        unsubscribe()
        if machine.is_active:
            # Client went away mid-session; finalize so the transcript is not lost.
            await machine.stop_session()
        decrement_metric("ws_connections_active")
        log_event("ws_session", "disconnect", session_id=machine.snapshot().session_id)
