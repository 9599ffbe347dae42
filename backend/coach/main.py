import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware

from coach.ai_service.service import build_ai_service
from coach.api.ws_session import CoachServices, router as session_ws_router
from coach.report.assembler import PerformanceReportAssembler
from coach.report.history import SessionHistoryStore
from coach.schemas import HealthResponse, ProviderStatus
from coach.system_metrics import get_metrics_snapshot
from core.config import (
    HEALTH_CHECK_INTERVAL_SEC,
    QA_MODE,
    SESSION_HISTORY_LIMIT,
    SESSION_HISTORY_PATH,
    SESSION_HISTORY_PERSIST,
)

logging.basicConfig(
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger("coach.main")


def _get_allowed_origins() -> list[str]:
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if not raw:
        return [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
    return [item.strip() for item in raw.split(",") if item.strip()]


def create_app(
    services: CoachServices | None = None,
    health_check_interval_sec: float = HEALTH_CHECK_INTERVAL_SEC,
) -> FastAPI:
    if services is None:
        history = SessionHistoryStore(
            path=SESSION_HISTORY_PATH if SESSION_HISTORY_PERSIST else None,
            limit=SESSION_HISTORY_LIMIT,
        )
        ai_service = build_ai_service()
        services = CoachServices(ai_service=ai_service, assembler=PerformanceReportAssembler(ai_service, history))

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        services.ai_service.start_health_checks(health_check_interval_sec)
        try:
            yield
        finally:
            await services.ai_service.stop_health_checks()
            logger.info("shutdown complete")

    app = FastAPI(title="Live Meeting Coach", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_get_allowed_origins(),
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=False,
    )
    app.state.services = services

    @app.get("/health", response_model=HealthResponse)
    def health():
        providers = services.ai_service.router.providers
        healthy = [p for p in providers if p.healthy]
        return {
            "status": "ok" if healthy else "degraded",
            "providers": len(providers),
            "healthy_providers": len(healthy),
        }

    @app.get("/sessions")
    def list_sessions(limit: int = Query(default=20, ge=1, le=SESSION_HISTORY_LIMIT)):
        return {"sessions": services.assembler.history.list_sessions(limit)}

    @app.get("/providers", response_model=list[ProviderStatus])
    def providers():
        return services.ai_service.provider_status()

    @app.post("/providers/health")
    async def check_providers():
        return {"results": await services.ai_service.check_health()}

    @app.get("/metrics")
    def metrics():
        return get_metrics_snapshot(extra={"qa_mode": QA_MODE})

    app.include_router(session_ws_router)
    logger.info("app ready | providers=%s", len(services.ai_service.router.providers))
    return app


app = create_app()
