"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, CORS, Sentry,
the orchestration error handler, and the v1 API router. Pipeline services
(gate, session store, provider factories, sync connectors) are built here
and attached to app.state.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import JSONResponse, Response

from src.app.config import get_settings
from src.app.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.app.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.app.api.v1.router import router as v1_router
from src.app.orchestration.errors import (
    AuthRequiredError,
    DispatchItemNotFound,
    OracleFailure,
    OrchestrationError,
    PipelineBlocked,
    SessionNotFound,
)
from src.app.orchestration.gate import OrchestrationGate
from src.app.orchestration.oracle import IntelligenceOracle, LLMIntelligenceOracle
from src.app.orchestration.sessions import SessionStore
from src.app.services.gsuite.auth import GoogleServiceFactory
from src.app.services.llm import StructuredLLMClient
from src.app.sync.backends import calendar_backend_resolver, tasks_backend_resolver
from src.app.sync.calendar import CalendarSyncConnector
from src.app.sync.tasks import TasksSyncConnector

logger = structlog.get_logger(__name__)

_STATUS_BY_ERROR: dict[type[OrchestrationError], int] = {
    AuthRequiredError: 401,
    PipelineBlocked: 409,
    OracleFailure: 502,
    SessionNotFound: 404,
    DispatchItemNotFound: 404,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: configure logging and Sentry on startup."""
    settings = get_settings()
    configure_structlog()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    if not settings.has_llm_credentials():
        logger.warning("oracle_no_llm_keys_configured")

    logger.info("app_started", environment=settings.ENVIRONMENT.value)
    yield
    logger.info("app_stopped")


async def orchestration_error_handler(request: Request, exc: OrchestrationError) -> JSONResponse:
    """Render pipeline failures as ``{"error": {"kind", "message"}}``."""
    status_code = 500
    for error_type, code in _STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            status_code = code
            break

    if status_code >= 500:
        logger.error("orchestration_error", kind=exc.kind, error=exc.message)
    else:
        logger.info("orchestration_rejected", kind=exc.kind, status_code=status_code)

    return JSONResponse(status_code=status_code, content={"error": exc.to_dict()})


def create_app(oracle: IntelligenceOracle | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        oracle: Intelligence oracle used by the gate. Defaults to the
            LiteLLM-backed structured extraction oracle.
    """
    settings = get_settings()

    app = FastAPI(
        title="Meeting Orchestrator API",
        version="0.1.0",
        description="Post-meeting intelligence gate, email dispatch and calendar/task sync",
        lifespan=lifespan,
    )

    # ── Pipeline services ────────────────────────────────────────────────
    if oracle is None:
        oracle = LLMIntelligenceOracle(StructuredLLMClient(settings))
    google_factory = GoogleServiceFactory()

    app.state.gate = OrchestrationGate(oracle)
    app.state.session_store = SessionStore()
    app.state.google_factory = google_factory
    app.state.calendar_connector = CalendarSyncConnector(
        calendar_backend_resolver(google_factory, settings), settings=settings
    )
    app.state.tasks_connector = TasksSyncConnector(
        tasks_backend_resolver(google_factory, settings), settings=settings
    )

    app.add_exception_handler(OrchestrationError, orchestration_error_handler)

    # Middleware is added in reverse order (last added = outermost)

    # CORS middleware
    if settings.CORS_ALLOWED_ORIGINS == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    app.include_router(v1_router)

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
