"""Health check endpoints.

Provides liveness (/health) and readiness (/health/ready) checks. The
service holds no database or cache, so readiness only verifies that at
least one oracle model has a configured API key.
"""

from __future__ import annotations

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from src.app.config import get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check.

    No external dependencies are checked -- just that the server is running.
    """
    settings = get_settings()
    return {"status": "ok", "environment": settings.ENVIRONMENT.value}


@router.get("/health/ready")
async def readiness_check():
    """Readiness check: 200 when an oracle model is usable, 503 otherwise."""
    settings = get_settings()
    checks = {"litellm": "ok" if settings.has_llm_credentials() else "no_keys"}
    ready = checks["litellm"] == "ok"

    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if ready else "degraded", "checks": checks},
    )
