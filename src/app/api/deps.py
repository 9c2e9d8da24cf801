"""FastAPI dependency injection for caller context and pipeline services.

The sign-in collaborator in front of this service forwards the caller's
identity in ``X-Caller-Email`` / ``X-Caller-Provider`` and the provider
OAuth token as ``Authorization: Bearer <token>``. These dependencies turn
those headers into an explicit CallerContext and pull shared services from
app.state.
"""

from __future__ import annotations

from typing import Any

from fastapi import Depends, HTTPException, Request, status

from src.app.core.context import CallerContext
from src.app.orchestration.errors import AuthRequiredError
from src.app.orchestration.gate import OrchestrationGate
from src.app.orchestration.sessions import SessionStore


def get_caller_context(request: Request) -> CallerContext | None:
    """Build the caller context from request headers, or None if signed out."""
    email = (request.headers.get("X-Caller-Email") or "").strip()
    if not email:
        return None

    access_token = None
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        access_token = auth_header[7:].strip() or None

    return CallerContext(
        email=email,
        auth_provider=request.headers.get("X-Caller-Provider"),
        access_token=access_token,
    )


def require_caller(
    caller: CallerContext | None = Depends(get_caller_context),
) -> CallerContext:
    """Same as get_caller_context but raises AUTH_REQUIRED when signed out."""
    if caller is None:
        raise AuthRequiredError()
    return caller


def _state(request: Request, name: str) -> Any:
    """Retrieve a service from app.state, 503 if not available."""
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{name} not initialized",
        )
    return service


def get_gate(request: Request) -> OrchestrationGate:
    return _state(request, "gate")


def get_session_store(request: Request) -> SessionStore:
    return _state(request, "session_store")


def get_google_factory(request: Request) -> Any:
    return _state(request, "google_factory")


def get_calendar_connector(request: Request) -> Any:
    return _state(request, "calendar_connector")


def get_tasks_connector(request: Request) -> Any:
    return _state(request, "tasks_connector")
