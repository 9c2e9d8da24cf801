"""Prometheus metrics, Sentry integration, and oracle call tracking.

Provides:
- MetricsMiddleware: ASGI middleware for HTTP request metrics
- init_sentry(): Initialize Sentry with caller-aware before_send callback
- track_oracle_call(): Context manager for oracle call metrics
- record_gate_outcome(), record_dispatch_attempt(), record_sync_result()
- get_metrics_response(): Response for the /metrics route
"""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import sentry_sdk
from prometheus_client import (
    REGISTRY,
    Counter,
    Histogram,
    generate_latest,
)
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ── HTTP Metrics ─────────────────────────────────────────────────────────────

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Oracle Metrics ───────────────────────────────────────────────────────────

oracle_requests_total = Counter(
    "oracle_requests_total",
    "Total Intelligence Oracle requests",
    ["model", "status"],
)

oracle_request_duration_seconds = Histogram(
    "oracle_request_duration_seconds",
    "Intelligence Oracle request duration in seconds",
    ["model"],
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

# ── Pipeline Metrics ─────────────────────────────────────────────────────────

gate_evaluations_total = Counter(
    "gate_evaluations_total",
    "Orchestration gate evaluations by outcome",
    ["outcome"],
)

dispatch_attempts_total = Counter(
    "dispatch_attempts_total",
    "Email dispatch attempts by provider and result",
    ["provider", "result"],
)

sync_items_total = Counter(
    "sync_items_total",
    "Calendar/task sync items by connector and result",
    ["connector", "result"],
)


# ── Metrics Middleware ───────────────────────────────────────────────────────


class MetricsMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that records Prometheus metrics for every HTTP request.

    Skips the /metrics endpoint itself to avoid self-referential counting.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        # Route pattern (resolved during call_next) keeps session ids out of labels
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)

        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=str(response.status_code),
        ).inc()

        http_request_duration_seconds.labels(
            method=request.method,
            endpoint=endpoint,
        ).observe(duration)

        return response


# ── Oracle Metrics Helper ────────────────────────────────────────────────────


@asynccontextmanager
async def track_oracle_call(model: str) -> AsyncGenerator[dict[str, Any], None]:
    """Context manager that tracks oracle call metrics.

    Usage:
        async with track_oracle_call(model) as tracker:
            record = await client.chat.completions.create(...)

    Records duration and a success/error request count.
    """
    tracker: dict[str, Any] = {"model": model}
    start_time = time.perf_counter()
    status = "success"

    try:
        yield tracker
    except Exception:
        status = "error"
        raise
    finally:
        duration = time.perf_counter() - start_time
        oracle_requests_total.labels(model=model, status=status).inc()
        oracle_request_duration_seconds.labels(model=model).observe(duration)


def record_gate_outcome(outcome: str) -> None:
    gate_evaluations_total.labels(outcome=outcome).inc()


def record_dispatch_attempt(provider: str, result: str) -> None:
    dispatch_attempts_total.labels(provider=provider, result=result).inc()


def record_sync_result(connector: str, result: str) -> None:
    sync_items_total.labels(connector=connector, result=result).inc()


# ── Sentry Integration ───────────────────────────────────────────────────────


def init_sentry(dsn: str, environment: str) -> None:
    """Initialize Sentry SDK.

    Access tokens and email bodies never reach Sentry: request headers and
    bodies are dropped in before_send.

    Args:
        dsn: Sentry DSN string.
        environment: Deployment environment (development, staging, production).
    """
    traces_sample_rate = 0.1 if environment == "production" else 1.0

    def before_send(event: dict, hint: dict) -> dict:
        request = event.get("request")
        if isinstance(request, dict):
            request.pop("headers", None)
            request.pop("data", None)
        return event

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=traces_sample_rate,
        send_default_pii=False,
        integrations=[
            StarletteIntegration(),
            FastApiIntegration(),
        ],
        before_send=before_send,
    )


# ── Metrics Endpoint ─────────────────────────────────────────────────────────


def get_metrics_response() -> Response:
    """Generate Prometheus exposition format response."""
    return Response(
        content=generate_latest(REGISTRY),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
