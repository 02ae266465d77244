"""Prometheus metrics and Sentry integration.

Provides:
- MetricsMiddleware: ASGI middleware for HTTP request metrics
- tenant query, degraded read and YouTube quota metrics
- init_sentry(): Initialize Sentry with organization-aware before_send callback
- get_metrics_response(): Prometheus exposition for the /metrics route
"""

from __future__ import annotations

import time

from prometheus_client import (
    REGISTRY,
    Counter,
    Histogram,
    generate_latest,
)
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

# ── Tenant Query Metrics ─────────────────────────────────────────────────────

tenant_queries_total = Counter(
    "tenant_queries_total",
    "Queries executed against organization schemas",
    ["organization", "outcome"],
)

tenant_query_duration_seconds = Histogram(
    "tenant_query_duration_seconds",
    "Tenant query duration in seconds",
    ["organization"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

degraded_reads_total = Counter(
    "degraded_reads_total",
    "Read endpoints that answered with an empty degraded result",
    ["organization", "resource"],
)

# ── Integration Metrics ──────────────────────────────────────────────────────

youtube_quota_units_total = Counter(
    "youtube_quota_units_total",
    "YouTube Data API quota units consumed",
    ["organization", "endpoint"],
)

youtube_quota_rejections_total = Counter(
    "youtube_quota_rejections_total",
    "YouTube calls refused because the daily quota was exhausted",
    ["organization"],
)


# ── Metrics Middleware ───────────────────────────────────────────────────────


def route_template(request: Request) -> str:
    """The request path with every path parameter value put back as ``{name}``.

    Built from the concrete path rather than the matched route object, whose
    ``path`` leaves out router prefixes on some FastAPI releases.
    """
    if request.scope.get("route") is None and request.scope.get("endpoint") is None:
        return "unmatched"
    names = {str(value): name for name, value in request.path_params.items()}
    return "/".join(f"{{{names[part]}}}" if part in names else part for part in request.url.path.split("/"))


class MetricsMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that records Prometheus metrics for every HTTP request.

    Uses the matched route template as the endpoint label so ids in paths
    don't explode label cardinality. Skips /metrics itself.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        endpoint = route_template(request)

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


# ── Sentry Integration ───────────────────────────────────────────────────────


def init_sentry(dsn: str, environment: str) -> None:
    """Initialize Sentry SDK with organization-aware event tagging.

    Args:
        dsn: Sentry DSN string.
        environment: Deployment environment (development, staging, production).
    """
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.starlette import StarletteIntegration

    traces_sample_rate = 0.1 if environment == "production" else 1.0

    def before_send(event: dict, hint: dict) -> dict:
        """Add organization and user context to Sentry events."""
        try:
            from src.podflow.core.tenant import get_current_tenant

            ctx = get_current_tenant()
            event.setdefault("tags", {})
            event["tags"]["organization"] = ctx.organization_slug
            event["tags"]["role"] = ctx.role
            event.setdefault("user", {})["id"] = ctx.user_id
        except RuntimeError:
            pass
        return event

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=traces_sample_rate,
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
