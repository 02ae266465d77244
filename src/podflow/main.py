"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, CORS, Sentry,
JSON error handlers, lifespan events for database initialization and
service wiring, and the /api router.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from functools import partial

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import Response

from src.podflow.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.podflow.api.routes.router import router as api_router
from src.podflow.config import get_settings
from src.podflow.core.database import close_db, get_engine, get_public_session, init_db
from src.podflow.core.errors import register_exception_handlers
from src.podflow.core.executor import TenantQueryExecutor
from src.podflow.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.podflow.core.redis import close_redis, get_redis_pool
from src.podflow.integrations.megaphone import MegaphoneClient
from src.podflow.integrations.youtube import YouTubeClient
from src.podflow.integrations.youtube_quota import YouTubeQuotaManager
from src.podflow.repositories.advertisers import AdvertiserRepository, AgencyRepository
from src.podflow.repositories.campaigns import CampaignRepository
from src.podflow.repositories.orders import InvoiceRepository, OrderRepository
from src.podflow.repositories.organizations import (
    BillingPlanRepository,
    OrganizationRepository,
    PlatformSettingsRepository,
)
from src.podflow.repositories.rates import (
    CategoryExclusivityRepository,
    RateCardRepository,
    RateHistoryRepository,
)
from src.podflow.repositories.reports import ReportRepository
from src.podflow.repositories.schedules import ScheduleRepository
from src.podflow.repositories.shows import EpisodeRepository, ShowRepository
from src.podflow.repositories.users import SessionRepository, UserRepository
from src.podflow.services.auth import AuthService
from src.podflow.services.tenant_provisioning import provision_organization


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: init DB, Sentry and services on startup, close on shutdown."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()
    await init_db()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    app.state.settings = settings

    # ── Public schema: organizations, users, sessions ───────────────────
    organizations = OrganizationRepository(session_factory=get_public_session)
    users = UserRepository(session_factory=get_public_session)
    sessions = SessionRepository(session_factory=get_public_session)
    app.state.organization_repository = organizations
    app.state.platform_settings_repository = PlatformSettingsRepository(session_factory=get_public_session)
    app.state.billing_plan_repository = BillingPlanRepository(session_factory=get_public_session)
    app.state.user_repository = users
    app.state.auth_service = AuthService(users, organizations, sessions, settings)
    app.state.organization_provisioner = partial(
        provision_organization,
        engine=get_engine(),
        schema_prefix=settings.TENANT_SCHEMA_PREFIX,
    )

    # ── Organization schemas ────────────────────────────────────────────
    executor = TenantQueryExecutor(
        get_engine(),
        schema_prefix=settings.TENANT_SCHEMA_PREFIX,
        slow_query_ms=settings.SLOW_QUERY_MS,
    )
    app.state.tenant_executor = executor
    app.state.campaign_repository = CampaignRepository(executor)
    app.state.advertiser_repository = AdvertiserRepository(executor)
    app.state.agency_repository = AgencyRepository(executor)
    app.state.show_repository = ShowRepository(executor)
    app.state.episode_repository = EpisodeRepository(executor)
    app.state.rate_history_repository = RateHistoryRepository(executor)
    app.state.rate_card_repository = RateCardRepository(executor)
    app.state.category_exclusivity_repository = CategoryExclusivityRepository(executor)
    app.state.schedule_repository = ScheduleRepository(executor)
    app.state.order_repository = OrderRepository(executor)
    app.state.invoice_repository = InvoiceRepository(executor)
    app.state.report_repository = ReportRepository(executor)

    # ── Third-party integrations ────────────────────────────────────────
    # Unconfigured clients are still installed; their calls answer 502
    # with reason "not_configured".
    quota = YouTubeQuotaManager(
        get_redis_pool(),
        daily_limit=settings.YOUTUBE_DAILY_QUOTA,
        enforcement_enabled=settings.YOUTUBE_QUOTA_ENFORCEMENT,
    )
    app.state.youtube_quota = quota
    app.state.youtube_client = YouTubeClient(
        settings.YOUTUBE_API_KEY,
        quota,
        base_url=settings.YOUTUBE_API_BASE_URL,
        timeout=settings.HTTP_TIMEOUT,
    )
    app.state.megaphone_client = MegaphoneClient(
        settings.MEGAPHONE_API_TOKEN,
        settings.MEGAPHONE_NETWORK_ID,
        base_url=settings.MEGAPHONE_BASE_URL,
        timeout=settings.HTTP_TIMEOUT,
    )
    log.info(
        "app_started",
        environment=settings.ENVIRONMENT.value,
        youtube_configured=bool(settings.YOUTUBE_API_KEY),
        youtube_quota_enforcement=settings.YOUTUBE_QUOTA_ENFORCEMENT,
        megaphone_configured=bool(settings.MEGAPHONE_API_TOKEN and settings.MEGAPHONE_NETWORK_ID),
    )

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Podflow API",
        version="0.1.0",
        description="Multi-tenant podcast advertising management",
        lifespan=lifespan,
    )

    register_exception_handlers(app)

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

    app.include_router(api_router)

    # Prometheus metrics endpoint (infrastructure route, outside /api)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
