"""API router -- aggregates every endpoint router under /api."""

from __future__ import annotations

from fastapi import APIRouter

from src.podflow.api.routes import (
    advertisers,
    analytics,
    auth,
    campaigns,
    episodes,
    health,
    invoices,
    master,
    megaphone,
    orders,
    rate_cards,
    reports,
    schedules,
    shows,
    users,
    youtube,
)

router = APIRouter(prefix="/api")

router.include_router(health.router)
router.include_router(auth.router)
router.include_router(campaigns.router)
router.include_router(advertisers.advertisers_router)
router.include_router(advertisers.agencies_router)
router.include_router(shows.router)
router.include_router(episodes.router)
router.include_router(rate_cards.router)
router.include_router(schedules.router)
router.include_router(orders.router)
router.include_router(invoices.router)
router.include_router(users.router)
router.include_router(reports.router)
router.include_router(analytics.router)
router.include_router(youtube.router)
router.include_router(megaphone.router)
router.include_router(master.router)
