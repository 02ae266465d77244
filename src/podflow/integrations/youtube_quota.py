"""Per-organization YouTube Data API quota accounting.

Usage is a Redis counter per organization per UTC day (the key carries the
date, so the count resets at UTC midnight and old keys expire on their
own). Crossing 80% or 100% of the daily limit is reported once per day.

Whether an exhausted quota blocks calls is a deployment setting
(``YOUTUBE_QUOTA_ENFORCEMENT``). With enforcement off, usage is still
counted and threshold events still fire.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

import redis.asyncio as aioredis
import structlog

from src.podflow.core.errors import QuotaExceededError
from src.podflow.core.monitoring import youtube_quota_rejections_total, youtube_quota_units_total
from src.podflow.core.redis import TenantRedis
from src.podflow.integrations.models import QuotaStatus

logger = structlog.get_logger(__name__)

# Cost units per call, from the YouTube Data API v3 quota table
YOUTUBE_API_COSTS: dict[str, int] = {
    "channels.list": 1,
    "videos.list": 1,
    "playlists.list": 1,
    "playlistItems.list": 1,
    "commentThreads.list": 1,
    "search.list": 100,
    "videos.update": 50,
    "videos.insert": 1600,
}

# Endpoints billed once per requested part
PER_PART_ENDPOINTS = frozenset({"channels.list", "videos.list"})

THRESHOLDS = (80, 100)

_KEY_TTL_SECONDS = 2 * 24 * 60 * 60


def quota_cost(endpoint: str, parts: int = 1) -> int:
    """Units charged for one call. Unknown endpoints cost 1 unit."""
    base = YOUTUBE_API_COSTS.get(endpoint, 1)
    if endpoint in PER_PART_ENDPOINTS:
        return base * max(parts, 1)
    return base


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _reset_at(day: date) -> datetime:
    return datetime.combine(day + timedelta(days=1), time.min, tzinfo=timezone.utc)


class YouTubeQuotaManager:
    """Tracks and optionally enforces the daily quota.

    Args:
        redis_client: Shared Redis client; keys are prefixed per organization.
        daily_limit: Default units per day when the organization has no override.
        enforcement_enabled: Reject calls that would exceed the limit.
    """

    def __init__(self, redis_client: aioredis.Redis, *, daily_limit: int, enforcement_enabled: bool) -> None:
        self._redis = redis_client
        self._daily_limit = daily_limit
        self._enforcement_enabled = enforcement_enabled

    @property
    def enforcement_enabled(self) -> bool:
        return self._enforcement_enabled

    def _store(self, organization_slug: str) -> TenantRedis:
        return TenantRedis(self._redis, organization_slug)

    @staticmethod
    def _usage_key(day: date) -> str:
        return f"youtube:quota:{day.isoformat()}"

    def _status(self, organization_slug: str, day: date, used: int, limit: int) -> QuotaStatus:
        return QuotaStatus(
            organization=organization_slug,
            day=day,
            used=used,
            limit=limit,
            remaining=max(limit - used, 0),
            percentage_used=round(used / limit * 100, 2) if limit else 100.0,
            enforcement_enabled=self._enforcement_enabled,
            reset_at=_reset_at(day),
        )

    async def usage(self, organization_slug: str, daily_limit: int | None = None) -> QuotaStatus:
        day = _utc_today()
        limit = daily_limit if daily_limit is not None else self._daily_limit
        raw = await self._store(organization_slug).get(self._usage_key(day))
        return self._status(organization_slug, day, int(raw or 0), limit)

    async def consume(
        self,
        organization_slug: str,
        endpoint: str,
        parts: int = 1,
        daily_limit: int | None = None,
    ) -> QuotaStatus:
        """Charge one call against today's quota.

        Raises:
            QuotaExceededError: enforcement is on and the call would push
            usage past the limit. Nothing is charged in that case.
        """
        cost = quota_cost(endpoint, parts)
        current = await self.usage(organization_slug, daily_limit)

        if self._enforcement_enabled and current.used + cost > current.limit:
            youtube_quota_rejections_total.labels(organization=organization_slug).inc()
            logger.warning(
                "youtube_quota_rejected",
                organization=organization_slug,
                endpoint=endpoint,
                used=current.used,
                limit=current.limit,
                cost=cost,
            )
            raise QuotaExceededError(
                f"YouTube API quota exceeded: {current.used}/{current.limit} units used",
                reset_at=current.reset_at.isoformat(),
            )

        store = self._store(organization_slug)
        used = await store.incrby(self._usage_key(current.day), cost, ex=_KEY_TTL_SECONDS)
        youtube_quota_units_total.labels(organization=organization_slug, endpoint=endpoint).inc(cost)

        status = self._status(organization_slug, current.day, used, current.limit)
        for threshold in THRESHOLDS:
            before = (used - cost) * 100
            after = used * 100
            if before < threshold * current.limit <= after:
                first = await store.set_if_absent(
                    f"youtube:quota:{current.day.isoformat()}:alert:{threshold}", "1", ex=_KEY_TTL_SECONDS
                )
                if first:
                    status.threshold_crossed = threshold
                    logger.warning(
                        "youtube_quota_threshold_crossed",
                        organization=organization_slug,
                        threshold=threshold,
                        used=used,
                        limit=current.limit,
                    )
        return status
