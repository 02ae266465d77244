"""Tenant-aware Redis wrapper with automatic key prefixing.

Every Redis key is automatically prefixed with ``org:{slug}:`` so counters
and cached values of one organization can never be read by another.
"""

from __future__ import annotations

import redis.asyncio as aioredis

from src.podflow.config import get_settings
from src.podflow.core.tenant import get_current_tenant

# ── Module-level Redis pool (lazy init) ─────────────────────────────────────

_redis_pool: aioredis.Redis | None = None


def get_redis_pool() -> aioredis.Redis:
    """Get or create the Redis connection pool singleton."""
    global _redis_pool
    if _redis_pool is None:
        settings = get_settings()
        _redis_pool = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
    return _redis_pool


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool
    if _redis_pool:
        await _redis_pool.aclose()
        _redis_pool = None


# ── Tenant Redis Wrapper ───────────────────────────────────────────────────


class TenantRedis:
    """Organization-scoped Redis wrapper.

    The organization comes from the explicit ``organization_slug`` when
    given, otherwise from the current tenant context.
    """

    def __init__(self, redis_client: aioredis.Redis, organization_slug: str | None = None):
        self._redis = redis_client
        self._organization_slug = organization_slug

    def _key(self, key: str) -> str:
        slug = self._organization_slug or get_current_tenant().organization_slug
        return f"org:{slug}:{key}"

    async def get(self, key: str) -> str | None:
        return await self._redis.get(self._key(key))

    async def set(self, key: str, value: str, ex: int | None = None) -> None:
        await self._redis.set(self._key(key), value, ex=ex)

    async def delete(self, key: str) -> int:
        return await self._redis.delete(self._key(key))

    async def incrby(self, key: str, amount: int, ex: int | None = None) -> int:
        """Atomically add ``amount`` and (re)apply a TTL. Returns the new value."""
        full_key = self._key(key)
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.incrby(full_key, amount)
            if ex is not None:
                pipe.expire(full_key, ex)
            results = await pipe.execute()
        return int(results[0])

    async def set_if_absent(self, key: str, value: str, ex: int | None = None) -> bool:
        """SET NX. Returns True when the key was written."""
        return bool(await self._redis.set(self._key(key), value, ex=ex, nx=True))


def get_tenant_redis(organization_slug: str | None = None) -> TenantRedis:
    """Get a TenantRedis instance using the global Redis pool."""
    return TenantRedis(get_redis_pool(), organization_slug)
