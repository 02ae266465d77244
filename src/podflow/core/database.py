"""Async SQLAlchemy engine with schema-per-organization isolation.

Provides:
- PublicBase: Declarative base for platform tables (organizations, users, sessions)
- TenantBase: Declarative base for per-organization tables (placeholder schema="tenant")
- get_public_session(): Session for platform-schema operations
- create_tenant_tables(): DDL for a freshly created organization schema
- Pool checkout event that resets session state (RESET ALL) so a search_path
  pinned by one request can never leak into the next
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import MetaData, event, text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from src.podflow.config import get_settings

# ── Module-level engine (lazy init) ────────────────────────────────────────

_engine: AsyncEngine | None = None


def get_engine() -> AsyncEngine:
    """Get or create the async engine singleton."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(
            settings.DATABASE_URL,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_pre_ping=True,
            echo=False,
        )

        @event.listens_for(_engine.sync_engine, "checkout")
        def reset_session_state(dbapi_conn: Any, connection_record: Any, connection_proxy: Any) -> None:
            cursor = dbapi_conn.cursor()
            cursor.execute("RESET ALL")
            cursor.close()

    return _engine


# ── Declarative Bases ───────────────────────────────────────────────────────

public_metadata = MetaData(schema="public")
tenant_metadata = MetaData(schema="tenant")


class PublicBase(DeclarativeBase):
    """Base class for cross-tenant platform tables in the public schema."""

    metadata = public_metadata


class TenantBase(DeclarativeBase):
    """Base class for per-organization tables.

    Uses placeholder schema="tenant" which is remapped at runtime via
    schema_translate_map to the organization schema (e.g., "org_acme_audio").
    """

    metadata = tenant_metadata


# ── Session Factories ───────────────────────────────────────────────────────


async def get_public_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an AsyncSession for the public schema (no tenant scoping)."""
    engine = get_engine()
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session


async def create_tenant_tables(conn: AsyncConnection, schema_name: str) -> None:
    """Create every TenantBase table inside ``schema_name``.

    The caller owns the transaction; the schema itself must already exist.
    """
    # Registers the tenant models on TenantBase.metadata
    from src.podflow.models import tenant  # noqa: F401

    translated = await conn.execution_options(schema_translate_map={"tenant": schema_name})
    await translated.run_sync(TenantBase.metadata.create_all)


# ── Database Initialization ─────────────────────────────────────────────────


async def init_db() -> None:
    """Create the public platform tables if they don't exist."""
    from src.podflow.models import public  # noqa: F401

    engine = get_engine()
    async with engine.begin() as conn:
        await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))
        await conn.run_sync(PublicBase.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine and close all connections."""
    global _engine
    if _engine:
        await _engine.dispose()
        _engine = None
