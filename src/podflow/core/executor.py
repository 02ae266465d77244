"""Tenant query executor: run raw SQL inside one organization's schema.

Queries are written with PostgreSQL-style ``$1..$n`` placeholders and an
ordered parameter list. The executor derives the schema from the
organization slug, pins ``search_path`` to that schema for the duration of
one transaction, and runs the statement.

Two calling conventions exist:

- ``execute()`` never raises for database failures. It returns a
  QueryResult whose ``error`` is set instead, so read endpoints can degrade
  to an empty (and explicitly ``degraded``) listing.
- ``fetch_or_raise()`` and ``transaction()`` raise TenantQueryError. Write
  paths use these so a failed mutation surfaces as a 500.

There is no retry and no backoff: each failure is reported once.
"""

from __future__ import annotations

import re
import time
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from src.podflow.core.database import get_engine
from src.podflow.core.errors import TenantQueryError
from src.podflow.core.monitoring import tenant_queries_total, tenant_query_duration_seconds
from src.podflow.core.tenant import DEFAULT_SCHEMA_PREFIX, InvalidTenantSlug, derive_schema_name

logger = structlog.get_logger(__name__)

# $3 or $3::date / $3::text[]
_PLACEHOLDER = re.compile(r"\$(\d+)(?:::(\w+(?:\[\])?))?")


def bind_positional(query: str, params: Sequence[Any] | None = None) -> tuple[str, dict[str, Any]]:
    """Rewrite ``$n`` placeholders into SQLAlchemy named binds.

    ``$1`` becomes ``:p1``. A trailing cast such as ``$1::date`` becomes
    ``CAST(:p1 AS date)`` because ``:p1::date`` is not recognised as a bind
    by ``text()``. Every placeholder must have a matching parameter.
    """
    values = list(params or [])

    def _replace(match: re.Match[str]) -> str:
        index = int(match.group(1))
        if index < 1 or index > len(values):
            raise ValueError(f"Placeholder ${index} has no parameter ({len(values)} given)")
        cast = match.group(2)
        if cast:
            return f"CAST(:p{index} AS {cast})"
        return f":p{index}"

    sql = _PLACEHOLDER.sub(_replace, query)
    return sql, {f"p{i}": value for i, value in enumerate(values, start=1)}


def classify_error(message: str) -> str:
    """Bucket a driver error message for logging and metrics."""
    lowered = message.lower()
    if "foreign key" in lowered:
        return "foreign_key"
    if "duplicate key" in lowered or "unique constraint" in lowered:
        return "unique_violation"
    if "does not exist" in lowered:
        return "missing_relation"
    if "permission denied" in lowered:
        return "permission_denied"
    if "timeout" in lowered or "timed out" in lowered:
        return "timeout"
    if "connection" in lowered or "terminat" in lowered:
        return "connection"
    return "other"


@dataclass(frozen=True)
class QueryResult:
    """Outcome of a tenant query: rows, or an error marker, never both."""

    data: list[dict[str, Any]] | None
    error: str | None = None
    category: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def degraded(self) -> bool:
        return self.error is not None

    def rows(self) -> list[dict[str, Any]]:
        """Rows on success, an empty list on failure."""
        return self.data or []

    def first(self) -> dict[str, Any] | None:
        rows = self.rows()
        return rows[0] if rows else None


async def _pin_search_path(conn: AsyncConnection, schema_name: str) -> None:
    # schema_name is validated by derive_schema_name, safe to interpolate
    await conn.execute(text(f'SET LOCAL search_path TO "{schema_name}", public'))


async def _run(conn: AsyncConnection, query: str, params: Sequence[Any] | None) -> list[dict[str, Any]]:
    sql, binds = bind_positional(query, params)
    result = await conn.execute(text(sql), binds)
    if not result.returns_rows:
        return []
    return [dict(row) for row in result.mappings().all()]


@dataclass
class TenantTransaction:
    """A transaction pinned to one organization schema."""

    conn: AsyncConnection
    organization_slug: str
    schema_name: str
    statements: int = field(default=0)

    async def execute(self, query: str, params: Sequence[Any] | None = None) -> list[dict[str, Any]]:
        """Run a statement in the transaction. Raises TenantQueryError on failure."""
        self.statements += 1
        try:
            return await _run(self.conn, query, params)
        except SQLAlchemyError as exc:
            message = str(exc.orig) if getattr(exc, "orig", None) is not None else str(exc)
            category = classify_error(message)
            logger.error(
                "tenant_transaction_statement_failed",
                organization=self.organization_slug,
                schema=self.schema_name,
                category=category,
                statement_index=self.statements,
                error=message,
            )
            raise TenantQueryError(message, category=category, organization_slug=self.organization_slug) from exc

    async def fetch_one(self, query: str, params: Sequence[Any] | None = None) -> dict[str, Any] | None:
        rows = await self.execute(query, params)
        return rows[0] if rows else None


class TenantQueryExecutor:
    """Executes parameterized SQL against ``org_<slug>`` schemas.

    Args:
        engine: Async engine to use. Defaults to the module-level engine.
        schema_prefix: Prefix for derived schema names.
        slow_query_ms: Queries slower than this are logged as warnings.
    """

    def __init__(
        self,
        engine: AsyncEngine | None = None,
        *,
        schema_prefix: str = DEFAULT_SCHEMA_PREFIX,
        slow_query_ms: int = 1000,
    ) -> None:
        self._engine = engine
        self._schema_prefix = schema_prefix
        self._slow_query_ms = slow_query_ms

    @property
    def engine(self) -> AsyncEngine:
        return self._engine or get_engine()

    def schema_for(self, organization_slug: str) -> str:
        return derive_schema_name(organization_slug, prefix=self._schema_prefix)

    def _record(self, organization_slug: str, outcome: str, started: float, query: str) -> None:
        elapsed = time.perf_counter() - started
        tenant_queries_total.labels(organization=organization_slug, outcome=outcome).inc()
        tenant_query_duration_seconds.labels(organization=organization_slug).observe(elapsed)
        if elapsed * 1000 > self._slow_query_ms:
            logger.warning(
                "slow_tenant_query",
                organization=organization_slug,
                duration_ms=round(elapsed * 1000, 2),
                query=query[:100],
            )

    async def execute(self, organization_slug: str, query: str, params: Sequence[Any] | None = None) -> QueryResult:
        """Run ``query`` in the organization's schema, reporting failure as data."""
        started = time.perf_counter()
        try:
            schema_name = self.schema_for(organization_slug)
        except InvalidTenantSlug as exc:
            logger.warning("tenant_query_invalid_slug", organization=organization_slug, error=str(exc))
            self._record(organization_slug, "error", started, query)
            return QueryResult(data=None, error=str(exc), category="invalid_slug")

        try:
            async with self.engine.begin() as conn:
                await _pin_search_path(conn, schema_name)
                rows = await _run(conn, query, params)
        except Exception as exc:
            orig = getattr(exc, "orig", None)
            message = str(orig) if orig is not None else str(exc)
            category = classify_error(message)
            logger.error(
                "tenant_query_failed",
                organization=organization_slug,
                schema=schema_name,
                category=category,
                error=message,
                query=query[:200],
            )
            self._record(organization_slug, "error", started, query)
            return QueryResult(data=None, error=message, category=category)

        self._record(organization_slug, "ok", started, query)
        return QueryResult(data=rows)

    async def fetch_or_raise(
        self, organization_slug: str, query: str, params: Sequence[Any] | None = None
    ) -> list[dict[str, Any]]:
        """Like execute(), but raise TenantQueryError instead of returning an error."""
        result = await self.execute(organization_slug, query, params)
        if result.error is not None:
            raise TenantQueryError(
                result.error,
                category=result.category or "other",
                organization_slug=organization_slug,
            )
        return result.rows()

    @asynccontextmanager
    async def transaction(self, organization_slug: str) -> AsyncIterator[TenantTransaction]:
        """Open a scoped transaction in the organization's schema.

        Commits when the block exits normally and rolls back on any
        exception, so a multi-statement write cannot leave orphaned rows.
        """
        try:
            schema_name = self.schema_for(organization_slug)
        except InvalidTenantSlug as exc:
            raise TenantQueryError(str(exc), category="invalid_slug", organization_slug=organization_slug) from exc

        started = time.perf_counter()
        outcome = "error"
        try:
            async with self.engine.begin() as conn:
                await _pin_search_path(conn, schema_name)
                yield TenantTransaction(conn=conn, organization_slug=organization_slug, schema_name=schema_name)
            outcome = "ok"
        except SQLAlchemyError as exc:
            orig = getattr(exc, "orig", None)
            message = str(orig) if orig is not None else str(exc)
            raise TenantQueryError(
                message, category=classify_error(message), organization_slug=organization_slug
            ) from exc
        finally:
            self._record(organization_slug, outcome, started, "<transaction>")
