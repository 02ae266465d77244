"""Shared plumbing for repositories over organization schemas.

Tenant repositories never touch an ORM session. They hand ``$n`` SQL to the
TenantQueryExecutor, which pins the organization's schema. Reads go through
``_list``/``_get`` and degrade; writes go through ``fetch_or_raise`` or an
explicit transaction and raise.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Mapping, Sequence
from decimal import Decimal
from typing import Any, TypeVar

import structlog

from src.podflow.core.errors import TenantQueryError
from src.podflow.core.executor import TenantQueryExecutor
from src.podflow.core.monitoring import degraded_reads_total
from src.podflow.schemas.common import Listing

logger = structlog.get_logger(__name__)

T = TypeVar("T")

Row = dict[str, Any]


def parse_uuid(value: str | uuid.UUID | None) -> uuid.UUID | None:
    """Return the UUID, or None for anything that is not one.

    Path ids are plain strings; an id that cannot exist is treated the same
    as one that does not exist.
    """
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def as_str(value: Any) -> str | None:
    return str(value) if value is not None else None


def as_float(value: Any) -> float | None:
    return float(value) if value is not None else None


def as_decimal(value: float | Decimal | None) -> Decimal | None:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def build_update(table: str, fields: Mapping[str, Any], key: Any) -> tuple[str, list[Any]]:
    """UPDATE statement for ``fields`` keyed on ``id``.

    Column names come from schema field names, never from request data.
    """
    assignments = []
    params: list[Any] = []
    for column, value in fields.items():
        params.append(value)
        assignments.append(f"{column} = ${len(params)}")
    assignments.append("updated_at = now()")
    params.append(key)
    sql = f"UPDATE {table} SET {', '.join(assignments)} WHERE id = ${len(params)} RETURNING *"
    return sql, params


class TenantRepository:
    """Base class for repositories scoped to one organization schema.

    Args:
        executor: Tenant query executor shared by the application.
    """

    resource = "resource"

    def __init__(self, executor: TenantQueryExecutor) -> None:
        self._executor = executor

    def _degraded(self, organization_slug: str, error: str | None) -> None:
        degraded_reads_total.labels(organization=organization_slug, resource=self.resource).inc()
        logger.warning(
            "degraded_read",
            organization=organization_slug,
            resource=self.resource,
            error=error,
        )

    async def _list(
        self,
        organization_slug: str,
        query: str,
        params: Sequence[Any] | None,
        convert: Callable[[Row], T],
    ) -> Listing[T]:
        result = await self._executor.execute(organization_slug, query, params)
        if result.degraded:
            self._degraded(organization_slug, result.error)
            return Listing.failed()
        return Listing.of([convert(row) for row in result.rows()])

    async def _get(
        self,
        organization_slug: str,
        query: str,
        params: Sequence[Any] | None,
        convert: Callable[[Row], T],
    ) -> T | None:
        result = await self._executor.execute(organization_slug, query, params)
        if result.degraded:
            self._degraded(organization_slug, result.error)
            return None
        row = result.first()
        return convert(row) if row is not None else None

    async def _write_one(
        self,
        organization_slug: str,
        query: str,
        params: Sequence[Any] | None,
        convert: Callable[[Row], T],
    ) -> T | None:
        rows = await self._executor.fetch_or_raise(organization_slug, query, params)
        return convert(rows[0]) if rows else None

    async def _insert_one(
        self,
        organization_slug: str,
        query: str,
        params: Sequence[Any] | None,
        convert: Callable[[Row], T],
    ) -> T:
        rows = await self._executor.fetch_or_raise(organization_slug, query, params)
        if not rows:
            raise TenantQueryError(
                f"Insert into {self.resource} returned no row",
                organization_slug=organization_slug,
            )
        return convert(rows[0])
