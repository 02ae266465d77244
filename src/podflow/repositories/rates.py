"""Rate history, rate card and category exclusivity repositories."""

from __future__ import annotations

from typing import Any

from src.podflow.repositories.base import (
    Row,
    TenantRepository,
    as_decimal,
    as_float,
    as_str,
    build_update,
    parse_uuid,
)
from src.podflow.schemas.common import Listing
from src.podflow.schemas.rates import (
    CategoryExclusivityCreate,
    CategoryExclusivityRead,
    RateCardCreate,
    RateCardRead,
    RateHistoryCreate,
    RateHistoryRead,
    RateTrendPoint,
    RateTrends,
)

_MONEY_FIELDS = ("base_rate", "pre_roll_rate", "mid_roll_rate", "post_roll_rate")


def _row_to_rate(row: Row) -> RateHistoryRead:
    return RateHistoryRead(
        id=str(row["id"]),
        show_id=str(row["show_id"]),
        effective_date=row["effective_date"],
        end_date=row.get("end_date"),
        base_rate=as_float(row["base_rate"]),
        pre_roll_rate=as_float(row.get("pre_roll_rate")),
        mid_roll_rate=as_float(row.get("mid_roll_rate")),
        post_roll_rate=as_float(row.get("post_roll_rate")),
        notes=row.get("notes"),
        is_active=row.get("is_active", True),
        created_by=as_str(row.get("created_by")),
        updated_by=as_str(row.get("updated_by")),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


def _row_to_rate_card(row: Row) -> RateCardRead:
    return RateCardRead(
        id=str(row["id"]),
        name=row["name"],
        description=row.get("description"),
        base_rate=as_float(row["base_rate"]),
        pre_roll_rate=as_float(row.get("pre_roll_rate")),
        mid_roll_rate=as_float(row.get("mid_roll_rate")),
        post_roll_rate=as_float(row.get("post_roll_rate")),
        effective_date=row["effective_date"],
        is_active=row.get("is_active", True),
        created_by=as_str(row.get("created_by")),
        created_at=row.get("created_at"),
    )


def _row_to_exclusivity(row: Row) -> CategoryExclusivityRead:
    return CategoryExclusivityRead(
        id=str(row["id"]),
        show_id=str(row["show_id"]),
        show_name=row.get("show_name"),
        category=row["category"],
        exclusivity_premium=as_float(row["exclusivity_premium"]),
        effective_date=row["effective_date"],
        end_date=row.get("end_date"),
        notes=row.get("notes"),
        created_by=as_str(row.get("created_by")),
        created_at=row.get("created_at"),
    )


def _money_values(fields: dict[str, Any]) -> dict[str, Any]:
    return {k: (as_decimal(v) if k in _MONEY_FIELDS else v) for k, v in fields.items()}


def compute_trends(rates: list[RateHistoryRead], show_names: dict[str, str]) -> list[RateTrendPoint]:
    """Turn ordered rate rows into points with percentage change per show."""
    points: list[RateTrendPoint] = []
    previous: dict[str, float] = {}
    for rate in sorted(rates, key=lambda r: (r.show_id, r.effective_date)):
        prior = previous.get(rate.show_id)
        change = None
        if prior:
            change = round((rate.base_rate - prior) / prior * 100, 2)
        points.append(
            RateTrendPoint(
                show_id=rate.show_id,
                show_name=show_names.get(rate.show_id),
                effective_date=rate.effective_date,
                end_date=rate.end_date,
                base_rate=rate.base_rate,
                change_pct=change,
            )
        )
        previous[rate.show_id] = rate.base_rate
    return points


class RateHistoryRepository(TenantRepository):
    resource = "show_rate_history"

    async def list_for_show(self, organization_slug: str, show_id: str) -> Listing[RateHistoryRead]:
        key = parse_uuid(show_id)
        if key is None:
            return Listing.of([])
        return await self._list(
            organization_slug,
            "SELECT * FROM show_rate_history WHERE show_id = $1 ORDER BY effective_date DESC",
            [key],
            _row_to_rate,
        )

    async def get(self, organization_slug: str, show_id: str, rate_id: str) -> RateHistoryRead | None:
        show_key, rate_key = parse_uuid(show_id), parse_uuid(rate_id)
        if show_key is None or rate_key is None:
            return None
        return await self._get(
            organization_slug,
            "SELECT * FROM show_rate_history WHERE id = $1 AND show_id = $2",
            [rate_key, show_key],
            _row_to_rate,
        )

    async def active_for_show(self, organization_slug: str, show_id: str) -> list[RateHistoryRead]:
        """Active intervals for overlap checks and pricing. Raises on failure.

        Used on write paths, where validating against a silently empty
        list would let an overlapping rate through.
        """
        key = parse_uuid(show_id)
        if key is None:
            return []
        rows = await self._executor.fetch_or_raise(
            organization_slug,
            "SELECT * FROM show_rate_history WHERE show_id = $1 AND is_active = true ORDER BY effective_date",
            [key],
        )
        return [_row_to_rate(row) for row in rows]

    async def create(
        self, organization_slug: str, show_id: str, data: RateHistoryCreate, user_id: str
    ) -> RateHistoryRead:
        return await self._insert_one(
            organization_slug,
            """
            INSERT INTO show_rate_history (show_id, effective_date, end_date, base_rate, pre_roll_rate,
                                           mid_roll_rate, post_roll_rate, notes, created_by, updated_by)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $9)
            RETURNING *
            """,
            [
                parse_uuid(show_id),
                data.effective_date,
                data.end_date,
                as_decimal(data.base_rate),
                as_decimal(data.pre_roll_rate),
                as_decimal(data.mid_roll_rate),
                as_decimal(data.post_roll_rate),
                data.notes,
                parse_uuid(user_id),
            ],
            _row_to_rate,
        )

    async def update(
        self, organization_slug: str, rate_id: str, fields: dict[str, Any], user_id: str
    ) -> RateHistoryRead | None:
        key = parse_uuid(rate_id)
        if key is None:
            return None
        values = _money_values(fields)
        values["updated_by"] = parse_uuid(user_id)
        sql, params = build_update("show_rate_history", values, key)
        return await self._write_one(organization_slug, sql, params, _row_to_rate)

    async def deactivate(self, organization_slug: str, rate_id: str, user_id: str) -> bool:
        updated = await self.update(organization_slug, rate_id, {"is_active": False}, user_id)
        return updated is not None

    async def trends(self, organization_slug: str, show_id: str | None = None) -> RateTrends:
        params: list[Any] = []
        where = "WHERE r.is_active = true"
        if show_id is not None:
            key = parse_uuid(show_id)
            if key is None:
                return RateTrends()
            params.append(key)
            where += " AND r.show_id = $1"
        result = await self._executor.execute(
            organization_slug,
            f"""
            SELECT r.*, s.name AS show_name
            FROM show_rate_history r
            JOIN shows s ON s.id = r.show_id
            {where}
            ORDER BY r.show_id, r.effective_date
            """,
            params,
        )
        if result.degraded:
            self._degraded(organization_slug, result.error)
            return RateTrends(degraded=True)
        rows = result.rows()
        names = {str(row["show_id"]): row.get("show_name") for row in rows}
        return RateTrends(points=compute_trends([_row_to_rate(r) for r in rows], names))


class RateCardRepository(TenantRepository):
    resource = "rate_cards"

    async def list(self, organization_slug: str, active_only: bool = False) -> Listing[RateCardRead]:
        where = "WHERE is_active = true" if active_only else ""
        return await self._list(
            organization_slug,
            f"SELECT * FROM rate_cards {where} ORDER BY effective_date DESC, name",
            None,
            _row_to_rate_card,
        )

    async def get(self, organization_slug: str, rate_card_id: str) -> RateCardRead | None:
        key = parse_uuid(rate_card_id)
        if key is None:
            return None
        return await self._get(
            organization_slug, "SELECT * FROM rate_cards WHERE id = $1", [key], _row_to_rate_card
        )

    async def create(self, organization_slug: str, data: RateCardCreate, user_id: str) -> RateCardRead:
        return await self._insert_one(
            organization_slug,
            """
            INSERT INTO rate_cards (name, description, base_rate, pre_roll_rate, mid_roll_rate, post_roll_rate,
                                    effective_date, is_active, created_by)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
            RETURNING *
            """,
            [
                data.name,
                data.description,
                as_decimal(data.base_rate),
                as_decimal(data.pre_roll_rate),
                as_decimal(data.mid_roll_rate),
                as_decimal(data.post_roll_rate),
                data.effective_date,
                data.is_active,
                parse_uuid(user_id),
            ],
            _row_to_rate_card,
        )

    async def update(self, organization_slug: str, rate_card_id: str, fields: dict[str, Any]) -> RateCardRead | None:
        key = parse_uuid(rate_card_id)
        if key is None:
            return None
        values = _money_values(fields)
        # rate_cards has no updated_at column
        assignments = []
        params: list[Any] = []
        for column, value in values.items():
            params.append(value)
            assignments.append(f"{column} = ${len(params)}")
        if not assignments:
            return await self.get(organization_slug, rate_card_id)
        params.append(key)
        sql = f"UPDATE rate_cards SET {', '.join(assignments)} WHERE id = ${len(params)} RETURNING *"
        return await self._write_one(organization_slug, sql, params, _row_to_rate_card)

    async def deactivate(self, organization_slug: str, rate_card_id: str) -> bool:
        updated = await self.update(organization_slug, rate_card_id, {"is_active": False})
        return updated is not None


class CategoryExclusivityRepository(TenantRepository):
    resource = "category_exclusivity"

    async def list(self, organization_slug: str, show_id: str | None = None) -> Listing[CategoryExclusivityRead]:
        query = """
            SELECT ce.*, s.name AS show_name
            FROM category_exclusivity ce
            JOIN shows s ON s.id = ce.show_id
        """
        params: list[Any] = []
        if show_id is not None:
            key = parse_uuid(show_id)
            if key is None:
                return Listing.of([])
            params.append(key)
            query += " WHERE ce.show_id = $1"
        query += " ORDER BY s.name, ce.category, ce.effective_date DESC"
        return await self._list(organization_slug, query, params, _row_to_exclusivity)

    async def create(
        self, organization_slug: str, data: CategoryExclusivityCreate, user_id: str
    ) -> CategoryExclusivityRead:
        return await self._insert_one(
            organization_slug,
            """
            INSERT INTO category_exclusivity (show_id, category, exclusivity_premium, effective_date, end_date,
                                              notes, created_by)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING *
            """,
            [
                parse_uuid(data.show_id),
                data.category,
                as_decimal(data.exclusivity_premium),
                data.effective_date,
                data.end_date,
                data.notes,
                parse_uuid(user_id),
            ],
            _row_to_exclusivity,
        )
