"""Schedule repository. Items are written in one transaction per request."""

from __future__ import annotations

from collections.abc import Sequence

from src.podflow.repositories.base import Row, TenantRepository, as_float, as_str, parse_uuid
from src.podflow.schemas.common import Listing
from src.podflow.schemas.schedules import ScheduleItemRead, ScheduleRead
from src.podflow.services.scheduling import PricedItem


def _row_to_item(row: Row) -> ScheduleItemRead:
    return ScheduleItemRead(
        id=str(row["id"]),
        schedule_id=str(row["schedule_id"]),
        show_id=str(row["show_id"]),
        episode_id=as_str(row.get("episode_id")),
        air_date=row["air_date"],
        placement_type=row["placement_type"],
        rate_card_price=as_float(row["rate_card_price"]),
        negotiated_price=as_float(row["negotiated_price"]),
        created_at=row.get("created_at"),
    )


def _row_to_schedule(row: Row) -> ScheduleRead:
    return ScheduleRead(
        id=str(row["id"]),
        campaign_id=str(row["campaign_id"]),
        name=row["name"],
        status=row.get("status") or "draft",
        total_price=as_float(row.get("total_price")) or 0.0,
        created_by=as_str(row.get("created_by")),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


_SCHEDULE_SELECT = """
    SELECT sc.*, COALESCE(t.total_price, 0) AS total_price
    FROM schedules sc
    LEFT JOIN (
        SELECT schedule_id, SUM(negotiated_price) AS total_price
        FROM schedule_items GROUP BY schedule_id
    ) t ON t.schedule_id = sc.id
"""


class ScheduleRepository(TenantRepository):
    resource = "schedules"

    async def list(self, organization_slug: str, campaign_id: str | None = None) -> Listing[ScheduleRead]:
        if campaign_id is not None:
            key = parse_uuid(campaign_id)
            if key is None:
                return Listing.of([])
            return await self._list(
                organization_slug,
                f"{_SCHEDULE_SELECT} WHERE sc.campaign_id = $1 ORDER BY sc.created_at DESC",
                [key],
                _row_to_schedule,
            )
        return await self._list(
            organization_slug,
            f"{_SCHEDULE_SELECT} ORDER BY sc.created_at DESC",
            None,
            _row_to_schedule,
        )

    async def get(self, organization_slug: str, schedule_id: str) -> ScheduleRead | None:
        key = parse_uuid(schedule_id)
        if key is None:
            return None
        schedule = await self._get(
            organization_slug, f"{_SCHEDULE_SELECT} WHERE sc.id = $1", [key], _row_to_schedule
        )
        if schedule is None:
            return None
        items = await self._list(
            organization_slug,
            "SELECT * FROM schedule_items WHERE schedule_id = $1 ORDER BY air_date, placement_type",
            [key],
            _row_to_item,
        )
        if items.degraded:
            return None
        schedule.items = items.items
        return schedule

    async def create(self, organization_slug: str, campaign_id: str, name: str, user_id: str) -> ScheduleRead:
        return await self._insert_one(
            organization_slug,
            """
            INSERT INTO schedules (campaign_id, name, status, created_by)
            VALUES ($1, $2, 'draft', $3)
            RETURNING *, 0 AS total_price
            """,
            [parse_uuid(campaign_id), name, parse_uuid(user_id)],
            _row_to_schedule,
        )

    async def add_items(
        self, organization_slug: str, schedule_id: str, items: Sequence[PricedItem]
    ) -> list[ScheduleItemRead]:
        """Insert all items or none of them."""
        key = parse_uuid(schedule_id)
        created: list[ScheduleItemRead] = []
        async with self._executor.transaction(organization_slug) as tx:
            for item in items:
                row = await tx.fetch_one(
                    """
                    INSERT INTO schedule_items (schedule_id, show_id, episode_id, air_date, placement_type,
                                                rate_card_price, negotiated_price)
                    VALUES ($1, $2, $3, $4, $5, $6, $7)
                    RETURNING *
                    """,
                    [
                        key,
                        parse_uuid(item.show_id),
                        parse_uuid(item.episode_id),
                        item.air_date,
                        item.placement_type.value,
                        item.rate_card_price,
                        item.negotiated_price,
                    ],
                )
                created.append(_row_to_item(row))
            await tx.execute("UPDATE schedules SET updated_at = now() WHERE id = $1", [key])
        return created

    async def delete(self, organization_slug: str, schedule_id: str) -> bool:
        key = parse_uuid(schedule_id)
        if key is None:
            return False
        rows = await self._executor.fetch_or_raise(
            organization_slug, "DELETE FROM schedules WHERE id = $1 RETURNING id", [key]
        )
        return bool(rows)
