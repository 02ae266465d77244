"""Campaign repository over the organization schema."""

from __future__ import annotations

from typing import Any

from src.podflow.core.errors import ValidationFailed
from src.podflow.repositories.base import (
    Row,
    TenantRepository,
    as_decimal,
    as_float,
    as_str,
    build_update,
    parse_uuid,
)
from src.podflow.schemas.campaigns import CampaignCreate, CampaignRead, CampaignStatus
from src.podflow.schemas.common import Listing


def _row_to_campaign(row: Row) -> CampaignRead:
    return CampaignRead(
        id=str(row["id"]),
        name=row["name"],
        advertiser_id=as_str(row.get("advertiser_id")),
        agency_id=as_str(row.get("agency_id")),
        budget=as_float(row.get("budget")) or 0.0,
        status=row.get("status") or CampaignStatus.DRAFT,
        start_date=row.get("start_date"),
        end_date=row.get("end_date"),
        created_by=as_str(row.get("created_by")),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


class CampaignRepository(TenantRepository):
    resource = "campaigns"

    async def list(self, organization_slug: str, status: CampaignStatus | None = None) -> Listing[CampaignRead]:
        if status is not None:
            return await self._list(
                organization_slug,
                "SELECT * FROM campaigns WHERE status = $1 ORDER BY created_at DESC",
                [status.value],
                _row_to_campaign,
            )
        return await self._list(
            organization_slug,
            "SELECT * FROM campaigns ORDER BY created_at DESC",
            None,
            _row_to_campaign,
        )

    async def get(self, organization_slug: str, campaign_id: str) -> CampaignRead | None:
        key = parse_uuid(campaign_id)
        if key is None:
            return None
        return await self._get(
            organization_slug,
            "SELECT * FROM campaigns WHERE id = $1",
            [key],
            _row_to_campaign,
        )

    async def create(self, organization_slug: str, data: CampaignCreate, created_by: str) -> CampaignRead:
        return await self._insert_one(
            organization_slug,
            """
            INSERT INTO campaigns (name, advertiser_id, agency_id, budget, status, start_date, end_date, created_by)
            VALUES ($1, $2, $3, $4, 'draft', $5, $6, $7)
            RETURNING *
            """,
            [
                data.name,
                parse_uuid(data.advertiser_id),
                parse_uuid(data.agency_id),
                as_decimal(data.budget),
                data.start_date,
                data.end_date,
                parse_uuid(created_by),
            ],
            _row_to_campaign,
        )

    async def update(self, organization_slug: str, campaign_id: str, fields: dict[str, Any]) -> CampaignRead | None:
        key = parse_uuid(campaign_id)
        if key is None:
            return None
        values = dict(fields)
        for column in ("advertiser_id", "agency_id"):
            if column in values:
                values[column] = parse_uuid(values[column])
        if "budget" in values:
            values["budget"] = as_decimal(values["budget"])
        sql, params = build_update("campaigns", values, key)
        return await self._write_one(organization_slug, sql, params, _row_to_campaign)

    async def set_status(
        self, organization_slug: str, campaign_id: str, status: CampaignStatus
    ) -> CampaignRead | None:
        return await self.update(organization_slug, campaign_id, {"status": status.value})

    async def delete(self, organization_slug: str, campaign_id: str) -> bool:
        """Delete a campaign and its schedules in one transaction.

        Campaigns that already have orders or invoices are kept.
        """
        key = parse_uuid(campaign_id)
        if key is None:
            return False
        async with self._executor.transaction(organization_slug) as tx:
            dependents = await tx.fetch_one(
                """
                SELECT (SELECT count(*) FROM orders WHERE campaign_id = $1)
                     + (SELECT count(*) FROM invoices WHERE campaign_id = $1) AS n
                """,
                [key],
            )
            if dependents and dependents["n"]:
                raise ValidationFailed(
                    "Campaigns with orders or invoices cannot be deleted",
                    reason="has_dependents",
                )
            await tx.execute("DELETE FROM schedules WHERE campaign_id = $1", [key])
            deleted = await tx.execute("DELETE FROM campaigns WHERE id = $1 RETURNING id", [key])
        return bool(deleted)
