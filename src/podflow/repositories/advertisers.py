"""Advertiser and agency repositories over the organization schema.

Both are small directories that campaigns point at. Listings carry the
number of campaigns referencing each row.
"""

from __future__ import annotations

from src.podflow.repositories.base import Row, TenantRepository, parse_uuid
from src.podflow.schemas.advertisers import AdvertiserCreate, AdvertiserRead, AgencyCreate, AgencyRead
from src.podflow.schemas.common import Listing


def _row_to_advertiser(row: Row) -> AdvertiserRead:
    return AdvertiserRead(
        id=str(row["id"]),
        name=row["name"],
        industry=row.get("industry"),
        contact_email=row.get("contact_email"),
        is_active=row.get("is_active", True),
        campaign_count=int(row.get("campaign_count") or 0),
        created_at=row.get("created_at"),
    )


def _row_to_agency(row: Row) -> AgencyRead:
    return AgencyRead(
        id=str(row["id"]),
        name=row["name"],
        contact_email=row.get("contact_email"),
        is_active=row.get("is_active", True),
        campaign_count=int(row.get("campaign_count") or 0),
        created_at=row.get("created_at"),
    )


class AdvertiserRepository(TenantRepository):
    resource = "advertisers"

    async def list(self, organization_slug: str, search: str | None = None) -> Listing[AdvertiserRead]:
        params: list[str] = []
        where = "WHERE a.is_active = true"
        if search:
            params.append(f"%{search}%")
            where += " AND a.name ILIKE $1"
        return await self._list(
            organization_slug,
            f"""
            SELECT a.*, (SELECT count(*) FROM campaigns c WHERE c.advertiser_id = a.id) AS campaign_count
            FROM advertisers a
            {where}
            ORDER BY a.name
            """,
            params,
            _row_to_advertiser,
        )

    async def get(self, organization_slug: str, advertiser_id: str) -> AdvertiserRead | None:
        key = parse_uuid(advertiser_id)
        if key is None:
            return None
        return await self._get(
            organization_slug,
            """
            SELECT a.*, (SELECT count(*) FROM campaigns c WHERE c.advertiser_id = a.id) AS campaign_count
            FROM advertisers a
            WHERE a.id = $1
            """,
            [key],
            _row_to_advertiser,
        )

    async def create(self, organization_slug: str, data: AdvertiserCreate) -> AdvertiserRead:
        return await self._insert_one(
            organization_slug,
            "INSERT INTO advertisers (name, industry, contact_email) VALUES ($1, $2, $3) RETURNING *",
            [data.name, data.industry, data.contact_email],
            _row_to_advertiser,
        )


class AgencyRepository(TenantRepository):
    resource = "agencies"

    async def list(self, organization_slug: str, search: str | None = None) -> Listing[AgencyRead]:
        params: list[str] = []
        where = "WHERE g.is_active = true"
        if search:
            params.append(f"%{search}%")
            where += " AND g.name ILIKE $1"
        return await self._list(
            organization_slug,
            f"""
            SELECT g.*, (SELECT count(*) FROM campaigns c WHERE c.agency_id = g.id) AS campaign_count
            FROM agencies g
            {where}
            ORDER BY g.name
            """,
            params,
            _row_to_agency,
        )

    async def get(self, organization_slug: str, agency_id: str) -> AgencyRead | None:
        key = parse_uuid(agency_id)
        if key is None:
            return None
        return await self._get(
            organization_slug,
            """
            SELECT g.*, (SELECT count(*) FROM campaigns c WHERE c.agency_id = g.id) AS campaign_count
            FROM agencies g
            WHERE g.id = $1
            """,
            [key],
            _row_to_agency,
        )

    async def create(self, organization_slug: str, data: AgencyCreate) -> AgencyRead:
        return await self._insert_one(
            organization_slug,
            "INSERT INTO agencies (name, contact_email) VALUES ($1, $2) RETURNING *",
            [data.name, data.contact_email],
            _row_to_agency,
        )
