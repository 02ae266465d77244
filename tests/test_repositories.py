"""Tenant repositories over a scripted executor.

Reads that fail come back as an empty, ``degraded`` listing or as None;
writes that fail raise. The API keeps answering 200 on degraded lists so
a broken table never takes a whole page down.
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateIndex

from conftest import ORG_A_SLUG, Identity, make_app
from src.podflow.core.errors import TenantQueryError, ValidationFailed
from src.podflow.core.executor import QueryResult
from src.podflow.models.public import User
from src.podflow.repositories.advertisers import AdvertiserRepository
from src.podflow.repositories.base import build_update, parse_uuid
from src.podflow.repositories.campaigns import CampaignRepository
from src.podflow.schemas.campaigns import CampaignCreate


class FakeTransaction:
    def __init__(self, rows: list[list[dict[str, Any]]]) -> None:
        self._rows = rows
        self.statements: list[tuple[str, Any]] = []

    async def execute(self, query: str, params=None) -> list[dict[str, Any]]:
        self.statements.append((query, params))
        return self._rows.pop(0) if self._rows else []

    async def fetch_one(self, query: str, params=None) -> dict[str, Any] | None:
        rows = await self.execute(query, params)
        return rows[0] if rows else None


class ScriptedExecutor:
    """Answers each query with the next scripted QueryResult."""

    def __init__(self, *results: QueryResult, tx_rows: list[list[dict[str, Any]]] | None = None) -> None:
        self.results = list(results)
        self.calls: list[tuple[str, str, Any]] = []
        self.tx = FakeTransaction(tx_rows or [])

    async def execute(self, organization_slug: str, query: str, params=None) -> QueryResult:
        self.calls.append((organization_slug, query, params))
        return self.results.pop(0) if self.results else QueryResult(data=[])

    async def fetch_or_raise(self, organization_slug: str, query: str, params=None) -> list[dict[str, Any]]:
        result = await self.execute(organization_slug, query, params)
        if result.error is not None:
            raise TenantQueryError(result.error, category=result.category or "other")
        return result.rows()

    @asynccontextmanager
    async def transaction(self, organization_slug: str):
        yield self.tx


FAILED = QueryResult(data=None, error='relation "campaigns" does not exist', category="missing_relation")


def _campaign_row(**overrides: Any) -> dict[str, Any]:
    row = {
        "id": uuid.uuid4(),
        "name": "Spring Launch",
        "advertiser_id": None,
        "agency_id": None,
        "budget": Decimal("5000.00"),
        "status": "draft",
        "start_date": None,
        "end_date": None,
        "created_by": None,
        "created_at": None,
        "updated_at": None,
    }
    row.update(overrides)
    return row


# ── Helpers ─────────────────────────────────────────────────────────────────


def test_parse_uuid_rejects_garbage():
    assert parse_uuid("not-a-uuid") is None
    assert parse_uuid(None) is None
    key = uuid.uuid4()
    assert parse_uuid(str(key)) == key


def test_build_update_numbers_parameters_in_order():
    sql, params = build_update("campaigns", {"name": "New", "budget": 10}, "key")
    assert sql == "UPDATE campaigns SET name = $1, budget = $2, updated_at = now() WHERE id = $3 RETURNING *"
    assert params == ["New", 10, "key"]


def test_user_email_index_ignores_deleted_users():
    index = next(i for i in User.__table__.indexes if i.name == "uq_users_org_email")
    sql = str(CreateIndex(index).compile(dialect=postgresql.dialect()))
    assert "lower(email)" in sql
    assert "WHERE deleted_at IS NULL" in sql


# ── Reads ───────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_list_converts_rows():
    executor = ScriptedExecutor(QueryResult(data=[_campaign_row()]))
    listing = await CampaignRepository(executor).list(ORG_A_SLUG)

    assert listing.degraded is False
    assert listing.total == 1
    assert listing.items[0].budget == 5000.0
    assert executor.calls[0][0] == ORG_A_SLUG


@pytest.mark.asyncio
async def test_failed_list_is_marked_degraded():
    listing = await CampaignRepository(ScriptedExecutor(FAILED)).list(ORG_A_SLUG)
    assert listing.items == []
    assert listing.degraded is True


@pytest.mark.asyncio
async def test_failed_get_returns_none():
    campaign = await CampaignRepository(ScriptedExecutor(FAILED)).get(ORG_A_SLUG, str(uuid.uuid4()))
    assert campaign is None


@pytest.mark.asyncio
async def test_get_with_malformed_id_skips_query():
    executor = ScriptedExecutor()
    assert await CampaignRepository(executor).get(ORG_A_SLUG, "42; DROP TABLE campaigns") is None
    assert executor.calls == []


@pytest.mark.asyncio
async def test_advertiser_search_is_bound_as_parameter():
    executor = ScriptedExecutor(QueryResult(data=[{"id": uuid.uuid4(), "name": "Acme Coffee", "campaign_count": 3}]))
    listing = await AdvertiserRepository(executor).list(ORG_A_SLUG, "coffee")

    assert listing.items[0].campaign_count == 3
    _, query, params = executor.calls[0]
    assert "ILIKE $1" in query
    assert params == ["%coffee%"]


# ── Writes ──────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_failed_write_raises():
    repo = CampaignRepository(ScriptedExecutor(FAILED))
    with pytest.raises(TenantQueryError) as exc_info:
        await repo.create(ORG_A_SLUG, CampaignCreate(name="Spring Launch"), str(uuid.uuid4()))
    assert exc_info.value.category == "missing_relation"


@pytest.mark.asyncio
async def test_campaign_with_orders_cannot_be_deleted():
    executor = ScriptedExecutor(tx_rows=[[{"n": 2}]])
    with pytest.raises(ValidationFailed) as exc_info:
        await CampaignRepository(executor).delete(ORG_A_SLUG, str(uuid.uuid4()))
    assert exc_info.value.reason == "has_dependents"
    assert len(executor.tx.statements) == 1


@pytest.mark.asyncio
async def test_campaign_delete_removes_schedules_first():
    campaign_id = str(uuid.uuid4())
    executor = ScriptedExecutor(tx_rows=[[{"n": 0}], [], [{"id": campaign_id}]])

    assert await CampaignRepository(executor).delete(ORG_A_SLUG, campaign_id) is True
    queries = [q for q, _ in executor.tx.statements]
    assert queries[1].startswith("DELETE FROM schedules")
    assert queries[2].startswith("DELETE FROM campaigns")


# ── API Degradation ─────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_degraded_listing_answers_200_with_marker():
    identity = Identity()
    app = make_app(identity, campaign_repository=CampaignRepository(ScriptedExecutor(FAILED)))
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/api/campaigns")

    assert response.status_code == 200
    assert response.json() == {"items": [], "total": 0, "degraded": True}


@pytest.mark.asyncio
async def test_degraded_single_read_answers_404():
    identity = Identity()
    campaign_id = str(uuid.uuid4())
    app = make_app(identity, campaign_repository=CampaignRepository(ScriptedExecutor(FAILED)))
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get(f"/api/campaigns/{campaign_id}")

    assert response.status_code == 404
