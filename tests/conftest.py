"""Shared test fixtures: in-memory repositories, a fake Redis, and an API client.

Tenant repositories are replaced with in-memory doubles keyed by
organization slug, so a row written by one organization is invisible to
another exactly as it is across schemas. Authentication is bypassed by
overriding get_current_user with whatever identity the test selects.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from typing import Any

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from src.podflow.api.deps import get_current_user
from src.podflow.api.middleware import LoggingMiddleware
from src.podflow.api.routes.router import router as api_router
from src.podflow.core.errors import ValidationFailed, register_exception_handlers
from src.podflow.core.tenant import TenantContext, derive_schema_name
from src.podflow.repositories.users import DUPLICATE_EMAIL_MESSAGE
from src.podflow.schemas.advertisers import AdvertiserCreate, AdvertiserRead, AgencyCreate, AgencyRead
from src.podflow.schemas.campaigns import CampaignCreate, CampaignRead, CampaignStatus
from src.podflow.schemas.common import Listing
from src.podflow.schemas.invoices import InvoiceItemRead, InvoiceRead, InvoiceStatus
from src.podflow.schemas.orders import OrderCreate, OrderItemRead, OrderRead, OrderStatus
from src.podflow.schemas.rates import RateCardCreate, RateCardRead, RateHistoryCreate, RateHistoryRead
from src.podflow.schemas.schedules import ScheduleItemRead, ScheduleRead
from src.podflow.schemas.shows import EpisodeCreate, EpisodeRead, ShowCreate, ShowRead
from src.podflow.schemas.users import UserCreate, UserRead, UserUpdate

ORG_A_ID = str(uuid.uuid4())
ORG_A_SLUG = "acme-audio"
ORG_B_ID = str(uuid.uuid4())
ORG_B_SLUG = "beta-pods"


def make_tenant(
    role: str = "admin",
    *,
    organization_id: str = ORG_A_ID,
    organization_slug: str = ORG_A_SLUG,
    user_id: str | None = None,
) -> TenantContext:
    return TenantContext(
        user_id=user_id or str(uuid.uuid4()),
        organization_id=organization_id,
        organization_slug=organization_slug,
        schema_name=derive_schema_name(organization_slug),
        role=role,
        session_id=str(uuid.uuid4()),
    )


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ── Fake Redis ───────────────────────────────────────────────────────────────


class FakePipeline:
    def __init__(self, redis: "FakeRedis") -> None:
        self._redis = redis
        self._ops: list[tuple[str, tuple]] = []

    async def __aenter__(self) -> "FakePipeline":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None

    def incrby(self, key: str, amount: int) -> None:
        self._ops.append(("incrby", (key, amount)))

    def expire(self, key: str, seconds: int) -> None:
        self._ops.append(("expire", (key, seconds)))

    async def execute(self) -> list[Any]:
        results: list[Any] = []
        for op, args in self._ops:
            if op == "incrby":
                key, amount = args
                value = int(self._redis.store.get(key, 0)) + amount
                self._redis.store[key] = str(value)
                results.append(value)
            else:
                key, seconds = args
                self._redis.ttls[key] = seconds
                results.append(True)
        self._ops.clear()
        return results


class FakeRedis:
    """The subset of redis.asyncio.Redis used by TenantRedis."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None, nx: bool = False) -> bool | None:
        if nx and key in self.store:
            return None
        self.store[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def delete(self, key: str) -> int:
        return 1 if self.store.pop(key, None) is not None else 0

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self)


# ── In-Memory Repositories ──────────────────────────────────────────────────


class _PerOrganization:
    """Rows stored per organization slug, the way each schema holds its own."""

    def __init__(self) -> None:
        self._rows: dict[str, dict[str, Any]] = defaultdict(dict)

    def _table(self, organization_slug: str) -> dict[str, Any]:
        return self._rows[organization_slug]


class InMemoryCampaignRepository(_PerOrganization):
    async def list(self, organization_slug: str, status: CampaignStatus | None = None) -> Listing[CampaignRead]:
        rows = list(self._table(organization_slug).values())
        if status is not None:
            rows = [c for c in rows if c.status == status]
        return Listing.of(rows)

    async def get(self, organization_slug: str, campaign_id: str) -> CampaignRead | None:
        return self._table(organization_slug).get(campaign_id)

    async def create(self, organization_slug: str, data: CampaignCreate, created_by: str) -> CampaignRead:
        campaign = CampaignRead(
            id=str(uuid.uuid4()),
            created_by=created_by,
            created_at=_now(),
            **data.model_dump(),
        )
        self._table(organization_slug)[campaign.id] = campaign
        return campaign

    async def update(self, organization_slug: str, campaign_id: str, fields: dict[str, Any]) -> CampaignRead | None:
        current = self._table(organization_slug).get(campaign_id)
        if current is None:
            return None
        updated = current.model_copy(update={**fields, "updated_at": _now()})
        self._table(organization_slug)[campaign_id] = updated
        return updated

    async def set_status(
        self, organization_slug: str, campaign_id: str, status: CampaignStatus
    ) -> CampaignRead | None:
        return await self.update(organization_slug, campaign_id, {"status": status})

    async def delete(self, organization_slug: str, campaign_id: str) -> bool:
        return self._table(organization_slug).pop(campaign_id, None) is not None


class InMemoryShowRepository(_PerOrganization):
    async def list(self, organization_slug: str, include_inactive: bool = False) -> Listing[ShowRead]:
        rows = [s for s in self._table(organization_slug).values() if include_inactive or s.is_active]
        return Listing.of(rows)

    async def get(self, organization_slug: str, show_id: str) -> ShowRead | None:
        return self._table(organization_slug).get(show_id)

    async def create(self, organization_slug: str, data: ShowCreate) -> ShowRead:
        show = ShowRead(id=str(uuid.uuid4()), created_at=_now(), **data.model_dump())
        self._table(organization_slug)[show.id] = show
        return show

    async def update(self, organization_slug: str, show_id: str, fields: dict[str, Any]) -> ShowRead | None:
        current = self._table(organization_slug).get(show_id)
        if current is None:
            return None
        updated = current.model_copy(update=fields)
        self._table(organization_slug)[show_id] = updated
        return updated

    async def deactivate(self, organization_slug: str, show_id: str) -> bool:
        return await self.update(organization_slug, show_id, {"is_active": False}) is not None


class InMemoryEpisodeRepository(_PerOrganization):
    def __init__(self) -> None:
        super().__init__()
        self.youtube_upserts: list[tuple[str, str, list[dict[str, Any]]]] = []
        self.megaphone_upserts: list[tuple[str, str, list[dict[str, Any]]]] = []

    async def list(self, organization_slug: str, show_id: str | None = None) -> Listing[EpisodeRead]:
        rows = [e for e in self._table(organization_slug).values() if show_id is None or e.show_id == show_id]
        return Listing.of(rows)

    async def get(self, organization_slug: str, episode_id: str) -> EpisodeRead | None:
        return self._table(organization_slug).get(episode_id)

    async def create(self, organization_slug: str, data: EpisodeCreate) -> EpisodeRead:
        episode = EpisodeRead(id=str(uuid.uuid4()), created_at=_now(), **data.model_dump())
        self._table(organization_slug)[episode.id] = episode
        return episode

    async def upsert_from_youtube(
        self, organization_slug: str, show_id: str, videos: list[dict[str, Any]]
    ) -> tuple[int, int]:
        self.youtube_upserts.append((organization_slug, show_id, videos))
        return len(videos), 0

    async def upsert_from_megaphone(
        self, organization_slug: str, show_id: str, records: list[dict[str, Any]]
    ) -> tuple[int, int]:
        self.megaphone_upserts.append((organization_slug, show_id, records))
        return len(records), 0


class InMemoryRateHistoryRepository(_PerOrganization):
    async def list_for_show(self, organization_slug: str, show_id: str) -> Listing[RateHistoryRead]:
        rows = [r for r in self._table(organization_slug).values() if r.show_id == show_id]
        return Listing.of(sorted(rows, key=lambda r: r.effective_date, reverse=True))

    async def get(self, organization_slug: str, show_id: str, rate_id: str) -> RateHistoryRead | None:
        rate = self._table(organization_slug).get(rate_id)
        if rate is None or rate.show_id != show_id:
            return None
        return rate

    async def active_for_show(self, organization_slug: str, show_id: str) -> list[RateHistoryRead]:
        rows = [r for r in self._table(organization_slug).values() if r.show_id == show_id and r.is_active]
        return sorted(rows, key=lambda r: r.effective_date)

    async def create(
        self, organization_slug: str, show_id: str, data: RateHistoryCreate, user_id: str
    ) -> RateHistoryRead:
        rate = RateHistoryRead(
            id=str(uuid.uuid4()),
            show_id=show_id,
            created_by=user_id,
            updated_by=user_id,
            created_at=_now(),
            **data.model_dump(),
        )
        self._table(organization_slug)[rate.id] = rate
        return rate

    async def update(
        self, organization_slug: str, rate_id: str, fields: dict[str, Any], user_id: str
    ) -> RateHistoryRead | None:
        current = self._table(organization_slug).get(rate_id)
        if current is None:
            return None
        updated = current.model_copy(update={**fields, "updated_by": user_id})
        self._table(organization_slug)[rate_id] = updated
        return updated

    async def deactivate(self, organization_slug: str, rate_id: str, user_id: str) -> bool:
        return await self.update(organization_slug, rate_id, {"is_active": False}, user_id) is not None


class InMemoryRateCardRepository(_PerOrganization):
    async def list(self, organization_slug: str, active_only: bool = False) -> Listing[RateCardRead]:
        rows = [c for c in self._table(organization_slug).values() if c.is_active or not active_only]
        return Listing.of(rows)

    async def get(self, organization_slug: str, rate_card_id: str) -> RateCardRead | None:
        return self._table(organization_slug).get(rate_card_id)

    async def create(self, organization_slug: str, data: RateCardCreate, user_id: str) -> RateCardRead:
        card = RateCardRead(id=str(uuid.uuid4()), created_by=user_id, created_at=_now(), **data.model_dump())
        self._table(organization_slug)[card.id] = card
        return card

    async def update(self, organization_slug: str, rate_card_id: str, fields: dict[str, Any]) -> RateCardRead | None:
        current = self._table(organization_slug).get(rate_card_id)
        if current is None:
            return None
        updated = current.model_copy(update=fields)
        self._table(organization_slug)[rate_card_id] = updated
        return updated

    async def deactivate(self, organization_slug: str, rate_card_id: str) -> bool:
        return await self.update(organization_slug, rate_card_id, {"is_active": False}) is not None


class InMemoryScheduleRepository(_PerOrganization):
    async def list(self, organization_slug: str, campaign_id: str | None = None) -> Listing[ScheduleRead]:
        rows = [
            s for s in self._table(organization_slug).values() if campaign_id is None or s.campaign_id == campaign_id
        ]
        return Listing.of(rows)

    async def get(self, organization_slug: str, schedule_id: str) -> ScheduleRead | None:
        return self._table(organization_slug).get(schedule_id)

    async def create(self, organization_slug: str, campaign_id: str, name: str, user_id: str) -> ScheduleRead:
        schedule = ScheduleRead(
            id=str(uuid.uuid4()), campaign_id=campaign_id, name=name, created_by=user_id, created_at=_now()
        )
        self._table(organization_slug)[schedule.id] = schedule
        return schedule

    async def add_items(self, organization_slug: str, schedule_id: str, items: list) -> list[ScheduleItemRead]:
        schedule = self._table(organization_slug)[schedule_id]
        created = [
            ScheduleItemRead(
                id=str(uuid.uuid4()),
                schedule_id=schedule_id,
                show_id=item.show_id,
                episode_id=item.episode_id,
                air_date=item.air_date,
                placement_type=item.placement_type,
                rate_card_price=float(item.rate_card_price),
                negotiated_price=float(item.negotiated_price),
            )
            for item in items
        ]
        schedule.items.extend(created)
        schedule.total_price = round(sum(i.negotiated_price for i in schedule.items), 2)
        return created

    async def delete(self, organization_slug: str, schedule_id: str) -> bool:
        return self._table(organization_slug).pop(schedule_id, None) is not None


class InMemoryInvoiceRepository(_PerOrganization):
    async def list(
        self, organization_slug: str, campaign_id: str | None = None, status: InvoiceStatus | None = None
    ) -> Listing[InvoiceRead]:
        rows = [
            i
            for i in self._table(organization_slug).values()
            if (campaign_id is None or i.campaign_id == campaign_id) and (status is None or i.status == status)
        ]
        return Listing.of(rows)

    async def get(self, organization_slug: str, invoice_id: str) -> InvoiceRead | None:
        return self._table(organization_slug).get(invoice_id)

    async def create(
        self,
        organization_slug: str,
        *,
        campaign_id: str,
        invoice_number: str,
        issue_date,
        due_date,
        total: Decimal,
        lines,
        user_id: str,
    ) -> InvoiceRead:
        invoice_id = str(uuid.uuid4())
        invoice = InvoiceRead(
            id=invoice_id,
            invoice_number=invoice_number,
            campaign_id=campaign_id,
            issue_date=issue_date,
            due_date=due_date,
            total_amount=float(total),
            created_by=user_id,
            items=[
                InvoiceItemRead(
                    id=str(uuid.uuid4()),
                    invoice_id=invoice_id,
                    description=description,
                    quantity=quantity,
                    unit_price=float(unit_price),
                    amount=float(amount),
                )
                for description, quantity, unit_price, amount in lines
            ],
        )
        self._table(organization_slug)[invoice_id] = invoice
        return invoice

    async def set_status(
        self,
        organization_slug: str,
        invoice_id: str,
        status: InvoiceStatus,
        correction_reason: str | None = None,
    ) -> InvoiceRead | None:
        current = self._table(organization_slug).get(invoice_id)
        if current is None:
            return None
        updated = current.model_copy(
            update={"status": status, "correction_reason": correction_reason or current.correction_reason}
        )
        self._table(organization_slug)[invoice_id] = updated
        return updated


class InMemoryOrderRepository(_PerOrganization):
    async def list(
        self, organization_slug: str, campaign_id: str | None = None, status: OrderStatus | None = None
    ) -> Listing[OrderRead]:
        rows = [
            o
            for o in self._table(organization_slug).values()
            if (campaign_id is None or o.campaign_id == campaign_id) and (status is None or o.status == status)
        ]
        return Listing.of(rows)

    async def get(self, organization_slug: str, order_id: str) -> OrderRead | None:
        return self._table(organization_slug).get(order_id)

    async def create(
        self, organization_slug: str, data: OrderCreate, *, order_number: str, total: Decimal, user_id: str
    ) -> OrderRead:
        order_id = str(uuid.uuid4())
        order = OrderRead(
            id=order_id,
            order_number=order_number,
            campaign_id=data.campaign_id,
            total_amount=float(total),
            notes=data.notes,
            created_by=user_id,
            created_at=_now(),
            items=[
                OrderItemRead(id=str(uuid.uuid4()), order_id=order_id, **item.model_dump())
                for item in data.items
            ],
        )
        self._table(organization_slug)[order_id] = order
        return order

    async def set_status(self, organization_slug: str, order_id: str, status: OrderStatus) -> OrderRead | None:
        current = self._table(organization_slug).get(order_id)
        if current is None:
            return None
        updated = current.model_copy(update={"status": status, "updated_at": _now()})
        self._table(organization_slug)[order_id] = updated
        return updated


class InMemoryAdvertiserRepository(_PerOrganization):
    async def list(self, organization_slug: str, search: str | None = None) -> Listing[AdvertiserRead]:
        rows = [
            a
            for a in self._table(organization_slug).values()
            if search is None or search.lower() in a.name.lower()
        ]
        return Listing.of(rows)

    async def get(self, organization_slug: str, advertiser_id: str) -> AdvertiserRead | None:
        return self._table(organization_slug).get(advertiser_id)

    async def create(self, organization_slug: str, data: AdvertiserCreate) -> AdvertiserRead:
        advertiser = AdvertiserRead(id=str(uuid.uuid4()), created_at=_now(), **data.model_dump())
        self._table(organization_slug)[advertiser.id] = advertiser
        return advertiser


class InMemoryAgencyRepository(_PerOrganization):
    async def list(self, organization_slug: str, search: str | None = None) -> Listing[AgencyRead]:
        rows = [
            a
            for a in self._table(organization_slug).values()
            if search is None or search.lower() in a.name.lower()
        ]
        return Listing.of(rows)

    async def get(self, organization_slug: str, agency_id: str) -> AgencyRead | None:
        return self._table(organization_slug).get(agency_id)

    async def create(self, organization_slug: str, data: AgencyCreate) -> AgencyRead:
        agency = AgencyRead(id=str(uuid.uuid4()), created_at=_now(), **data.model_dump())
        self._table(organization_slug)[agency.id] = agency
        return agency


class InMemoryUserRepository:
    """Users keyed by organization id; emails unique per organization."""

    def __init__(self) -> None:
        self._users: dict[str, UserRead] = {}
        self._deleted: set[str] = set()

    def add(self, user: UserRead) -> UserRead:
        self._users[user.id] = user
        return user

    def _scoped(self, organization_id: str) -> list[UserRead]:
        return [
            u for u in self._users.values() if u.organization_id == organization_id and u.id not in self._deleted
        ]

    async def list(self, organization_id: str) -> list[UserRead]:
        return sorted(self._scoped(organization_id), key=lambda u: u.email)

    async def get(self, organization_id: str, user_id: str) -> UserRead | None:
        return next((u for u in self._scoped(organization_id) if u.id == user_id), None)

    async def create(self, organization_id: str, data: UserCreate) -> UserRead:
        email = data.email.lower()
        if any(u.email == email for u in self._scoped(organization_id)):
            raise ValidationFailed(DUPLICATE_EMAIL_MESSAGE, reason="duplicate_email")
        return self.add(
            UserRead(
                id=str(uuid.uuid4()),
                organization_id=organization_id,
                email=email,
                name=data.name,
                role=data.role.value,
                created_at=_now(),
            )
        )

    async def update(self, organization_id: str, user_id: str, data: UserUpdate) -> UserRead | None:
        current = await self.get(organization_id, user_id)
        if current is None:
            return None
        changes = data.model_dump(exclude_unset=True, exclude={"password"})
        if "role" in changes and changes["role"] is not None:
            changes["role"] = changes["role"].value
        return self.add(current.model_copy(update=changes))

    async def soft_delete(self, organization_id: str, user_id: str) -> bool:
        if await self.get(organization_id, user_id) is None:
            return False
        self._deleted.add(user_id)
        return True


# ── App / Client ─────────────────────────────────────────────────────────────


class Identity:
    """The caller the overridden session resolver returns."""

    def __init__(self) -> None:
        self.tenant = make_tenant("admin")

    def use(self, role: str = "admin", organization: str = "a", user_id: str | None = None) -> TenantContext:
        if organization == "a":
            self.tenant = make_tenant(role, user_id=user_id)
        else:
            self.tenant = make_tenant(
                role, organization_id=ORG_B_ID, organization_slug=ORG_B_SLUG, user_id=user_id
            )
        return self.tenant


def make_app(identity: Identity | None = None, **services: Any) -> FastAPI:
    """Minimal app with the real router, error handlers and logging middleware."""
    app = FastAPI()
    register_exception_handlers(app)
    app.add_middleware(LoggingMiddleware)
    app.include_router(api_router)

    if identity is not None:

        async def _current_user() -> TenantContext:
            return identity.tenant

        app.dependency_overrides[get_current_user] = _current_user

    for name, service in services.items():
        setattr(app.state, name, service)
    return app


@pytest.fixture
def identity() -> Identity:
    return Identity()


@pytest.fixture
def repos() -> SimpleNamespace:
    return SimpleNamespace(
        campaign_repository=InMemoryCampaignRepository(),
        show_repository=InMemoryShowRepository(),
        episode_repository=InMemoryEpisodeRepository(),
        rate_history_repository=InMemoryRateHistoryRepository(),
        rate_card_repository=InMemoryRateCardRepository(),
        schedule_repository=InMemoryScheduleRepository(),
        order_repository=InMemoryOrderRepository(),
        invoice_repository=InMemoryInvoiceRepository(),
        advertiser_repository=InMemoryAdvertiserRepository(),
        agency_repository=InMemoryAgencyRepository(),
        user_repository=InMemoryUserRepository(),
    )


@pytest_asyncio.fixture
async def client(identity: Identity, repos: SimpleNamespace) -> AsyncGenerator[AsyncClient, None]:
    """API client over the in-memory repositories, authenticated as ``identity``."""
    app = make_app(identity, **vars(repos))
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()
