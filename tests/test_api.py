"""API tests over the in-memory repositories.

Covers role enforcement, rate history rules, users, invoices, schedules,
orders, the advertiser directory and campaign status changes as seen
through HTTP.
"""

from __future__ import annotations

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from conftest import ORG_A_ID, ORG_A_SLUG, Identity, make_app
from src.podflow.schemas.organizations import BillingPlanRead, OrganizationCreate, OrganizationRead
from src.podflow.schemas.shows import EpisodeCreate
from src.podflow.schemas.users import UserRead

RATE_CARD = {"name": "Standard 2025", "base_rate": 500, "effective_date": "2025-01-01"}


async def _create_show(client: AsyncClient, name: str = "Morning Brew") -> str:
    response = await client.post("/api/shows", json={"name": name})
    assert response.status_code == 201
    return response.json()["id"]


async def _create_campaign(client: AsyncClient, name: str = "Spring Launch") -> str:
    response = await client.post("/api/campaigns", json={"name": name, "budget": 10000})
    assert response.status_code == 201
    return response.json()["id"]


# ── Service Availability ────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_missing_repository_answers_503():
    app = make_app(Identity())
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/api/campaigns")
    assert response.status_code == 503
    assert response.json() == {"error": "Campaign management not initialized"}


@pytest.mark.asyncio
async def test_unauthenticated_request_rejected():
    app = make_app(campaign_repository=object(), auth_service=object())
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/api/campaigns")
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


# ── Role Enforcement ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_sales_cannot_create_rate_card(client, identity):
    identity.use("sales")
    response = await client.post("/api/rate-cards", json=RATE_CARD)
    assert response.status_code == 403
    assert response.json() == {"error": "Insufficient permissions"}


@pytest.mark.asyncio
async def test_admin_creates_rate_card(client, identity):
    identity.use("admin")
    response = await client.post("/api/rate-cards", json=RATE_CARD)
    assert response.status_code == 201
    assert response.json()["base_rate"] == 500.0

    identity.use("sales")
    listing = await client.get("/api/rate-cards")
    assert listing.status_code == 200
    assert listing.json()["total"] == 1


@pytest.mark.asyncio
async def test_client_cannot_create_campaign(client, identity):
    identity.use("client")
    response = await client.post("/api/campaigns", json={"name": "Sneaky"})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_cannot_reach_master_endpoints(client, identity):
    identity.use("admin")
    response = await client.get("/api/master/organizations")
    assert response.status_code == 403


# ── Rate History ────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_overlapping_rate_rejected_then_adjacent_accepted(client, identity):
    identity.use("admin")
    show_id = await _create_show(client)

    august = await client.post(
        f"/api/shows/{show_id}/rate-history",
        json={"effective_date": "2025-08-01", "end_date": "2025-08-31", "base_rate": 500},
    )
    assert august.status_code == 201

    overlapping = await client.post(
        f"/api/shows/{show_id}/rate-history",
        json={"effective_date": "2025-08-15", "end_date": "2025-09-15", "base_rate": 550},
    )
    assert overlapping.status_code == 400
    body = overlapping.json()
    assert body["reason"] == "overlap"
    assert body["conflicting_rate_id"] == august.json()["id"]

    september = await client.post(
        f"/api/shows/{show_id}/rate-history",
        json={"effective_date": "2025-09-01", "end_date": "2025-09-30", "base_rate": 550},
    )
    assert september.status_code == 201


@pytest.mark.asyncio
async def test_non_positive_rate_rejected(client, identity):
    identity.use("admin")
    show_id = await _create_show(client)
    response = await client.post(
        f"/api/shows/{show_id}/rate-history",
        json={"effective_date": "2025-08-01", "base_rate": 500, "mid_roll_rate": 0},
    )
    assert response.status_code == 400
    assert response.json()["reason"] == "invalid_amount"
    assert response.json()["field"] == "mid_roll_rate"


@pytest.mark.asyncio
async def test_producer_cannot_write_rates(client, identity):
    identity.use("producer")
    show_id = await _create_show(client)
    response = await client.post(
        f"/api/shows/{show_id}/rate-history",
        json={"effective_date": "2025-08-01", "base_rate": 500},
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_deactivated_rate_frees_its_interval(client, identity):
    identity.use("admin")
    show_id = await _create_show(client)
    first = await client.post(
        f"/api/shows/{show_id}/rate-history",
        json={"effective_date": "2025-08-01", "base_rate": 500},
    )
    rate_id = first.json()["id"]

    deleted = await client.delete(f"/api/shows/{show_id}/rate-history/{rate_id}")
    assert deleted.status_code == 200

    replacement = await client.post(
        f"/api/shows/{show_id}/rate-history",
        json={"effective_date": "2025-08-01", "base_rate": 600},
    )
    assert replacement.status_code == 201


@pytest.mark.asyncio
async def test_request_validation_error_shape(client, identity):
    identity.use("admin")
    show_id = await _create_show(client)
    response = await client.post(f"/api/shows/{show_id}/rate-history", json={"base_rate": 500})
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Validation failed"
    assert {"field": "effective_date", "message": "Field required"} in body["fields"]


# ── Campaigns ───────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_campaign_status_lifecycle(client, identity):
    identity.use("sales")
    campaign_id = await _create_campaign(client)

    activated = await client.put(f"/api/campaigns/{campaign_id}/status", json={"status": "active"})
    assert activated.status_code == 200
    assert activated.json()["status"] == "active"

    backwards = await client.put(f"/api/campaigns/{campaign_id}/status", json={"status": "draft"})
    assert backwards.status_code == 400
    assert backwards.json()["reason"] == "invalid_transition"


@pytest.mark.asyncio
async def test_campaign_update_rejects_inverted_dates(client, identity):
    campaign_id = await _create_campaign(client)
    await client.put(f"/api/campaigns/{campaign_id}", json={"start_date": "2025-09-01"})
    response = await client.put(f"/api/campaigns/{campaign_id}", json={"end_date": "2025-08-01"})
    assert response.status_code == 400
    assert response.json()["reason"] == "invalid_range"


# ── Users ───────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_cannot_delete_yourself(client, identity):
    me = identity.use("admin", user_id=str(uuid.uuid4()))
    response = await client.delete(f"/api/users/{me.user_id}")
    assert response.status_code == 400
    assert "delete yourself" in response.json()["error"]


@pytest.mark.asyncio
async def test_deleted_user_is_gone(client, identity, repos):
    identity.use("admin")
    other = repos.user_repository.add(
        UserRead(id=str(uuid.uuid4()), organization_id=ORG_A_ID, email="sam@acme-audio.com", role="sales")
    )

    first = await client.delete(f"/api/users/{other.id}")
    second = await client.delete(f"/api/users/{other.id}")
    assert first.status_code == 200
    assert second.status_code == 404


@pytest.mark.asyncio
async def test_email_unique_per_organization_only(client, identity):
    payload = {"email": "Dana@acme-audio.com", "role": "sales", "password": "correct-horse"}

    identity.use("admin", organization="a")
    assert (await client.post("/api/users", json=payload)).status_code == 201

    duplicate = await client.post("/api/users", json=payload)
    assert duplicate.status_code == 400
    assert duplicate.json()["reason"] == "duplicate_email"

    identity.use("admin", organization="b")
    assert (await client.post("/api/users", json=payload)).status_code == 201


@pytest.mark.asyncio
async def test_only_master_grants_master(client, identity):
    payload = {"email": "root@acme-audio.com", "role": "master", "password": "correct-horse"}

    identity.use("admin")
    assert (await client.post("/api/users", json=payload)).status_code == 403

    identity.use("master")
    assert (await client.post("/api/users", json=payload)).status_code == 201


# ── Invoices ────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_invoice_total_computed_from_items(client, identity):
    campaign_id = await _create_campaign(client)
    response = await client.post(
        "/api/invoices",
        json={
            "campaign_id": campaign_id,
            "items": [
                {"description": "Pre-roll x4", "quantity": 4, "unit_price": 250},
                {"description": "Mid-roll x2", "quantity": 2, "unit_price": 412.5},
            ],
        },
    )
    assert response.status_code == 201
    invoice = response.json()
    assert invoice["total_amount"] == 1825.0
    assert invoice["status"] == "draft"
    assert invoice["invoice_number"].startswith("INV-")


@pytest.mark.asyncio
async def test_invoice_with_wrong_total_rejected(client, identity):
    campaign_id = await _create_campaign(client)
    response = await client.post(
        "/api/invoices",
        json={
            "campaign_id": campaign_id,
            "items": [{"description": "Spot", "quantity": 2, "unit_price": 100}],
            "total_amount": 150,
        },
    )
    assert response.status_code == 400
    assert response.json()["reason"] == "total_mismatch"
    assert response.json()["expected_total"] == 200.0


@pytest.mark.asyncio
async def test_invoice_for_unknown_campaign(client, identity):
    response = await client.post(
        "/api/invoices",
        json={"campaign_id": str(uuid.uuid4()), "items": [{"description": "Spot", "quantity": 1, "unit_price": 1}]},
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_invoice_correction_rules(client, identity):
    identity.use("admin")
    campaign_id = await _create_campaign(client)
    created = await client.post(
        "/api/invoices",
        json={"campaign_id": campaign_id, "items": [{"description": "Spot", "quantity": 1, "unit_price": 100}]},
    )
    invoice_id = created.json()["id"]
    assert (await client.put(f"/api/invoices/{invoice_id}/status", json={"status": "sent"})).status_code == 200
    assert (await client.put(f"/api/invoices/{invoice_id}/status", json={"status": "paid"})).status_code == 200

    identity.use("sales")
    denied = await client.put(
        f"/api/invoices/{invoice_id}/status", json={"status": "sent", "reason": "Payment bounced"}
    )
    assert denied.status_code == 403

    identity.use("admin")
    no_reason = await client.put(f"/api/invoices/{invoice_id}/status", json={"status": "sent"})
    assert no_reason.status_code == 400
    assert no_reason.json()["reason"] == "correction_reason_required"

    corrected = await client.put(
        f"/api/invoices/{invoice_id}/status", json={"status": "sent", "reason": "Payment bounced"}
    )
    assert corrected.status_code == 200
    assert corrected.json()["status"] == "sent"
    assert corrected.json()["correction_reason"] == "Payment bounced"


@pytest.mark.asyncio
async def test_client_reads_invoices_but_cannot_write(client, identity):
    identity.use("client")
    assert (await client.get("/api/invoices")).status_code == 200
    response = await client.post(
        "/api/invoices",
        json={"campaign_id": str(uuid.uuid4()), "items": [{"description": "Spot", "quantity": 1, "unit_price": 1}]},
    )
    assert response.status_code == 403


# ── Schedules ───────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_schedule_items_priced_from_rate_history(client, identity):
    identity.use("admin")
    show_id = await _create_show(client)
    await client.post(
        f"/api/shows/{show_id}/rate-history",
        json={"effective_date": "2025-08-01", "base_rate": 500, "mid_roll_rate": 650},
    )
    campaign_id = await _create_campaign(client)
    schedule = await client.post("/api/schedules", json={"campaign_id": campaign_id, "name": "Q3 flight"})
    assert schedule.status_code == 201
    schedule_id = schedule.json()["id"]

    response = await client.post(
        f"/api/schedules/{schedule_id}/items",
        json={
            "items": [
                {"show_id": show_id, "air_date": "2025-08-15", "placement_type": "mid_roll"},
                {"show_id": show_id, "air_date": "2025-08-22", "placement_type": "pre_roll", "negotiated_price": 450},
            ]
        },
    )
    assert response.status_code == 201
    body = response.json()
    assert [item["rate_card_price"] for item in body["items"]] == [650.0, 500.0]
    assert body["total_price"] == 1100.0


@pytest.mark.asyncio
async def test_schedule_item_for_unknown_show(client, identity):
    campaign_id = await _create_campaign(client)
    schedule = await client.post("/api/schedules", json={"campaign_id": campaign_id, "name": "Q3 flight"})
    response = await client.post(
        f"/api/schedules/{schedule.json()['id']}/items",
        json={"items": [{"show_id": str(uuid.uuid4()), "air_date": "2025-08-15", "placement_type": "mid_roll"}]},
    )
    assert response.status_code == 400
    assert response.json()["reason"] == "unknown_show"
    assert response.json()["item"] == 0


@pytest.mark.asyncio
async def test_schedule_item_without_rate(client, identity):
    show_id = await _create_show(client)
    campaign_id = await _create_campaign(client)
    schedule = await client.post("/api/schedules", json={"campaign_id": campaign_id, "name": "Q3 flight"})
    response = await client.post(
        f"/api/schedules/{schedule.json()['id']}/items",
        json={"items": [{"show_id": show_id, "air_date": "2025-08-15", "placement_type": "mid_roll"}]},
    )
    assert response.status_code == 400
    assert response.json()["reason"] == "no_rate"


# ── Orders ──────────────────────────────────────────────────────────────────


async def _create_episode(repos, show_id: str, title: str = "Episode 1") -> str:
    episode = await repos.episode_repository.create(ORG_A_SLUG, EpisodeCreate(show_id=show_id, title=title))
    return episode.id


def _order_item(show_id: str, rate: float = 500, **extra) -> dict:
    return {"show_id": show_id, "placement_type": "mid_roll", "air_date": "2025-08-15", "rate": rate, **extra}


@pytest.mark.asyncio
async def test_order_total_is_sum_of_item_rates(client, identity, repos):
    show_id = await _create_show(client)
    other_show_id = await _create_show(client, "Night Shift")
    episode_id = await _create_episode(repos, show_id)
    identity.use("sales")
    campaign_id = await _create_campaign(client)

    response = await client.post(
        "/api/orders",
        json={
            "campaign_id": campaign_id,
            "items": [_order_item(show_id, 500, episode_id=episode_id), _order_item(other_show_id, 650)],
        },
    )
    assert response.status_code == 201
    body = response.json()
    assert body["total_amount"] == 1150.0
    assert body["status"] == "draft"
    assert body["order_number"].startswith("ORD-")
    assert [item["episode_id"] for item in body["items"]] == [episode_id, None]


@pytest.mark.asyncio
async def test_order_status_lifecycle(client, identity):
    show_id = await _create_show(client)
    identity.use("sales")
    campaign_id = await _create_campaign(client)

    async def _new_order() -> str:
        created = await client.post("/api/orders", json={"campaign_id": campaign_id, "items": [_order_item(show_id)]})
        assert created.status_code == 201
        return created.json()["id"]

    order_id = await _new_order()
    approved = await client.put(f"/api/orders/{order_id}/status", json={"status": "approved"})
    assert approved.status_code == 200
    booked = await client.put(f"/api/orders/{order_id}/status", json={"status": "booked"})
    assert booked.status_code == 200
    assert booked.json()["status"] == "booked"

    too_late = await client.put(f"/api/orders/{order_id}/status", json={"status": "cancelled"})
    assert too_late.status_code == 400
    assert too_late.json()["reason"] == "invalid_transition"

    draft_id = await _new_order()
    cancelled = await client.put(f"/api/orders/{draft_id}/status", json={"status": "cancelled"})
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"


@pytest.mark.asyncio
@pytest.mark.parametrize("show_id", [str(uuid.uuid4()), "not-a-show"])
async def test_order_item_for_unknown_show(client, identity, show_id):
    campaign_id = await _create_campaign(client)
    response = await client.post("/api/orders", json={"campaign_id": campaign_id, "items": [_order_item(show_id)]})
    assert response.status_code == 400
    assert response.json()["reason"] == "unknown_show"
    assert response.json()["item"] == 0


@pytest.mark.asyncio
async def test_order_item_episode_must_belong_to_show(client, identity, repos):
    show_id = await _create_show(client)
    other_show_id = await _create_show(client, "Night Shift")
    foreign_episode_id = await _create_episode(repos, other_show_id)
    campaign_id = await _create_campaign(client)

    response = await client.post(
        "/api/orders",
        json={
            "campaign_id": campaign_id,
            "items": [_order_item(show_id), _order_item(show_id, episode_id=foreign_episode_id)],
        },
    )
    assert response.status_code == 400
    assert response.json()["reason"] == "episode_mismatch"
    assert response.json()["item"] == 1


@pytest.mark.asyncio
async def test_order_for_unknown_campaign(client, identity):
    show_id = await _create_show(client)
    response = await client.post(
        "/api/orders", json={"campaign_id": str(uuid.uuid4()), "items": [_order_item(show_id)]}
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_order_roles(client, identity):
    show_id = await _create_show(client)
    campaign_id = await _create_campaign(client)
    order = {"campaign_id": campaign_id, "items": [_order_item(show_id)]}

    identity.use("producer")
    assert (await client.post("/api/orders", json=order)).status_code == 403

    identity.use("client")
    assert (await client.get("/api/orders")).status_code == 200
    assert (await client.post("/api/orders", json=order)).status_code == 403


# ── Partial Updates ─────────────────────────────────────────────────────────


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload, field",
    [({"effective_date": None}, "effective_date"), ({"base_rate": None, "is_active": None}, "base_rate")],
)
async def test_rate_update_refuses_nulls(client, identity, payload, field):
    show_id = await _create_show(client)
    created = await client.post(
        f"/api/shows/{show_id}/rate-history", json={"effective_date": "2025-08-01", "base_rate": 500}
    )
    rate_id = created.json()["id"]

    response = await client.put(f"/api/shows/{show_id}/rate-history/{rate_id}", json=payload)
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Validation failed"
    assert field in [entry["field"] for entry in body["fields"]]


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{"name": None}, {"budget": None}])
async def test_campaign_update_refuses_nulls(client, identity, payload):
    campaign_id = await _create_campaign(client)
    response = await client.put(f"/api/campaigns/{campaign_id}", json=payload)
    assert response.status_code == 400
    assert response.json()["error"] == "Validation failed"


@pytest.mark.asyncio
async def test_campaign_advertiser_can_be_unlinked(client, identity):
    advertiser = await client.post("/api/advertisers", json={"name": "Acme Coffee"})
    created = await client.post(
        "/api/campaigns", json={"name": "Spring Launch", "advertiser_id": advertiser.json()["id"]}
    )
    campaign_id = created.json()["id"]

    response = await client.put(f"/api/campaigns/{campaign_id}", json={"advertiser_id": None})
    assert response.status_code == 200
    assert response.json()["advertiser_id"] is None


# ── Rate Card Bodies ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_role_checked_before_malformed_rate_card_body(client, identity):
    identity.use("sales")
    response = await client.post(
        "/api/rate-cards", content="{not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 403

    identity.use("admin")
    response = await client.post(
        "/api/rate-cards", content="{not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Validation failed"


@pytest.mark.asyncio
async def test_rate_card_update_reads_body(client, identity):
    created = await client.post("/api/rate-cards", json=RATE_CARD)
    rate_card_id = created.json()["id"]

    updated = await client.put(f"/api/rate-cards/{rate_card_id}", json={"base_rate": 550})
    assert updated.status_code == 200
    assert updated.json()["base_rate"] == 550.0

    missing_name = await client.post("/api/rate-cards", json={"base_rate": 500, "effective_date": "2025-01-01"})
    assert missing_name.status_code == 400
    assert {"field": "name", "message": "Field required"} in missing_name.json()["fields"]


# ── Advertisers and Agencies ────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_advertiser_directory(client, identity):
    identity.use("sales")
    created = await client.post("/api/advertisers", json={"name": "Acme Coffee", "industry": "Beverages"})
    assert created.status_code == 201
    advertiser_id = created.json()["id"]
    await client.post("/api/advertisers", json={"name": "Zen Mattress"})

    identity.use("client")
    listing = await client.get("/api/advertisers")
    assert listing.status_code == 200
    assert listing.json()["total"] == 2
    searched = await client.get("/api/advertisers", params={"search": "coffee"})
    assert [a["id"] for a in searched.json()["items"]] == [advertiser_id]

    fetched = await client.get(f"/api/advertisers/{advertiser_id}")
    assert fetched.status_code == 200
    assert fetched.json()["industry"] == "Beverages"
    missing = await client.get(f"/api/advertisers/{uuid.uuid4()}")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_agency_directory(client, identity):
    created = await client.post("/api/agencies", json={"name": "Media Partners"})
    assert created.status_code == 201
    agency_id = created.json()["id"]

    fetched = await client.get(f"/api/agencies/{agency_id}")
    assert fetched.status_code == 200
    assert fetched.json()["name"] == "Media Partners"
    assert (await client.get("/api/agencies/garbage")).status_code == 404


@pytest.mark.asyncio
async def test_producer_cannot_add_advertisers(client, identity):
    identity.use("producer")
    assert (await client.post("/api/advertisers", json={"name": "Acme Coffee"})).status_code == 403
    assert (await client.post("/api/agencies", json={"name": "Media Partners"})).status_code == 403


@pytest.mark.asyncio
@pytest.mark.parametrize("advertiser_id", [str(uuid.uuid4()), "garbage"])
async def test_campaign_with_unknown_advertiser(client, identity, advertiser_id):
    response = await client.post("/api/campaigns", json={"name": "Spring Launch", "advertiser_id": advertiser_id})
    assert response.status_code == 400
    assert response.json()["reason"] == "unknown_advertiser"
    assert response.json()["field"] == "advertiser_id"


@pytest.mark.asyncio
async def test_campaign_links_advertiser_and_agency(client, identity):
    advertiser = await client.post("/api/advertisers", json={"name": "Acme Coffee"})
    agency = await client.post("/api/agencies", json={"name": "Media Partners"})
    response = await client.post(
        "/api/campaigns",
        json={"name": "Spring Launch", "advertiser_id": advertiser.json()["id"], "agency_id": agency.json()["id"]},
    )
    assert response.status_code == 201

    campaign_id = response.json()["id"]
    relinked = await client.put(f"/api/campaigns/{campaign_id}", json={"agency_id": str(uuid.uuid4())})
    assert relinked.status_code == 400
    assert relinked.json()["reason"] == "unknown_agency"


# ── Master Plans ────────────────────────────────────────────────────────────


class _StaticPlans:
    def __init__(self, *codes: str) -> None:
        self.plans = {
            code: BillingPlanRead(code=code, name=code.title(), monthly_price=299.0 * (i + 1))
            for i, code in enumerate(codes)
        }

    async def list(self) -> list[BillingPlanRead]:
        return list(self.plans.values())

    async def get(self, code: str) -> BillingPlanRead | None:
        return self.plans.get(code)


class _RecordingProvisioner:
    def __init__(self) -> None:
        self.calls: list[OrganizationCreate] = []

    async def __call__(self, data: OrganizationCreate) -> OrganizationRead:
        self.calls.append(data)
        return OrganizationRead(
            id=str(uuid.uuid4()), name=data.name, slug=data.slug, schema_name=f"org_{data.slug}", plan=data.plan
        )


class _NoOrganizations:
    def __init__(self) -> None:
        self.updates = 0

    async def update(self, organization_id: str, data):
        self.updates += 1
        return None


@pytest_asyncio.fixture
async def master_client():
    identity = Identity()
    identity.use("master")
    provisioner = _RecordingProvisioner()
    organizations = _NoOrganizations()
    app = make_app(
        identity,
        billing_plan_repository=_StaticPlans("starter", "professional"),
        organization_provisioner=provisioner,
        organization_repository=organizations,
    )
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client, provisioner, organizations


@pytest.mark.asyncio
async def test_organization_plan_must_exist(master_client):
    client, provisioner, _ = master_client
    response = await client.post("/api/master/organizations", json={"name": "Gamma", "slug": "gamma", "plan": "gold"})
    assert response.status_code == 400
    assert response.json()["reason"] == "unknown_plan"
    assert provisioner.calls == []

    response = await client.post(
        "/api/master/organizations", json={"name": "Gamma", "slug": "gamma", "plan": "professional"}
    )
    assert response.status_code == 201
    assert response.json()["plan"] == "professional"
    assert [call.slug for call in provisioner.calls] == ["gamma"]


@pytest.mark.asyncio
async def test_organization_update_checks_plan(master_client):
    client, _, organizations = master_client
    response = await client.put(f"/api/master/organizations/{uuid.uuid4()}", json={"plan": "gold"})
    assert response.status_code == 400
    assert response.json()["reason"] == "unknown_plan"
    assert organizations.updates == 0


@pytest.mark.asyncio
async def test_master_lists_plans(master_client):
    client, _, _ = master_client
    response = await client.get("/api/master/plans")
    assert response.status_code == 200
    assert [plan["code"] for plan in response.json()] == ["starter", "professional"]
