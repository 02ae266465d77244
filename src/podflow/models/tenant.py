"""Per-organization models -- tables duplicated in each ``org_<slug>`` schema.

These models use the placeholder schema="tenant" via TenantBase.metadata.
At provisioning time (and in Alembic) schema_translate_map remaps "tenant"
to the organization's schema. Repositories query the same tables with raw
SQL through the tenant query executor, which pins search_path instead.

No table carries an organization_id: the schema boundary is the tenant
boundary.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.podflow.core.database import TenantBase


def _pk() -> Mapped[uuid.UUID]:
    return mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )


def _created_at() -> Mapped[datetime]:
    return mapped_column(DateTime(timezone=True), server_default=func.now())


def _updated_at() -> Mapped[datetime | None]:
    return mapped_column(DateTime(timezone=True), onupdate=func.now(), nullable=True)


def _money(nullable: bool = False) -> Mapped[Decimal]:
    return mapped_column(Numeric(12, 2), nullable=nullable)


class Advertiser(TenantBase):
    __tablename__ = "advertisers"

    id: Mapped[uuid.UUID] = _pk()
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    industry: Mapped[str | None] = mapped_column(String(100), nullable=True)
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, server_default=text("true"))
    created_at: Mapped[datetime] = _created_at()


class Agency(TenantBase):
    __tablename__ = "agencies"

    id: Mapped[uuid.UUID] = _pk()
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, server_default=text("true"))
    created_at: Mapped[datetime] = _created_at()


class Campaign(TenantBase):
    __tablename__ = "campaigns"
    __table_args__ = (
        CheckConstraint("budget >= 0", name="ck_campaigns_budget"),
        CheckConstraint("end_date IS NULL OR start_date IS NULL OR end_date >= start_date", name="ck_campaigns_dates"),
        {"schema": "tenant"},
    )

    id: Mapped[uuid.UUID] = _pk()
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    advertiser_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tenant.advertisers.id"), nullable=True
    )
    agency_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tenant.agencies.id"), nullable=True
    )
    budget: Mapped[Decimal] = mapped_column(Numeric(12, 2), server_default=text("0"))
    status: Mapped[str] = mapped_column(String(20), server_default=text("'draft'"))
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime | None] = _updated_at()


class Show(TenantBase):
    __tablename__ = "shows"

    id: Mapped[uuid.UUID] = _pk()
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    host: Mapped[str | None] = mapped_column(String(200), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, server_default=text("true"))
    active_from: Mapped[date | None] = mapped_column(Date, nullable=True)
    active_until: Mapped[date | None] = mapped_column(Date, nullable=True)
    youtube_channel_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    megaphone_podcast_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime | None] = _updated_at()


class Episode(TenantBase):
    __tablename__ = "episodes"

    id: Mapped[uuid.UUID] = _pk()
    show_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tenant.shows.id"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    episode_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    air_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(20), server_default=text("'scheduled'"))
    youtube_video_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    megaphone_episode_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime | None] = _updated_at()


class EpisodeYoutubeMetrics(TenantBase):
    __tablename__ = "episode_youtube_metrics"

    episode_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tenant.episodes.id", ondelete="CASCADE"), primary_key=True
    )
    view_count: Mapped[int] = mapped_column(BigInteger, server_default=text("0"))
    like_count: Mapped[int] = mapped_column(BigInteger, server_default=text("0"))
    comment_count: Mapped[int] = mapped_column(BigInteger, server_default=text("0"))
    synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class ShowRateHistory(TenantBase):
    """Time-ranged rates for a show. Active ranges never overlap."""

    __tablename__ = "show_rate_history"

    id: Mapped[uuid.UUID] = _pk()
    show_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tenant.shows.id"), nullable=False, index=True
    )
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    base_rate: Mapped[Decimal] = _money()
    pre_roll_rate: Mapped[Decimal | None] = _money(nullable=True)
    mid_roll_rate: Mapped[Decimal | None] = _money(nullable=True)
    post_roll_rate: Mapped[Decimal | None] = _money(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, server_default=text("true"))
    created_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    updated_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime | None] = _updated_at()


class RateCard(TenantBase):
    __tablename__ = "rate_cards"

    id: Mapped[uuid.UUID] = _pk()
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    base_rate: Mapped[Decimal] = _money()
    pre_roll_rate: Mapped[Decimal | None] = _money(nullable=True)
    mid_roll_rate: Mapped[Decimal | None] = _money(nullable=True)
    post_roll_rate: Mapped[Decimal | None] = _money(nullable=True)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, server_default=text("true"))
    created_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    created_at: Mapped[datetime] = _created_at()


class CategoryExclusivity(TenantBase):
    __tablename__ = "category_exclusivity"

    id: Mapped[uuid.UUID] = _pk()
    show_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("tenant.shows.id"), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    exclusivity_premium: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    created_at: Mapped[datetime] = _created_at()


class Schedule(TenantBase):
    __tablename__ = "schedules"

    id: Mapped[uuid.UUID] = _pk()
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tenant.campaigns.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(String(20), server_default=text("'draft'"))
    created_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime | None] = _updated_at()


class ScheduleItem(TenantBase):
    __tablename__ = "schedule_items"

    id: Mapped[uuid.UUID] = _pk()
    schedule_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tenant.schedules.id", ondelete="CASCADE"), nullable=False, index=True
    )
    show_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("tenant.shows.id"), nullable=False)
    episode_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tenant.episodes.id"), nullable=True
    )
    air_date: Mapped[date] = mapped_column(Date, nullable=False)
    placement_type: Mapped[str] = mapped_column(String(20), nullable=False)
    rate_card_price: Mapped[Decimal] = _money()
    negotiated_price: Mapped[Decimal] = _money()
    created_at: Mapped[datetime] = _created_at()


class Order(TenantBase):
    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = _pk()
    order_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tenant.campaigns.id"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(20), server_default=text("'draft'"))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), server_default=text("0"))
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime | None] = _updated_at()


class OrderItem(TenantBase):
    __tablename__ = "order_items"

    id: Mapped[uuid.UUID] = _pk()
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tenant.orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    show_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("tenant.shows.id"), nullable=False)
    episode_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tenant.episodes.id"), nullable=True
    )
    placement_type: Mapped[str] = mapped_column(String(20), nullable=False)
    air_date: Mapped[date] = mapped_column(Date, nullable=False)
    rate: Mapped[Decimal] = _money()


class Invoice(TenantBase):
    __tablename__ = "invoices"
    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_invoices_total"),
        {"schema": "tenant"},
    )

    id: Mapped[uuid.UUID] = _pk()
    invoice_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tenant.campaigns.id"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(20), server_default=text("'draft'"))
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    total_amount: Mapped[Decimal] = _money()
    correction_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime | None] = _updated_at()


class InvoiceItem(TenantBase):
    __tablename__ = "invoice_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_invoice_items_quantity"),
        {"schema": "tenant"},
    )

    id: Mapped[uuid.UUID] = _pk()
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tenant.invoices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    description: Mapped[str] = mapped_column(String(300), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = _money()
    amount: Mapped[Decimal] = _money()
