"""Initial organization schema: catalogue, rates, campaigns, billing.

Revision ID: 002_initial_tenant
Revises:
Create Date: 2026-10-18

Note: This migration uses schema="tenant" placeholder. When run via
schema_translate_map, "tenant" is replaced with the organization schema.
Raw DDL (indexes) uses the actual schema name from -x args.

No table carries an organization id; the schema is the isolation boundary.
"""

from typing import Sequence, Union

from alembic import context, op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers, used by Alembic.
revision: str = "002_initial_tenant"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = ("tenant",)
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()"))


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now())


def _updated_at() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True)


def _money(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.Numeric(12, 2), nullable=nullable)


def _fk(name: str, target: str, nullable: bool = False, ondelete: str | None = None) -> sa.Column:
    return sa.Column(name, UUID(as_uuid=True), sa.ForeignKey(f"tenant.{target}.id", ondelete=ondelete), nullable=nullable)


def upgrade() -> None:
    cmd_kwargs = context.get_x_argument(as_dictionary=True)
    schema = cmd_kwargs.get("schema", "tenant")

    # ── parties ─────────────────────────────────────────────────────────

    op.create_table(
        "advertisers",
        _id(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("industry", sa.String(100), nullable=True),
        sa.Column("contact_email", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true")),
        _created_at(),
        schema="tenant",
    )

    op.create_table(
        "agencies",
        _id(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("contact_email", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true")),
        _created_at(),
        schema="tenant",
    )

    op.create_table(
        "campaigns",
        _id(),
        sa.Column("name", sa.String(200), nullable=False),
        _fk("advertiser_id", "advertisers", nullable=True),
        _fk("agency_id", "agencies", nullable=True),
        sa.Column("budget", sa.Numeric(12, 2), server_default=sa.text("0")),
        sa.Column("status", sa.String(20), server_default=sa.text("'draft'")),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("created_by", UUID(as_uuid=True), nullable=True),
        _created_at(),
        _updated_at(),
        sa.CheckConstraint("budget >= 0", name="ck_campaigns_budget"),
        sa.CheckConstraint(
            "end_date IS NULL OR start_date IS NULL OR end_date >= start_date", name="ck_campaigns_dates"
        ),
        schema="tenant",
    )

    # ── catalogue ───────────────────────────────────────────────────────

    op.create_table(
        "shows",
        _id(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("host", sa.String(200), nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true")),
        sa.Column("active_from", sa.Date(), nullable=True),
        sa.Column("active_until", sa.Date(), nullable=True),
        sa.Column("youtube_channel_id", sa.String(64), nullable=True),
        sa.Column("megaphone_podcast_id", sa.String(64), nullable=True),
        _created_at(),
        _updated_at(),
        schema="tenant",
    )

    op.create_table(
        "episodes",
        _id(),
        _fk("show_id", "shows"),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("episode_number", sa.Integer(), nullable=True),
        sa.Column("air_date", sa.Date(), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(20), server_default=sa.text("'scheduled'")),
        sa.Column("youtube_video_id", sa.String(32), nullable=True),
        sa.Column("megaphone_episode_id", sa.String(64), nullable=True),
        _created_at(),
        _updated_at(),
        schema="tenant",
    )
    op.execute(f'CREATE INDEX idx_episodes_show ON "{schema}".episodes(show_id, air_date)')

    op.create_table(
        "episode_youtube_metrics",
        sa.Column(
            "episode_id",
            UUID(as_uuid=True),
            sa.ForeignKey("tenant.episodes.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("view_count", sa.BigInteger(), server_default=sa.text("0")),
        sa.Column("like_count", sa.BigInteger(), server_default=sa.text("0")),
        sa.Column("comment_count", sa.BigInteger(), server_default=sa.text("0")),
        sa.Column("synced_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        schema="tenant",
    )

    # ── rates ───────────────────────────────────────────────────────────

    op.create_table(
        "show_rate_history",
        _id(),
        _fk("show_id", "shows"),
        sa.Column("effective_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        _money("base_rate"),
        _money("pre_roll_rate", nullable=True),
        _money("mid_roll_rate", nullable=True),
        _money("post_roll_rate", nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true")),
        sa.Column("created_by", UUID(as_uuid=True), nullable=True),
        sa.Column("updated_by", UUID(as_uuid=True), nullable=True),
        _created_at(),
        _updated_at(),
        schema="tenant",
    )
    op.execute(
        f'CREATE INDEX idx_rate_history_show ON "{schema}".show_rate_history(show_id, effective_date) '
        "WHERE is_active"
    )

    op.create_table(
        "rate_cards",
        _id(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _money("base_rate"),
        _money("pre_roll_rate", nullable=True),
        _money("mid_roll_rate", nullable=True),
        _money("post_roll_rate", nullable=True),
        sa.Column("effective_date", sa.Date(), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true")),
        sa.Column("created_by", UUID(as_uuid=True), nullable=True),
        _created_at(),
        schema="tenant",
    )

    op.create_table(
        "category_exclusivity",
        _id(),
        _fk("show_id", "shows"),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("exclusivity_premium", sa.Numeric(5, 4), nullable=False),
        sa.Column("effective_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", UUID(as_uuid=True), nullable=True),
        _created_at(),
        schema="tenant",
    )

    # ── scheduling ──────────────────────────────────────────────────────

    op.create_table(
        "schedules",
        _id(),
        _fk("campaign_id", "campaigns"),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("status", sa.String(20), server_default=sa.text("'draft'")),
        sa.Column("created_by", UUID(as_uuid=True), nullable=True),
        _created_at(),
        _updated_at(),
        schema="tenant",
    )
    op.execute(f'CREATE INDEX idx_schedules_campaign ON "{schema}".schedules(campaign_id)')

    op.create_table(
        "schedule_items",
        _id(),
        _fk("schedule_id", "schedules", ondelete="CASCADE"),
        _fk("show_id", "shows"),
        _fk("episode_id", "episodes", nullable=True),
        sa.Column("air_date", sa.Date(), nullable=False),
        sa.Column("placement_type", sa.String(20), nullable=False),
        _money("rate_card_price"),
        _money("negotiated_price"),
        _created_at(),
        schema="tenant",
    )
    op.execute(f'CREATE INDEX idx_schedule_items_schedule ON "{schema}".schedule_items(schedule_id)')

    # ── billing ─────────────────────────────────────────────────────────

    op.create_table(
        "orders",
        _id(),
        sa.Column("order_number", sa.String(32), unique=True, nullable=False),
        _fk("campaign_id", "campaigns"),
        sa.Column("status", sa.String(20), server_default=sa.text("'draft'")),
        sa.Column("total_amount", sa.Numeric(12, 2), server_default=sa.text("0")),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", UUID(as_uuid=True), nullable=True),
        _created_at(),
        _updated_at(),
        schema="tenant",
    )
    op.execute(f'CREATE INDEX idx_orders_campaign ON "{schema}".orders(campaign_id)')

    op.create_table(
        "order_items",
        _id(),
        _fk("order_id", "orders", ondelete="CASCADE"),
        _fk("show_id", "shows"),
        _fk("episode_id", "episodes", nullable=True),
        sa.Column("placement_type", sa.String(20), nullable=False),
        sa.Column("air_date", sa.Date(), nullable=False),
        _money("rate"),
        schema="tenant",
    )
    op.execute(f'CREATE INDEX idx_order_items_order ON "{schema}".order_items(order_id)')

    op.create_table(
        "invoices",
        _id(),
        sa.Column("invoice_number", sa.String(32), unique=True, nullable=False),
        _fk("campaign_id", "campaigns"),
        sa.Column("status", sa.String(20), server_default=sa.text("'draft'")),
        sa.Column("issue_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        _money("total_amount"),
        sa.Column("correction_reason", sa.Text(), nullable=True),
        sa.Column("created_by", UUID(as_uuid=True), nullable=True),
        _created_at(),
        _updated_at(),
        sa.CheckConstraint("total_amount >= 0", name="ck_invoices_total"),
        schema="tenant",
    )
    op.execute(f'CREATE INDEX idx_invoices_campaign ON "{schema}".invoices(campaign_id, issue_date)')

    op.create_table(
        "invoice_items",
        _id(),
        _fk("invoice_id", "invoices", ondelete="CASCADE"),
        sa.Column("description", sa.String(300), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        _money("unit_price"),
        _money("amount"),
        sa.CheckConstraint("quantity > 0", name="ck_invoice_items_quantity"),
        schema="tenant",
    )
    op.execute(f'CREATE INDEX idx_invoice_items_invoice ON "{schema}".invoice_items(invoice_id)')


def downgrade() -> None:
    for table in (
        "invoice_items",
        "invoices",
        "order_items",
        "orders",
        "schedule_items",
        "schedules",
        "category_exclusivity",
        "rate_cards",
        "show_rate_history",
        "episode_youtube_metrics",
        "episodes",
        "shows",
        "campaigns",
        "agencies",
        "advertisers",
    ):
        op.drop_table(table, schema="tenant")
