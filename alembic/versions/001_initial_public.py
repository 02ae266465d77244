"""Initial public schema: organizations, users, sessions, billing plans, platform settings.

Revision ID: 001_initial_public
Revises:
Create Date: 2026-10-18

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

# revision identifiers, used by Alembic.
revision: str = "001_initial_public"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = ("public",)
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # gen_random_uuid() for every primary key
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    op.create_table(
        "organizations",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("slug", sa.String(50), unique=True, nullable=False),
        sa.Column("schema_name", sa.String(63), unique=True, nullable=False),
        sa.Column("plan", sa.String(50), server_default=sa.text("'starter'")),
        sa.Column("status", sa.String(20), server_default=sa.text("'active'")),
        sa.Column("timezone", sa.String(64), server_default=sa.text("'UTC'")),
        sa.Column("youtube_daily_quota", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        schema="public",
    )

    op.create_table(
        "users",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "organization_id",
            UUID(as_uuid=True),
            sa.ForeignKey("public.organizations.id"),
            nullable=False,
        ),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(200), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("title", sa.String(100), nullable=True),
        sa.Column("hashed_password", sa.String(255), nullable=True),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true")),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        schema="public",
    )

    # Email is unique per organization, case-insensitive
    op.execute(
        "CREATE UNIQUE INDEX uq_users_org_email ON public.users(organization_id, lower(email)) "
        "WHERE deleted_at IS NULL"
    )

    op.create_table(
        "sessions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("public.users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        schema="public",
    )
    op.create_index("ix_public_sessions_user_id", "sessions", ["user_id"], schema="public")

    billing_plans = op.create_table(
        "billing_plans",
        sa.Column("code", sa.String(50), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("monthly_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("max_users", sa.Integer(), nullable=True),
        sa.Column("max_shows", sa.Integer(), nullable=True),
        schema="public",
    )
    op.bulk_insert(
        billing_plans,
        [
            {"code": "starter", "name": "Starter", "monthly_price": 299, "max_users": 5, "max_shows": 10},
            {"code": "professional", "name": "Professional", "monthly_price": 799, "max_users": 25, "max_shows": 50},
            {"code": "enterprise", "name": "Enterprise", "monthly_price": 1999, "max_users": None, "max_shows": None},
        ],
    )

    op.create_table(
        "platform_settings",
        sa.Column("key", sa.String(100), primary_key=True),
        sa.Column("value", JSONB(), nullable=False),
        sa.Column("updated_by", UUID(as_uuid=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        schema="public",
    )


def downgrade() -> None:
    op.drop_table("platform_settings", schema="public")
    op.drop_table("billing_plans", schema="public")
    op.drop_index("ix_public_sessions_user_id", table_name="sessions", schema="public")
    op.drop_table("sessions", schema="public")
    op.execute("DROP INDEX IF EXISTS public.uq_users_org_email")
    op.drop_table("users", schema="public")
    op.drop_table("organizations", schema="public")
