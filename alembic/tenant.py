"""Per-organization migration helpers.

Runs the ``tenant`` migration branch for one organization schema or for
every active organization.
"""

from __future__ import annotations

from argparse import Namespace

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, text

from src.podflow.config import get_settings


def _get_alembic_config() -> Config:
    config = Config("alembic.ini")
    config.set_main_option("script_location", "alembic")
    return config


def migrate_organization(schema_name: str, direction: str = "upgrade", revision: str = "tenant@head") -> None:
    """Run migration for a single organization schema.

    Args:
        schema_name: The organization schema name (e.g., "org_acme_audio")
        direction: "upgrade" or "downgrade"
        revision: Target revision (default: "tenant@head")
    """
    config = _get_alembic_config()
    # Read back by env.py through context.get_x_argument()
    config.cmd_opts = Namespace(x=[f"schema={schema_name}"])

    if direction == "upgrade":
        command.upgrade(config, revision)
    elif direction == "downgrade":
        command.downgrade(config, revision)
    else:
        raise ValueError(f"Invalid direction: {direction}")


def migrate_all_organizations(direction: str = "upgrade", revision: str = "tenant@head") -> list[str]:
    """Run migrations for every active organization schema.

    Returns:
        List of schema names that were migrated.
    """
    settings = get_settings()
    engine = create_engine(settings.DATABASE_URL.replace("+asyncpg", ""))

    with engine.connect() as conn:
        result = conn.execute(
            text("SELECT schema_name FROM public.organizations WHERE status = 'active' ORDER BY slug")
        )
        schemas = [row[0] for row in result]
    engine.dispose()

    migrated = []
    for schema_name in schemas:
        migrate_organization(schema_name, direction, revision)
        migrated.append(schema_name)
    return migrated
