"""Role capabilities: the single place that decides who may do what.

Handlers never compare role strings. They declare the capability they
need with ``Depends(require(Capability.RATES_WRITE))`` and the lookup
below answers allow or deny. A denial is a 403 raised before the handler
touches any tenant data.
"""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    master = "master"
    admin = "admin"
    sales = "sales"
    producer = "producer"
    talent = "talent"
    client = "client"


class Capability(str, Enum):
    CAMPAIGNS_READ = "campaigns:read"
    CAMPAIGNS_WRITE = "campaigns:write"
    SHOWS_READ = "shows:read"
    SHOWS_WRITE = "shows:write"
    EPISODES_READ = "episodes:read"
    EPISODES_WRITE = "episodes:write"
    RATES_READ = "rates:read"
    RATES_WRITE = "rates:write"
    SCHEDULES_READ = "schedules:read"
    SCHEDULES_WRITE = "schedules:write"
    ORDERS_READ = "orders:read"
    ORDERS_WRITE = "orders:write"
    INVOICES_READ = "invoices:read"
    INVOICES_WRITE = "invoices:write"
    INVOICES_CORRECT = "invoices:correct"
    USERS_READ = "users:read"
    USERS_WRITE = "users:write"
    REPORTS_READ = "reports:read"
    INTEGRATIONS_READ = "integrations:read"
    INTEGRATIONS_WRITE = "integrations:write"
    MASTER_SETTINGS = "master:settings"


_ALL_ROLES = frozenset(Role)
_MANAGERS = frozenset({Role.master, Role.admin})
_SELLERS = _MANAGERS | {Role.sales}
_PRODUCTION = _MANAGERS | {Role.producer}
_STAFF = _MANAGERS | {Role.sales, Role.producer}

CAPABILITY_ROLES: dict[Capability, frozenset[Role]] = {
    Capability.CAMPAIGNS_READ: _ALL_ROLES,
    Capability.CAMPAIGNS_WRITE: _SELLERS,
    Capability.SHOWS_READ: _ALL_ROLES,
    Capability.SHOWS_WRITE: _PRODUCTION,
    Capability.EPISODES_READ: _ALL_ROLES,
    Capability.EPISODES_WRITE: _PRODUCTION,
    Capability.RATES_READ: _STAFF,
    Capability.RATES_WRITE: _MANAGERS,
    Capability.SCHEDULES_READ: _STAFF,
    Capability.SCHEDULES_WRITE: _SELLERS,
    Capability.ORDERS_READ: _STAFF | {Role.client},
    Capability.ORDERS_WRITE: _SELLERS,
    Capability.INVOICES_READ: _SELLERS | {Role.client},
    Capability.INVOICES_WRITE: _SELLERS,
    Capability.INVOICES_CORRECT: _MANAGERS,
    Capability.USERS_READ: _MANAGERS,
    Capability.USERS_WRITE: _MANAGERS,
    Capability.REPORTS_READ: _SELLERS,
    Capability.INTEGRATIONS_READ: _STAFF,
    Capability.INTEGRATIONS_WRITE: _MANAGERS,
    Capability.MASTER_SETTINGS: frozenset({Role.master}),
}


def parse_role(value: str) -> Role | None:
    try:
        return Role(value)
    except ValueError:
        return None


def has_capability(role: str, capability: Capability) -> bool:
    """Return True when ``role`` holds ``capability``. Unknown roles hold nothing."""
    parsed = parse_role(role)
    if parsed is None:
        return False
    return parsed in CAPABILITY_ROLES.get(capability, frozenset())


def capabilities_for(role: str) -> set[Capability]:
    parsed = parse_role(role)
    if parsed is None:
        return set()
    return {cap for cap, roles in CAPABILITY_ROLES.items() if parsed in roles}
