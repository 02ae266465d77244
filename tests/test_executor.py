"""Tenant query executor tests against a scripted connection.

The engine double records every statement, so the tests can check that
search_path is pinned before the query runs and that failures come back
as data on reads and as TenantQueryError on writes.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import pytest
from sqlalchemy.exc import DBAPIError

from src.podflow.core.errors import TenantQueryError
from src.podflow.core.executor import QueryResult, TenantQueryExecutor, bind_positional, classify_error


class FakeResult:
    def __init__(self, rows: list[dict[str, Any]] | None) -> None:
        self._rows = rows
        self.returns_rows = rows is not None

    def mappings(self) -> "FakeResult":
        return self

    def all(self) -> list[dict[str, Any]]:
        return list(self._rows or [])


class FakeConnection:
    def __init__(self, rows: list[dict[str, Any]] | None = None, fail_with: str | None = None) -> None:
        self.rows = rows if rows is not None else []
        self.fail_with = fail_with
        self.statements: list[tuple[str, dict[str, Any] | None]] = []

    async def execute(self, clause, params=None) -> FakeResult:
        sql = str(clause)
        self.statements.append((sql, params))
        if sql.startswith("SET LOCAL"):
            return FakeResult(None)
        if self.fail_with:
            raise DBAPIError(sql, params, Exception(self.fail_with))
        return FakeResult(self.rows)


class FakeEngine:
    def __init__(self, conn: FakeConnection) -> None:
        self.conn = conn
        self.committed = False
        self.rolled_back = False

    @asynccontextmanager
    async def begin(self):
        try:
            yield self.conn
        except BaseException:
            self.rolled_back = True
            raise
        else:
            self.committed = True


# ── Placeholder Binding ─────────────────────────────────────────────────────


def test_bind_positional_rewrites_placeholders():
    sql, binds = bind_positional("SELECT * FROM shows WHERE id = $1 AND name = $2", ["abc", "Morning"])
    assert sql == "SELECT * FROM shows WHERE id = :p1 AND name = :p2"
    assert binds == {"p1": "abc", "p2": "Morning"}


def test_bind_positional_handles_casts_and_reuse():
    sql, binds = bind_positional("SELECT $1::date, $1, $2::text[]", ["2025-08-01", ["a"]])
    assert sql == "SELECT CAST(:p1 AS date), :p1, CAST(:p2 AS text[])"
    assert set(binds) == {"p1", "p2"}


def test_bind_positional_missing_parameter():
    with pytest.raises(ValueError, match=r"\$2"):
        bind_positional("SELECT $1, $2", ["only one"])


@pytest.mark.parametrize(
    ("message", "category"),
    [
        ('insert violates foreign key constraint "fk_show"', "foreign_key"),
        ("duplicate key value violates unique constraint", "unique_violation"),
        ('relation "campaigns" does not exist', "missing_relation"),
        ("permission denied for schema org_acme", "permission_denied"),
        ("canceling statement due to statement timeout", "timeout"),
        ("connection refused", "connection"),
        ("division by zero", "other"),
    ],
)
def test_classify_error(message, category):
    assert classify_error(message) == category


def test_query_result_markers():
    ok = QueryResult(data=[{"id": 1}])
    failed = QueryResult(data=None, error="boom", category="other")
    assert ok.ok and not ok.degraded and ok.first() == {"id": 1}
    assert failed.degraded and failed.rows() == [] and failed.first() is None


# ── Execution ───────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_execute_pins_search_path_before_query():
    conn = FakeConnection(rows=[{"id": "c1", "name": "Spring"}])
    executor = TenantQueryExecutor(FakeEngine(conn))

    result = await executor.execute("acme-audio", "SELECT * FROM campaigns WHERE id = $1", ["c1"])

    assert result.ok
    assert result.rows() == [{"id": "c1", "name": "Spring"}]
    assert conn.statements[0][0] == 'SET LOCAL search_path TO "org_acme_audio", public'
    assert conn.statements[1] == ("SELECT * FROM campaigns WHERE id = :p1", {"p1": "c1"})


@pytest.mark.asyncio
async def test_execute_reports_failure_as_data():
    """A failing read returns an error marker instead of raising."""
    conn = FakeConnection(fail_with='relation "campaigns" does not exist')
    executor = TenantQueryExecutor(FakeEngine(conn))

    result = await executor.execute("acme-audio", "SELECT * FROM campaigns")

    assert result.degraded
    assert result.data is None
    assert result.category == "missing_relation"


@pytest.mark.asyncio
async def test_execute_rejects_invalid_slug_without_touching_database():
    conn = FakeConnection()
    executor = TenantQueryExecutor(FakeEngine(conn))

    result = await executor.execute('acme"; DROP SCHEMA public; --', "SELECT 1")

    assert result.category == "invalid_slug"
    assert conn.statements == []


@pytest.mark.asyncio
async def test_fetch_or_raise_raises_tenant_query_error():
    conn = FakeConnection(fail_with="duplicate key value violates unique constraint")
    executor = TenantQueryExecutor(FakeEngine(conn))

    with pytest.raises(TenantQueryError) as exc_info:
        await executor.fetch_or_raise("acme-audio", "INSERT INTO orders (order_number) VALUES ($1)", ["ORD-1"])

    assert exc_info.value.category == "unique_violation"
    assert exc_info.value.status_code == 500
    assert exc_info.value.to_body() == {"error": "Internal server error"}


# ── Transactions ────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_transaction_commits_on_success():
    conn = FakeConnection(rows=[{"id": "o1"}])
    engine = FakeEngine(conn)
    executor = TenantQueryExecutor(engine)

    async with executor.transaction("acme-audio") as tx:
        header = await tx.fetch_one("INSERT INTO orders (order_number) VALUES ($1) RETURNING *", ["ORD-1"])
        await tx.execute("INSERT INTO order_items (order_id) VALUES ($1)", [header["id"]])

    assert engine.committed
    assert tx.statements == 2
    assert conn.statements[0][0].startswith('SET LOCAL search_path TO "org_acme_audio"')


@pytest.mark.asyncio
async def test_transaction_rolls_back_when_a_statement_fails():
    conn = FakeConnection(fail_with='insert violates foreign key constraint "fk_show"')
    engine = FakeEngine(conn)
    executor = TenantQueryExecutor(engine)

    with pytest.raises(TenantQueryError) as exc_info:
        async with executor.transaction("acme-audio") as tx:
            await tx.execute("INSERT INTO schedule_items (show_id) VALUES ($1)", ["missing"])

    assert exc_info.value.category == "foreign_key"
    assert engine.rolled_back
    assert not engine.committed


@pytest.mark.asyncio
async def test_transaction_invalid_slug():
    executor = TenantQueryExecutor(FakeEngine(FakeConnection()))
    with pytest.raises(TenantQueryError):
        async with executor.transaction("bad slug!"):
            pass
