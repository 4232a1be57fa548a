import asyncio
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from app.core.errors import QueryExecutionError
from app.core.warehouse import SchemaCache, Warehouse


class FakeResult:
    def __init__(self, rows):
        self.rows = rows

    def mappings(self):
        return self

    def all(self):
        return self.rows


class FakeSession:
    """Just enough of AsyncSession for Warehouse.execute_query."""

    def __init__(self, rows=None, delay=0.0, error=None):
        self.rows = rows or []
        self.delay = delay
        self.error = error
        self.rolled_back = False

    async def execute(self, statement, params=None):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return FakeResult(self.rows)

    async def rollback(self):
        self.rolled_back = True


@pytest.mark.asyncio
async def test_execute_query_returns_plain_rows():
    session = FakeSession(rows=[{"status": "completed", "total_amount": Decimal("10.50")}])
    warehouse = Warehouse(session, timeout_seconds=1)

    rows = await warehouse.execute_query("SELECT 1")

    assert rows == [{"status": "completed", "total_amount": 10.5}]
    assert isinstance(rows[0]["total_amount"], float)


@pytest.mark.asyncio
async def test_execute_query_times_out():
    session = FakeSession(delay=0.5)
    warehouse = Warehouse(session, timeout_seconds=0.01)

    with pytest.raises(QueryExecutionError) as exc_info:
        await warehouse.execute_query("SELECT pg_sleep(1)")

    assert "timed out" in str(exc_info.value)
    assert session.rolled_back


@pytest.mark.asyncio
async def test_execute_query_wraps_database_errors():
    session = FakeSession(error=OperationalError("SELECT 1", {}, Exception("connection refused")))
    warehouse = Warehouse(session, timeout_seconds=1)

    with pytest.raises(QueryExecutionError) as exc_info:
        await warehouse.execute_query("SELECT 1")

    assert "connection refused" in str(exc_info.value)
    assert session.rolled_back


def test_schema_cache_disabled_by_zero_ttl():
    cache = SchemaCache(0)
    cache.put("db", {"ordrs": []})
    assert cache.get("db") is None


def test_schema_cache_returns_until_expiry():
    clock = {"now": 100.0}
    cache = SchemaCache(30, clock=lambda: clock["now"])
    cache.put("db", {"ordrs": []})
    assert cache.get("db") == {"ordrs": []}
    assert cache.get("other-db") is None

    clock["now"] = 131.0
    assert cache.get("db") is None


@pytest.mark.asyncio
async def test_analyze_schema_uses_cache():
    cache = SchemaCache(60)
    cache.put("db", {"cached_ordrs": []})
    warehouse = Warehouse(FakeSession(error=RuntimeError("should not query")), cache=cache, cache_key="db")

    assert await warehouse.analyze_schema() == {"cached_ordrs": []}


@pytest.mark.asyncio
async def test_execute_query_wraps_refused_connection():
    session = FakeSession(error=ConnectionRefusedError(111, "Connect call failed"))
    warehouse = Warehouse(session, timeout_seconds=1)

    with pytest.raises(QueryExecutionError) as exc_info:
        await warehouse.execute_query("SELECT 1")

    assert "Connect call failed" in str(exc_info.value)
    assert session.rolled_back


@pytest.mark.asyncio
async def test_analyze_schema_wraps_refused_connection():
    session = FakeSession(error=ConnectionRefusedError(111, "Connect call failed"))
    warehouse = Warehouse(session, cache=SchemaCache(0))

    with pytest.raises(QueryExecutionError) as exc_info:
        await warehouse.analyze_schema()

    assert str(exc_info.value) == "Failed to analyze database schema"
    assert session.rolled_back
