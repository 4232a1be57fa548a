"""
WAREHOUSE MODULE - Everything that talks to the analytics database

Purpose:
    1. Discover tables, their columns and a few sample rows (introspection)
    2. Run a report query with a time limit
    3. Answer the health probe with the database clock

The report pipeline never touches the session directly; it gets the
introspection result and an execute callback from here.
"""

import asyncio
import logging
import time
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Callable, Dict, List, Optional, Tuple

from fastapi import Depends
from sqlalchemy import literal_column, select, table, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.errors import QueryExecutionError
from app.core.report.catalog import RawSchemaInfo


logger = logging.getLogger(__name__)


def _plain(value: Any) -> Any:
    # NUMERIC comes back as Decimal; JSON clients expect plain numbers
    if isinstance(value, Decimal):
        return float(value)
    return value


TABLES_SQL = text(
    """
    SELECT table_name
    FROM information_schema.tables
    WHERE table_schema = 'public'
    ORDER BY table_name
    """
)

COLUMNS_SQL = text(
    """
    SELECT column_name, data_type
    FROM information_schema.columns
    WHERE table_schema = 'public' AND table_name = :table_name
    ORDER BY ordinal_position
    """
)


class SchemaCache:
    """
    Introspection results kept for a fixed number of seconds.

    A TTL of 0 disables caching, so every request sees the live schema.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: Dict[str, Tuple[float, RawSchemaInfo]] = {}

    def get(self, key: str) -> Optional[RawSchemaInfo]:
        if self.ttl_seconds <= 0:
            return None
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, schema = entry
        if self.clock() >= expires_at:
            del self._entries[key]
            return None
        return schema

    def put(self, key: str, schema: RawSchemaInfo) -> None:
        if self.ttl_seconds <= 0:
            return
        self._entries[key] = (self.clock() + self.ttl_seconds, schema)

    def clear(self) -> None:
        self._entries.clear()


schema_cache = SchemaCache(settings.SCHEMA_CACHE_TTL_SECONDS)


class Warehouse:
    """Read-only access to the analytics database for one request."""

    def __init__(
        self,
        db: AsyncSession,
        timeout_seconds: float = settings.QUERY_TIMEOUT_SECONDS,
        sample_rows: int = settings.SCHEMA_SAMPLE_ROWS,
        cache: SchemaCache = schema_cache,
        cache_key: str = settings.DATABASE_URL,
    ):
        self.db = db
        self.timeout_seconds = timeout_seconds
        self.sample_rows = sample_rows
        self.cache = cache
        self.cache_key = cache_key

    async def analyze_schema(self) -> RawSchemaInfo:
        """
        Describe every table in the public schema.

        Returns:
            {table_name: [{"column_name", "data_type", "sampleValues"}]}

        Example:
            {"ordrs": [{"column_name": "order_id", "data_type": "integer",
                        "sampleValues": [1, 2, 3, 4, 5]}, ...]}
        """
        cached = self.cache.get(self.cache_key)
        if cached is not None:
            return cached

        try:
            result = await self.db.execute(TABLES_SQL)
            table_names = [row.table_name for row in result]

            schema: RawSchemaInfo = {}
            for table_name in table_names:
                columns = (
                    await self.db.execute(COLUMNS_SQL, {"table_name": table_name})
                ).all()

                # Sample rows show what the data actually looks like
                sample_stmt = (
                    select(literal_column("*")).select_from(table(table_name)).limit(self.sample_rows)
                )
                samples = (await self.db.execute(sample_stmt)).mappings().all()

                schema[table_name] = [
                    {
                        "column_name": column.column_name,
                        "data_type": column.data_type,
                        "sampleValues": [sample.get(column.column_name) for sample in samples],
                    }
                    for column in columns
                ]
        except (SQLAlchemyError, OSError) as error:
            await self.db.rollback()
            logger.error(f"Schema analysis failed: {error}")
            raise QueryExecutionError("Failed to analyze database schema") from error

        self.cache.put(self.cache_key, schema)
        return schema

    async def execute_query(self, sql: str) -> List[Dict[str, Any]]:
        """
        Run a report query and return its rows as plain dicts.

        Raises:
            QueryExecutionError: timeout, connection failure or SQL error
        """
        logger.info(f"Executing report query: {sql[:200]}")
        try:
            result = await asyncio.wait_for(
                self.db.execute(text(sql)), timeout=self.timeout_seconds
            )
            rows = [
                {key: _plain(value) for key, value in row.items()}
                for row in result.mappings().all()
            ]
        except asyncio.TimeoutError as error:
            await self.db.rollback()
            raise QueryExecutionError(
                f"Query timed out after {self.timeout_seconds:g} seconds"
            ) from error
        except (SQLAlchemyError, OSError) as error:
            # asyncpg raises connection refusals as bare OSError
            await self.db.rollback()
            raise QueryExecutionError(f"Query failed: {error}") from error

        logger.info(f"Query returned {len(rows)} rows")
        return rows

    async def current_time(self) -> datetime:
        result = await self.db.execute(text("SELECT NOW() AS now"))
        return result.scalar_one()


async def get_warehouse(db: Annotated[AsyncSession, Depends(get_db)]) -> Warehouse:
    return Warehouse(db)
