"""
PostgreSQL-facing tests for noverthinker.

Unit tests mock the async connection manager and check:
- row mapping for agent_analytics_cache
- UPSERT with ON CONFLICT and JSONB parameters
- connection failures surfacing as StoreUnavailableError
- migration bookkeeping

The TestLiveDatabase class talks to a real server and is skipped unless
DATABASE_URL is set.
"""

import os
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import psycopg
import pytest
from psycopg.types.json import Jsonb

from noverthinker.analytics import AnalyticsRecord, PostgresAnalyticsStore, derive
from noverthinker.core.config import Settings
from noverthinker.errors import StoreUnavailableError
from noverthinker.pg_async import AsyncPostgresDB
from noverthinker.schema import get_migration_files, init_database

from fakes import FIXED_NOW, PLAYER_A, make_raw


def analytics_row(**overrides):
    row = {
        "player_id": PLAYER_A,
        "performance_data": {
            "overall": 90.0,
            "matchScore": 40.5,
            "taskScore": 22.5,
            "videoScore": 13.5,
            "physicalScore": 13.5,
        },
        "consistency_score": 81,
        "consistency_level": "high",
        "consistency_trend": "stable",
        "work_rate_score": 95,
        "work_rate_level": "elite",
        "work_rate_breakdown": {"attendance": 38, "taskCompletion": 29, "uploadFrequency": 19, "discipline": 10},
        "risk_score": 97,
        "risk_level": "low",
        "risk_factors": {"consistency": "low", "discipline": "low", "engagement": "medium"},
        "last_calculated_at": datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc),
    }
    row.update(overrides)
    return row


class TestAsyncPostgresDB:
    def test_requires_url(self):
        with pytest.raises(ValueError, match="DATABASE_URL"):
            AsyncPostgresDB("")

    def test_from_settings(self):
        settings = Settings(
            database_url="postgresql://localhost/noverthinker",
            database_pool_min_size=3,
            database_pool_size=7,
        )
        db = AsyncPostgresDB.from_settings(settings)
        assert db.min_pool_size == 3
        assert db.max_pool_size == 7

    def test_max_never_below_min(self):
        db = AsyncPostgresDB("postgresql://localhost/x", min_pool_size=5, max_pool_size=2)
        assert db.max_pool_size == 5


class TestAnalyticsRowMapping:
    def test_from_row(self):
        record = AnalyticsRecord.from_row(analytics_row())
        assert record == derive(make_raw(nova=90.0, discipline=95), now=FIXED_NOW)

    def test_naive_timestamp_is_utc(self):
        record = AnalyticsRecord.from_row(analytics_row(last_calculated_at=datetime(2026, 1, 15, 12, 0)))
        assert record.last_calculated_at == FIXED_NOW

    def test_decimal_performance(self):
        record = AnalyticsRecord.from_row(
            analytics_row(performance_data={"overall": Decimal("90.0"), "matchScore": Decimal("40.5")})
        )
        assert record.performance.overall == 90.0
        assert record.performance.match_score == 40.5
        assert record.performance.task_score == 0.0


class TestPostgresAnalyticsStore:
    @pytest.mark.asyncio
    async def test_get_maps_row(self):
        db = AsyncMock()
        db.fetchone.return_value = analytics_row()
        store = PostgresAnalyticsStore(db)

        record = await store.get(PLAYER_A)

        assert record.risk.score == 97
        query, params = db.fetchone.call_args.args
        assert "agent_analytics_cache" in query
        assert params == (PLAYER_A,)

    @pytest.mark.asyncio
    async def test_get_absent(self):
        db = AsyncMock()
        db.fetchone.return_value = None
        assert await PostgresAnalyticsStore(db).get(PLAYER_A) is None

    @pytest.mark.asyncio
    async def test_upsert_uses_on_conflict(self):
        db = AsyncMock()
        record = derive(make_raw(), now=FIXED_NOW)

        await PostgresAnalyticsStore(db).upsert(record)

        query, params = db.execute.call_args.args
        assert "ON CONFLICT (player_id) DO UPDATE" in query
        assert params[0] == PLAYER_A
        assert isinstance(params[1], Jsonb)
        assert params[2:7] == (81, "high", "stable", 95, "elite")
        assert params[-1] == FIXED_NOW

    @pytest.mark.parametrize(
        "error",
        [psycopg.OperationalError("server closed the connection"), psycopg.InterfaceError("pool closed")],
    )
    @pytest.mark.asyncio
    async def test_connection_errors_are_wrapped(self, error):
        db = AsyncMock()
        db.fetchone.side_effect = error
        db.execute.side_effect = error
        store = PostgresAnalyticsStore(db)

        with pytest.raises(StoreUnavailableError) as read_err:
            await store.get(PLAYER_A)
        assert read_err.value.operation == "read"
        assert read_err.value.cause is error

        with pytest.raises(StoreUnavailableError) as write_err:
            await store.upsert(derive(make_raw()))
        assert write_err.value.operation == "write"

    @pytest.mark.asyncio
    async def test_read_query_errors_propagate_unwrapped(self):
        db = AsyncMock()
        db.fetchone.side_effect = psycopg.errors.UndefinedTable("relation does not exist")

        with pytest.raises(psycopg.errors.UndefinedTable):
            await PostgresAnalyticsStore(db).get(PLAYER_A)

    @pytest.mark.asyncio
    async def test_any_write_error_is_wrapped(self):
        db = AsyncMock()
        error = psycopg.errors.ForeignKeyViolation("player deleted")
        db.execute.side_effect = error

        with pytest.raises(StoreUnavailableError) as exc_info:
            await PostgresAnalyticsStore(db).upsert(derive(make_raw()))

        assert exc_info.value.operation == "write"
        assert exc_info.value.cause is error


class TestMigrations:
    def test_migration_files_are_ordered(self):
        names = [f.name for f in get_migration_files()]
        assert names == sorted(names)
        assert "001_agent_analytics_cache.sql" in names

    def test_analytics_table_has_unique_player(self):
        sql_text = get_migration_files()[0].read_text()
        assert "agent_analytics_cache" in sql_text
        assert "UNIQUE" in sql_text

    @pytest.mark.asyncio
    async def test_skips_applied(self):
        db = AsyncMock()
        db.fetchall.return_value = [{"name": f.stem} for f in get_migration_files()]

        assert await init_database(db) == 0
        assert db.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_force_reapplies(self):
        db = AsyncMock()

        applied = await init_database(db, force=True)

        assert applied == len(get_migration_files())
        db.fetchall.assert_not_awaited()


@pytest.mark.skipif(not os.getenv("DATABASE_URL"), reason="DATABASE_URL environment variable not set")
class TestLiveDatabase:
    @pytest.mark.asyncio
    async def test_ping_and_fetchval(self):
        db = AsyncPostgresDB(os.environ["DATABASE_URL"], min_pool_size=1, max_pool_size=2)
        await db.initialize()
        try:
            await db.ping()
            assert await db.fetchval("SELECT 1 AS one") == 1
            assert await db.fetchval("SELECT 2 AS two", column="two") == 2
        finally:
            await db.close()
