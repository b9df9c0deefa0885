"""
Tests for the analytics cache coordinator.

Run entirely in-process: the durable store is a dict-backed fake and the
fast cache uses the in-memory backend (or an unreachable Redis stand-in).
"""

import asyncio
import logging
from unittest.mock import AsyncMock

import psycopg
import pytest

from noverthinker.analytics import AnalyticsCoordinator, PostgresAnalyticsStore, derive
from noverthinker.cache import FastCache, Hit, analytics_key
from noverthinker.errors import PlayerNotFoundError, StoreUnavailableError

from fakes import (
    FIXED_NOW,
    PLAYER_A,
    PLAYER_B,
    FailingAnalyticsStore,
    InMemoryAnalyticsStore,
    fetcher_for,
    make_raw,
)


class TestGetAnalytics:
    @pytest.mark.asyncio
    async def test_double_miss_derives_and_persists(self, store, memory_cache):
        fetch = fetcher_for(make_raw(nova=90.0, discipline=95))
        coordinator = AnalyticsCoordinator(store, memory_cache)

        record = await coordinator.get_analytics(PLAYER_A, fetch)

        assert record.performance.overall == 90
        assert record.consistency.score == 81
        assert record.work_rate.score == 95
        assert record.work_rate.level == "elite"
        assert record.risk.score == 97
        assert record.risk.level == "low"

        assert fetch.calls == [PLAYER_A]
        assert store.records[PLAYER_A] == record
        cached = await memory_cache.get(analytics_key(PLAYER_A))
        assert cached == Hit(record.to_dict())

    @pytest.mark.asyncio
    async def test_store_hit_is_read_through(self, memory_cache):
        stored = derive(make_raw(nova=72.0, discipline=64), now=FIXED_NOW)
        store = InMemoryAnalyticsStore({PLAYER_A: stored})
        fetch = fetcher_for(make_raw(nova=10.0, discipline=10))
        coordinator = AnalyticsCoordinator(store, memory_cache)

        record = await coordinator.get_analytics(PLAYER_A, fetch)

        assert record == stored
        assert fetch.calls == []
        assert store.writes == 0
        assert await memory_cache.get(analytics_key(PLAYER_A)) == Hit(stored.to_dict())

    @pytest.mark.asyncio
    async def test_fast_cache_hit_skips_store(self, store, memory_cache):
        cached = derive(make_raw(nova=55.0, discipline=70), now=FIXED_NOW)
        await memory_cache.set(analytics_key(PLAYER_A), cached.to_dict(), ttl=60)
        fetch = fetcher_for(make_raw())
        coordinator = AnalyticsCoordinator(store, memory_cache)

        record = await coordinator.get_analytics(PLAYER_A, fetch)

        assert record == cached
        assert store.reads == 0
        assert fetch.calls == []

    @pytest.mark.asyncio
    async def test_fast_cache_wins_over_store(self, memory_cache):
        in_cache = derive(make_raw(nova=55.0), now=FIXED_NOW)
        in_store = derive(make_raw(nova=85.0), now=FIXED_NOW)
        await memory_cache.set(analytics_key(PLAYER_A), in_cache.to_dict(), ttl=60)
        coordinator = AnalyticsCoordinator(InMemoryAnalyticsStore({PLAYER_A: in_store}), memory_cache)

        record = await coordinator.get_analytics(PLAYER_A, fetcher_for(make_raw()))

        assert record.consistency.score == in_cache.consistency.score

    @pytest.mark.asyncio
    async def test_malformed_cache_entry_falls_through(self, memory_cache):
        stored = derive(make_raw(), now=FIXED_NOW)
        store = InMemoryAnalyticsStore({PLAYER_A: stored})
        await memory_cache.set(analytics_key(PLAYER_A), {"playerId": PLAYER_A}, ttl=60)
        coordinator = AnalyticsCoordinator(store, memory_cache)

        record = await coordinator.get_analytics(PLAYER_A, fetcher_for(make_raw()))

        assert record == stored
        assert store.reads == 1

    @pytest.mark.asyncio
    async def test_unknown_player_propagates(self, store, memory_cache):
        coordinator = AnalyticsCoordinator(store, memory_cache)

        with pytest.raises(PlayerNotFoundError):
            await coordinator.get_analytics(PLAYER_B, fetcher_for(make_raw(PLAYER_A)))

        assert store.records == {}

    @pytest.mark.asyncio
    async def test_second_lookup_is_served_from_cache(self, store, memory_cache):
        fetch = fetcher_for(make_raw())
        coordinator = AnalyticsCoordinator(store, memory_cache)

        first = await coordinator.get_analytics(PLAYER_A, fetch)
        second = await coordinator.get_analytics(PLAYER_A, fetch)

        assert first == second
        assert fetch.calls == [PLAYER_A]
        assert store.reads == 1


class TestDegradation:
    @pytest.mark.asyncio
    async def test_unreachable_cache_serves_from_store(self, unreachable_cache):
        stored = derive(make_raw(), now=FIXED_NOW)
        coordinator = AnalyticsCoordinator(InMemoryAnalyticsStore({PLAYER_A: stored}), unreachable_cache)

        assert await coordinator.get_analytics(PLAYER_A, fetcher_for(make_raw())) == stored

    @pytest.mark.asyncio
    async def test_unreachable_cache_still_derives(self, store, unreachable_cache):
        coordinator = AnalyticsCoordinator(store, unreachable_cache)

        record = await coordinator.get_analytics(PLAYER_A, fetcher_for(make_raw()))

        assert record.risk.score == 97
        assert store.writes == 1

    @pytest.mark.asyncio
    async def test_without_cache(self, store):
        coordinator = AnalyticsCoordinator(store)

        record = await coordinator.get_analytics(PLAYER_A, fetcher_for(make_raw()))

        assert store.records[PLAYER_A] == record

    @pytest.mark.asyncio
    async def test_store_read_failure_raises(self, memory_cache):
        store = FailingAnalyticsStore(fail_reads=True)
        fetch = fetcher_for(make_raw())
        coordinator = AnalyticsCoordinator(store, memory_cache)

        with pytest.raises(StoreUnavailableError) as exc_info:
            await coordinator.get_analytics(PLAYER_A, fetch)

        assert exc_info.value.operation == "read"
        assert fetch.calls == []

    @pytest.mark.asyncio
    async def test_write_back_failure_still_returns_record(self, memory_cache):
        store = FailingAnalyticsStore(fail_writes=True)
        coordinator = AnalyticsCoordinator(store, memory_cache)

        record = await coordinator.get_analytics(PLAYER_A, fetcher_for(make_raw()))

        assert record.work_rate.level == "elite"
        assert store.records == {}
        assert await memory_cache.get(analytics_key(PLAYER_A)) == Hit(record.to_dict())

    @pytest.mark.asyncio
    async def test_write_back_constraint_violation_still_returns_record(self, memory_cache):
        db = AsyncMock()
        db.fetchone.return_value = None
        db.execute.side_effect = psycopg.errors.ForeignKeyViolation("player deleted")
        coordinator = AnalyticsCoordinator(PostgresAnalyticsStore(db), memory_cache)

        record = await coordinator.get_analytics(PLAYER_A, fetcher_for(make_raw()))

        assert record.risk.score == 97
        db.execute.assert_awaited_once()
        assert await memory_cache.get(analytics_key(PLAYER_A)) == Hit(record.to_dict())

    @pytest.mark.asyncio
    async def test_store_read_failure_logged_once_with_player(self, memory_cache, caplog):
        coordinator = AnalyticsCoordinator(FailingAnalyticsStore(fail_reads=True), memory_cache)

        with caplog.at_level(logging.ERROR):
            with pytest.raises(StoreUnavailableError):
                await coordinator.get_stored(PLAYER_A)

        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert len(errors) == 1
        assert PLAYER_A in errors[0].getMessage()

    @pytest.mark.asyncio
    async def test_concurrent_double_miss_converges(self, store):
        fetch = fetcher_for(make_raw())
        coordinator = AnalyticsCoordinator(store, FastCache())

        first, second = await asyncio.gather(
            coordinator.get_analytics(PLAYER_A, fetch),
            coordinator.get_analytics(PLAYER_A, fetch),
        )

        assert first.to_dict()["risk"] == second.to_dict()["risk"]
        assert len(store.records) == 1
        assert store.writes == 2


class TestGetStoredAndRecompute:
    @pytest.mark.asyncio
    async def test_get_stored_never_derives(self, store, memory_cache):
        coordinator = AnalyticsCoordinator(store, memory_cache)

        assert await coordinator.get_stored(PLAYER_A) is None
        assert store.writes == 0
        stats = await memory_cache.get_stats()
        assert stats["hits"] == stats["misses"] == 0

    @pytest.mark.asyncio
    async def test_recompute_replaces_pinned_record(self, memory_cache):
        stale = derive(make_raw(nova=40.0, discipline=40), now=FIXED_NOW)
        store = InMemoryAnalyticsStore({PLAYER_A: stale})
        await memory_cache.set(analytics_key(PLAYER_A), stale.to_dict(), ttl=60)
        coordinator = AnalyticsCoordinator(store, memory_cache)

        fresh = await coordinator.recompute(PLAYER_A, fetcher_for(make_raw(nova=90.0, discipline=95)))

        assert store.records[PLAYER_A] == fresh
        assert fresh.risk.score == 97
        served = await coordinator.get_analytics(PLAYER_A, fetcher_for(make_raw()))
        assert served == fresh

    @pytest.mark.asyncio
    async def test_recompute_raises_on_write_failure(self, memory_cache):
        coordinator = AnalyticsCoordinator(FailingAnalyticsStore(fail_writes=True), memory_cache)

        with pytest.raises(StoreUnavailableError):
            await coordinator.recompute(PLAYER_A, fetcher_for(make_raw()))
