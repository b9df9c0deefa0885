"""
In-process fakes shared by the test modules.
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional

from redis.exceptions import ConnectionError as RedisConnectionError

from noverthinker.analytics.models import AnalyticsRecord, RawPlayerScores
from noverthinker.analytics.store import AnalyticsStore
from noverthinker.cache import CacheBackend
from noverthinker.errors import PlayerNotFoundError, StoreUnavailableError

PLAYER_A = "11111111-1111-1111-1111-111111111111"
PLAYER_B = "22222222-2222-2222-2222-222222222222"
PLAYER_C = "33333333-3333-3333-3333-333333333333"
PLAYER_D = "44444444-4444-4444-4444-444444444444"
PLAYER_E = "55555555-5555-5555-5555-555555555555"

FIXED_NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class InMemoryAnalyticsStore(AnalyticsStore):
    """Dict-backed store that counts reads and writes."""

    def __init__(self, records: Optional[dict[str, AnalyticsRecord]] = None):
        self.records: dict[str, AnalyticsRecord] = dict(records or {})
        self.reads = 0
        self.writes = 0

    async def get(self, player_id: str) -> Optional[AnalyticsRecord]:
        self.reads += 1
        record = self.records.get(player_id)
        # Yield like a real round trip so concurrent lookups interleave
        await asyncio.sleep(0)
        return record

    async def upsert(self, record: AnalyticsRecord) -> None:
        self.writes += 1
        self.records[record.player_id] = record


class FailingAnalyticsStore(InMemoryAnalyticsStore):
    """Store whose reads and/or writes fail as if the database were down."""

    def __init__(self, fail_reads: bool = False, fail_writes: bool = False, **kwargs):
        super().__init__(**kwargs)
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes

    async def get(self, player_id: str) -> Optional[AnalyticsRecord]:
        if self.fail_reads:
            raise StoreUnavailableError("read", player_id, ConnectionError("connection refused"))
        return await super().get(player_id)

    async def upsert(self, record: AnalyticsRecord) -> None:
        if self.fail_writes:
            raise StoreUnavailableError("write", record.player_id, ConnectionError("connection refused"))
        await super().upsert(record)


class UnreachableBackend(CacheBackend):
    """Cache backend that behaves like a Redis server that is down."""

    name = "redis"

    def __init__(self):
        self.calls = 0

    def _fail(self):
        self.calls += 1
        raise RedisConnectionError("Error 111 connecting to localhost:6379. Connection refused.")

    async def get(self, key):
        self._fail()

    async def set(self, key, value, ttl):
        self._fail()

    async def delete(self, key):
        self._fail()

    async def size(self):
        self._fail()

    async def ping(self):
        self._fail()


def make_raw(player_id: str = PLAYER_A, nova: float = 90.0, discipline: int = 95) -> RawPlayerScores:
    return RawPlayerScores(player_id=player_id, nova_score=nova, discipline_score=discipline)


def fetcher_for(*raws: RawPlayerScores):
    """Async raw-score fetcher over a fixed set of players, recording calls."""
    by_id = {raw.player_id: raw for raw in raws}
    calls: list[str] = []

    async def fetch(player_id: str) -> RawPlayerScores:
        calls.append(player_id)
        if player_id not in by_id:
            raise PlayerNotFoundError(player_id)
        return by_id[player_id]

    fetch.calls = calls
    return fetch
