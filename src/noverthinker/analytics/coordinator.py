"""
Analytics cache coordinator.

Lookup order, short-circuiting on the first hit:

1. fast cache ``analytics:{player_id}`` -- trusted for its TTL
2. durable store -- authoritative, copied into the fast cache on read
3. derive from raw scores, upsert, write into the fast cache

Policy on failures:
- fast cache problems never reach the caller (Unavailable is a miss)
- durable store read failures propagate as StoreUnavailableError
- a failed upsert after deriving is logged and the derived record is
  still returned; read availability wins over durability here

There is no single-flight guard: two concurrent double misses for the
same player both derive and both upsert, which the last-write-wins
upsert makes safe.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from ..cache import TTL_ANALYTICS, FastCache, Hit, Unavailable, analytics_key
from ..errors import StoreUnavailableError
from .deriver import derive
from .models import AnalyticsRecord, RawPlayerScores
from .store import AnalyticsStore

logger = logging.getLogger(__name__)

RawScoresFetcher = Callable[[str], Awaitable[RawPlayerScores]]


class AnalyticsCoordinator:
    """Serves analytics records through the fast cache and durable store."""

    def __init__(
        self,
        store: AnalyticsStore,
        cache: Optional[FastCache] = None,
        ttl: int = TTL_ANALYTICS,
    ):
        self.store = store
        self.cache = cache or FastCache()
        self.ttl = ttl

    async def _from_fast_cache(self, player_id: str) -> Optional[AnalyticsRecord]:
        key = analytics_key(player_id)
        result = await self.cache.get(key)
        if isinstance(result, Unavailable):
            logger.debug("Fast cache unavailable for %s (%s)", key, result.reason)
            return None
        if not isinstance(result, Hit):
            return None
        try:
            return AnalyticsRecord.from_dict(result.value)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring malformed cached analytics for %s: %s", player_id, e)
            return None

    async def _from_store(self, player_id: str) -> Optional[AnalyticsRecord]:
        try:
            return await self.store.get(player_id)
        except StoreUnavailableError:
            logger.error("Analytics store read failed for player %s", player_id, exc_info=True)
            raise

    async def _to_fast_cache(self, record: AnalyticsRecord) -> None:
        await self.cache.set(analytics_key(record.player_id), record.to_dict(), self.ttl)

    async def get_analytics(self, player_id: str, fetch_raw_scores: RawScoresFetcher) -> AnalyticsRecord:
        """
        Return analytics for a player, deriving them on a double miss.

        Args:
            player_id: Player identifier
            fetch_raw_scores: Async callable returning the player's current
                RawPlayerScores; only called on a double miss

        Raises:
            StoreUnavailableError: durable store unreachable on read
            PlayerNotFoundError: propagated from fetch_raw_scores
        """
        cached = await self._from_fast_cache(player_id)
        if cached is not None:
            return cached

        stored = await self._from_store(player_id)
        if stored is not None:
            await self._to_fast_cache(stored)
            return stored

        raw = await fetch_raw_scores(player_id)
        record = derive(raw)

        try:
            await self.store.upsert(record)
        except StoreUnavailableError:
            logger.error(
                "Failed to persist derived analytics for player %s; serving unpersisted record",
                player_id,
                exc_info=True,
            )

        await self._to_fast_cache(record)
        logger.info("Derived analytics for player %s", player_id)
        return record

    async def get_stored(self, player_id: str) -> Optional[AnalyticsRecord]:
        """Durable-store-only lookup. Never derives, never touches the fast cache."""
        return await self._from_store(player_id)

    async def recompute(self, player_id: str, fetch_raw_scores: RawScoresFetcher) -> AnalyticsRecord:
        """
        Re-derive and persist analytics unconditionally.

        Operator path: unlike get_analytics, a failed upsert is raised.
        """
        raw = await fetch_raw_scores(player_id)
        record = derive(raw)
        await self.store.upsert(record)
        await self._to_fast_cache(record)
        logger.info("Recomputed analytics for player %s", player_id)
        return record
