"""
Durable analytics store.

The store is authoritative: a row here is never considered stale by the
read path. ``upsert`` has last-write-wins semantics per player, so
concurrent derivations of the same player are safe without coordination.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

import psycopg
from psycopg.types.json import Jsonb

from ..errors import StoreUnavailableError
from .models import AnalyticsRecord

if TYPE_CHECKING:
    from ..pg_async import AsyncPostgresDB

logger = logging.getLogger(__name__)

# Reads: connection loss, pool checkout timeouts and statement timeouts.
# Writes wrap every psycopg.Error, including constraint violations such as a
# player deleted between deriving and persisting.
_UNAVAILABLE_ERRORS = (psycopg.OperationalError, psycopg.InterfaceError)

_SELECT_ANALYTICS = """
    SELECT player_id, performance_data,
           consistency_score, consistency_level, consistency_trend,
           work_rate_score, work_rate_level, work_rate_breakdown,
           risk_score, risk_level, risk_factors,
           last_calculated_at
    FROM agent_analytics_cache
    WHERE player_id = %s
"""

_UPSERT_ANALYTICS = """
    INSERT INTO agent_analytics_cache
        (player_id, performance_data, consistency_score, consistency_level, consistency_trend,
         work_rate_score, work_rate_level, work_rate_breakdown, risk_score, risk_level,
         risk_factors, last_calculated_at)
    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
    ON CONFLICT (player_id) DO UPDATE SET
        performance_data = EXCLUDED.performance_data,
        consistency_score = EXCLUDED.consistency_score,
        consistency_level = EXCLUDED.consistency_level,
        consistency_trend = EXCLUDED.consistency_trend,
        work_rate_score = EXCLUDED.work_rate_score,
        work_rate_level = EXCLUDED.work_rate_level,
        work_rate_breakdown = EXCLUDED.work_rate_breakdown,
        risk_score = EXCLUDED.risk_score,
        risk_level = EXCLUDED.risk_level,
        risk_factors = EXCLUDED.risk_factors,
        last_calculated_at = EXCLUDED.last_calculated_at,
        updated_at = NOW()
"""


class AnalyticsStore(ABC):
    """Abstract interface for persisted analytics records."""

    @abstractmethod
    async def get(self, player_id: str) -> Optional[AnalyticsRecord]:
        """
        Find the stored record for a player.

        Raises:
            StoreUnavailableError: if the store cannot be reached
        """
        ...

    @abstractmethod
    async def upsert(self, record: AnalyticsRecord) -> None:
        """
        Insert or replace the record for ``record.player_id`` (last write wins).

        Raises:
            StoreUnavailableError: if the write fails for any database reason
        """
        ...


class PostgresAnalyticsStore(AnalyticsStore):
    """AnalyticsStore backed by the ``agent_analytics_cache`` table."""

    def __init__(self, db: "AsyncPostgresDB"):
        self.db = db

    async def get(self, player_id: str) -> Optional[AnalyticsRecord]:
        try:
            row = await self.db.fetchone(_SELECT_ANALYTICS, (player_id,))
        except _UNAVAILABLE_ERRORS as e:
            raise StoreUnavailableError("read", player_id, e) from e
        return AnalyticsRecord.from_row(row) if row else None

    async def upsert(self, record: AnalyticsRecord) -> None:
        params = (
            record.player_id,
            Jsonb(record.performance.to_dict()),
            record.consistency.score,
            record.consistency.level,
            record.consistency.trend,
            record.work_rate.score,
            record.work_rate.level,
            Jsonb(record.work_rate.breakdown.to_dict()),
            record.risk.score,
            record.risk.level,
            Jsonb(record.risk.factors.to_dict()),
            record.last_calculated_at,
        )
        try:
            await self.db.execute(_UPSERT_ANALYTICS, params)
        except psycopg.Error as e:
            raise StoreUnavailableError("write", record.player_id, e) from e
        logger.debug("Upserted analytics for player %s", record.player_id)
