"""
NoverThinker scouting backend.

Player radar/discovery endpoints and the agent analytics pipeline:
raw NovaScore and discipline scores are derived into consistency,
work rate and risk panels, persisted in ``agent_analytics_cache`` and
served through an optional Redis fast cache.

Usage:
    from noverthinker import AnalyticsCoordinator, FastCache, PostgresAnalyticsStore

    coordinator = AnalyticsCoordinator(PostgresAnalyticsStore(db), cache)
    record = await coordinator.get_analytics(player_id, fetch_raw_scores)
"""

from .analytics import (
    AnalyticsCoordinator,
    AnalyticsRecord,
    AnalyticsStore,
    ComparisonAggregator,
    PostgresAnalyticsStore,
    RawPlayerScores,
    derive,
)
from .cache import FastCache, Hit, Miss, Unavailable
from .errors import (
    InvalidArgumentError,
    NoverThinkerError,
    PlayerNotFoundError,
    StoreUnavailableError,
)
from .pg_async import AsyncPostgresDB

__version__ = "1.0.0"

__all__ = [
    # Analytics
    "AnalyticsCoordinator",
    "AnalyticsRecord",
    "AnalyticsStore",
    "ComparisonAggregator",
    "PostgresAnalyticsStore",
    "RawPlayerScores",
    "derive",
    # Cache
    "FastCache",
    "Hit",
    "Miss",
    "Unavailable",
    # Database
    "AsyncPostgresDB",
    # Errors
    "InvalidArgumentError",
    "NoverThinkerError",
    "PlayerNotFoundError",
    "StoreUnavailableError",
]
