"""
Player analytics pipeline.

Derives consistency, work rate and risk panels from a player's raw scores
and serves them through the fast cache and the durable analytics store.

Usage:
    from noverthinker.analytics import AnalyticsCoordinator, PostgresAnalyticsStore

    coordinator = AnalyticsCoordinator(PostgresAnalyticsStore(db), cache)
    record = await coordinator.get_analytics(player_id, fetch_raw_scores)
"""

from .comparison import ComparisonAggregator, overall_rating
from .coordinator import AnalyticsCoordinator
from .deriver import derive
from .models import AnalyticsRecord, RawPlayerScores
from .store import AnalyticsStore, PostgresAnalyticsStore

__all__ = [
    "AnalyticsCoordinator",
    "AnalyticsRecord",
    "AnalyticsStore",
    "ComparisonAggregator",
    "PostgresAnalyticsStore",
    "RawPlayerScores",
    "derive",
    "overall_rating",
]
