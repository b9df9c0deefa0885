"""Side-by-side comparison of 2-4 players."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence

from ..core.types import MAX_COMPARE_PLAYERS, MIN_COMPARE_PLAYERS, OVERALL_ATTRIBUTES
from ..errors import InvalidArgumentError
from .coordinator import AnalyticsCoordinator
from .deriver import round_int
from .models import AnalyticsRecord

logger = logging.getLogger(__name__)

PlayerRowsFetcher = Callable[[list[str]], Awaitable[list[dict[str, Any]]]]


def overall_rating(row: dict[str, Any]) -> Optional[int]:
    """Mean of the six core attributes, or None if any is missing."""
    values = [row.get(name) for name in OVERALL_ATTRIBUTES]
    if any(v is None for v in values):
        return None
    return round_int(sum(float(v) for v in values) / len(values))


def _as_number(value: Any) -> Any:
    # DECIMAL columns arrive as decimal.Decimal
    if value is None or isinstance(value, (int, float)):
        return value
    return float(value)


def _panel(record: Optional[AnalyticsRecord], name: str) -> Optional[dict[str, Any]]:
    if record is None:
        return None
    panel = getattr(record, name)
    return {"score": panel.score, "level": panel.level}


def build_comparison_view(row: dict[str, Any], record: Optional[AnalyticsRecord]) -> dict[str, Any]:
    return {
        "id": str(row["id"]),
        "firstName": row.get("first_name"),
        "lastName": row.get("last_name"),
        "avatarUrl": row.get("avatar_url"),
        "position": row.get("primary_position"),
        "ageGroup": row.get("age_group"),
        "team": row.get("team_name"),
        "club": row.get("club_name"),
        "clubLogo": row.get("club_logo"),
        "novaScore": _as_number(row.get("nova_score")),
        "trend": _as_number(row.get("nova_score_trend")),
        "stars": _as_number(row.get("stars")),
        "starType": row.get("star_type"),
        "overall": overall_rating(row),
        "performanceBreakdown": {
            "matchScore": _as_number(row.get("match_score")),
            "taskScore": _as_number(row.get("task_score")),
            "videoScore": _as_number(row.get("video_score")),
            "physicalScore": _as_number(row.get("physical_score")),
        },
        "attributes": {name: row.get(name) for name in OVERALL_ATTRIBUTES},
        "consistency": _panel(record, "consistency"),
        "workRate": _panel(record, "work_rate"),
        "risk": _panel(record, "risk"),
    }


class ComparisonAggregator:
    """
    Assembles comparison views for a small set of players.

    Analytics come from the durable store only. A player without stored
    analytics gets null panels; nothing is derived on this path.
    """

    def __init__(self, coordinator: AnalyticsCoordinator, fetch_players: PlayerRowsFetcher):
        self.coordinator = coordinator
        self.fetch_players = fetch_players

    async def compare(self, player_ids: Sequence[str]) -> list[dict[str, Any]]:
        """
        Compare players in the caller's order.

        Raises:
            InvalidArgumentError: fewer than 2 or more than 4 ids, or fewer
                than 2 distinct players found
            StoreUnavailableError: durable store unreachable
        """
        if (
            not isinstance(player_ids, (list, tuple))
            or not MIN_COMPARE_PLAYERS <= len(player_ids) <= MAX_COMPARE_PLAYERS
        ):
            raise InvalidArgumentError(
                f"Please provide {MIN_COMPARE_PLAYERS}-{MAX_COMPARE_PLAYERS} player IDs to compare"
            )

        requested = list(dict.fromkeys(str(pid) for pid in player_ids))
        rows = await self.fetch_players(requested)
        by_id = {str(row["id"]): row for row in rows}

        resolved = [pid for pid in requested if pid in by_id]
        if len(resolved) < MIN_COMPARE_PLAYERS:
            raise InvalidArgumentError("Could not find enough players to compare")

        records = await asyncio.gather(*(self.coordinator.get_stored(pid) for pid in resolved))

        return [
            build_comparison_view(by_id[pid], record)
            for pid, record in zip(resolved, records)
        ]
