"""
Player router -- radar feed, discovery, profiles, analytics and comparison.

Endpoints:
- GET  /                      - Public radar feed (filters + pagination)
- GET  /discover              - Advanced search for agents
- GET  /{player_id}           - Player profile (5 minute fast cache)
- GET  /{player_id}/analytics - Agent analytics panels
- POST /compare               - Side-by-side comparison of 2-4 players

Authentication and role checks happen upstream of this service.
"""

import logging
from datetime import datetime, timezone
from typing import Annotated, Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field

from ...analytics.models import RawPlayerScores
from ...core.types import AgeGroup, PreferredFoot, SortOrder
from ...services import players as player_service
from ..dependencies import ContextDependency
from ..errors import NotFoundError
from ..pagination import PaginationParams

logger = logging.getLogger(__name__)

router = APIRouter()


class CompareRequest(BaseModel):
    """Body of POST /compare. Cardinality is checked by the aggregator."""

    player_ids: Optional[list[UUID]] = Field(default=None, alias="playerIds")


def _split(value: Optional[str]) -> Optional[list[str]]:
    """Parse a comma-separated query value."""
    if not value:
        return None
    items = [v.strip() for v in value.split(",") if v.strip()]
    return items or None


@router.get("")
async def list_players(
    ctx: ContextDependency,
    pagination: Annotated[PaginationParams, Depends()],
    position: Optional[str] = None,
    age_group: Annotated[Optional[AgeGroup], Query(alias="ageGroup")] = None,
    min_nova_score: Annotated[Optional[float], Query(alias="minNovaScore", ge=0, le=100)] = None,
    max_nova_score: Annotated[Optional[float], Query(alias="maxNovaScore", ge=0, le=100)] = None,
    sort_by: Annotated[str, Query(alias="sortBy")] = "nova_score",
    sort_order: Annotated[SortOrder, Query(alias="sortOrder")] = SortOrder.DESC,
    search: Optional[str] = None,
) -> dict[str, Any]:
    """Get players for the radar feed."""
    filters = player_service.PlayerListFilters(
        position=position,
        age_group=age_group.value if age_group else None,
        min_nova_score=min_nova_score,
        max_nova_score=max_nova_score,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    data = await player_service.list_players(ctx.db, filters, pagination.page, pagination.limit)
    return {"success": True, "data": data}


@router.get("/discover")
async def discover_players(
    ctx: ContextDependency,
    pagination: Annotated[PaginationParams, Depends()],
    positions: Annotated[Optional[str], Query(description="Comma-separated, e.g. ST,CAM,RW")] = None,
    age_groups: Annotated[Optional[str], Query(alias="ageGroups", description="Comma-separated, e.g. U17,U19")] = None,
    min_nova_score: Annotated[Optional[float], Query(alias="minNovaScore", ge=0, le=100)] = None,
    max_nova_score: Annotated[Optional[float], Query(alias="maxNovaScore", ge=0, le=100)] = None,
    min_stars: Annotated[Optional[float], Query(alias="minStars", ge=1, le=5)] = None,
    clubs: Annotated[Optional[str], Query(description="Comma-separated club IDs")] = None,
    nationality: Optional[str] = None,
    preferred_foot: Annotated[Optional[PreferredFoot], Query(alias="preferredFoot")] = None,
    min_height: Annotated[Optional[int], Query(alias="minHeight", ge=0)] = None,
    max_height: Annotated[Optional[int], Query(alias="maxHeight", ge=0)] = None,
    sort_by: Annotated[str, Query(alias="sortBy")] = "nova_score",
    sort_order: Annotated[SortOrder, Query(alias="sortOrder")] = SortOrder.DESC,
) -> dict[str, Any]:
    """Advanced player search for agents."""
    filters = player_service.DiscoverFilters(
        positions=_split(positions),
        age_groups=_split(age_groups),
        clubs=_split(clubs),
        min_nova_score=min_nova_score,
        max_nova_score=max_nova_score,
        min_stars=min_stars,
        nationality=nationality,
        preferred_foot=preferred_foot.value if preferred_foot else None,
        min_height=min_height,
        max_height=max_height,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    data = await player_service.discover_players(ctx.db, filters, pagination.page, pagination.limit)
    return {"success": True, "data": data}


@router.post("/compare")
async def compare_players(body: CompareRequest, ctx: ContextDependency) -> dict[str, Any]:
    """
    Compare 2-4 players side by side.

    Analytics panels are read from the durable store only and are null
    for players whose analytics were never computed.
    """
    player_ids = [str(pid) for pid in body.player_ids or []]
    players = await ctx.comparison.compare(player_ids)
    return {
        "success": True,
        "data": {
            "players": players,
            "comparedAt": datetime.now(tz=timezone.utc).isoformat(),
        },
    }


@router.get("/{player_id}")
async def get_player(player_id: UUID, ctx: ContextDependency, response: Response) -> dict[str, Any]:
    """Get a single player with attributes, team, top videos and NovaScore history."""
    detail, cached = await player_service.get_cached_player_detail(ctx.db, ctx.cache, str(player_id))
    if detail is None:
        raise NotFoundError("Player", player_id)

    response.headers["X-Cache"] = "HIT" if cached else "MISS"
    result: dict[str, Any] = {"success": True, "data": detail}
    if cached:
        result["cached"] = True
    return result


@router.get("/{player_id}/analytics")
async def get_player_analytics(player_id: UUID, ctx: ContextDependency) -> dict[str, Any]:
    """
    Get agent analytics panels for a player.

    Responds 404 for unknown players before touching the analytics caches.
    """
    pid = str(player_id)
    raw = await player_service.fetch_raw_scores(ctx.db, pid)

    async def current_scores(_: str) -> RawPlayerScores:
        return raw

    record = await ctx.coordinator.get_analytics(pid, current_scores)
    recent_matches = await player_service.get_recent_matches(ctx.db, pid)

    return {
        "success": True,
        "data": {
            "playerId": pid,
            "novaScore": raw.nova_score,
            "performance": record.performance.to_dict(),
            "consistency": record.consistency.to_dict(),
            "workRate": record.work_rate.to_dict(),
            "risk": record.risk.to_dict(),
            "recentMatches": recent_matches,
            "lastCalculated": record.last_calculated_at.isoformat(),
        },
    }
