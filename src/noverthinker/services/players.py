"""
Player service -- profile lookups, radar feed and agent discovery.

Encapsulates all raw SQL for player queries, using psycopg.sql.Identifier
for the sort column (taken from a whitelist only). Routers call this
instead of building SQL.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

from psycopg import sql

from ..analytics.models import RawPlayerScores
from ..cache import TTL_PLAYER_DETAIL, FastCache, Hit, player_key
from ..core.types import (
    DEFAULT_SORT_COLUMN,
    PLAYER_DISCOVER_SORT_COLUMNS,
    PLAYER_LIST_SORT_COLUMNS,
    SortOrder,
)
from ..errors import PlayerNotFoundError

if TYPE_CHECKING:
    from ..pg_async import AsyncPostgresDB

logger = logging.getLogger(__name__)

_PROFILE_JOINS = sql.SQL("""
    FROM player_profiles pp
    JOIN users u ON u.id = pp.user_id
    LEFT JOIN team_players tp ON tp.player_id = pp.id AND tp.is_active = true
    LEFT JOIN teams t ON t.id = tp.team_id
    LEFT JOIN clubs c ON c.id = t.club_id
""")

_LIST_COLUMNS = sql.SQL("""
    pp.id, pp.user_id, u.first_name, u.last_name, u.avatar_url,
    pp.date_of_birth, pp.age_group, pp.nationality, pp.height_cm,
    pp.primary_position, pp.secondary_position,
    pp.nova_score, pp.nova_score_trend, pp.stars, pp.star_type,
    pp.discipline_score, pp.total_matches, pp.total_goals, pp.total_assists,
    pp.created_at,
    t.name AS team_name, c.name AS club_name, c.logo_url AS club_logo
""")

_DISCOVER_COLUMNS = sql.SQL("""
    pp.id, u.first_name, u.last_name, u.avatar_url,
    pp.date_of_birth, pp.age_group, pp.nationality, pp.height_cm, pp.weight_kg,
    pp.preferred_foot, pp.primary_position, pp.secondary_position,
    pp.nova_score, pp.nova_score_trend,
    pp.match_score, pp.task_score, pp.video_score, pp.physical_score,
    pp.stars, pp.star_type, pp.discipline_score,
    pp.total_matches, pp.total_goals, pp.total_assists,
    t.name AS team_name, c.name AS club_name, c.logo_url AS club_logo
""")


# =============================================================================
# Filters
# =============================================================================


@dataclass
class PlayerListFilters:
    """Radar feed filters."""

    position: Optional[str] = None
    age_group: Optional[str] = None
    min_nova_score: Optional[float] = None
    max_nova_score: Optional[float] = None
    search: Optional[str] = None
    sort_by: str = DEFAULT_SORT_COLUMN
    sort_order: SortOrder = SortOrder.DESC


@dataclass
class DiscoverFilters:
    """Agent discovery filters. List fields match any of their values."""

    positions: Optional[list[str]] = None
    age_groups: Optional[list[str]] = None
    clubs: Optional[list[str]] = None
    min_nova_score: Optional[float] = None
    max_nova_score: Optional[float] = None
    min_stars: Optional[float] = None
    nationality: Optional[str] = None
    preferred_foot: Optional[str] = None
    min_height: Optional[int] = None
    max_height: Optional[int] = None
    sort_by: str = DEFAULT_SORT_COLUMN
    sort_order: SortOrder = SortOrder.DESC

    def echo(self) -> dict[str, Any]:
        """Filters as sent back to the client."""
        data = asdict(self)
        data.pop("sort_by")
        data.pop("sort_order")
        return {
            "positions": data["positions"],
            "ageGroups": data["age_groups"],
            "clubs": data["clubs"],
            "minNovaScore": data["min_nova_score"],
            "maxNovaScore": data["max_nova_score"],
            "minStars": data["min_stars"],
            "nationality": data["nationality"],
            "preferredFoot": data["preferred_foot"],
            "minHeight": data["min_height"],
            "maxHeight": data["max_height"],
        }


# =============================================================================
# Helpers
# =============================================================================


def _jsonable(row: dict[str, Any]) -> dict[str, Any]:
    """Convert DECIMAL columns to float so responses carry numbers."""
    return {k: float(v) if isinstance(v, Decimal) else v for k, v in row.items()}


def _order_by(sort_by: str, sort_order: SortOrder, allowed: frozenset[str], alias: str) -> sql.Composed:
    column = sort_by if sort_by in allowed else DEFAULT_SORT_COLUMN
    direction = sql.SQL("ASC") if sort_order == SortOrder.ASC else sql.SQL("DESC")
    return sql.SQL("ORDER BY {col} {dir}").format(
        col=sql.Identifier(alias, column),
        dir=direction,
    )


def _where(conditions: list[sql.Composable]) -> sql.Composed:
    return sql.SQL("WHERE ") + sql.SQL(" AND ").join(conditions)


def _pagination(page: int, limit: int, total: int) -> dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": -(-total // limit) if limit else 0,
    }


# =============================================================================
# Queries
# =============================================================================


async def fetch_raw_scores(db: "AsyncPostgresDB", player_id: str) -> RawPlayerScores:
    """
    Load the raw scores the analytics deriver works from.

    Raises:
        PlayerNotFoundError: if no such player exists
    """
    row = await db.fetchone(
        """
        SELECT id, nova_score, discipline_score,
               match_score, task_score, video_score, physical_score
        FROM player_profiles
        WHERE id = %s::uuid
        """,
        (player_id,),
    )
    if not row:
        raise PlayerNotFoundError(player_id)
    return RawPlayerScores.from_row(row)


async def list_players(
    db: "AsyncPostgresDB",
    filters: PlayerListFilters,
    page: int = 1,
    limit: int = 20,
) -> dict[str, Any]:
    """Public radar feed with optional filters and pagination."""
    conditions: list[sql.Composable] = [sql.SQL("pp.profile_visibility = 'public'")]
    params: list[Any] = []

    if filters.position:
        conditions.append(sql.SQL("(pp.primary_position = %s OR pp.secondary_position = %s)"))
        params.extend([filters.position, filters.position])
    if filters.age_group:
        conditions.append(sql.SQL("pp.age_group = %s"))
        params.append(filters.age_group)
    if filters.min_nova_score is not None:
        conditions.append(sql.SQL("pp.nova_score >= %s"))
        params.append(filters.min_nova_score)
    if filters.max_nova_score is not None:
        conditions.append(sql.SQL("pp.nova_score <= %s"))
        params.append(filters.max_nova_score)
    if filters.search:
        pattern = f"%{filters.search}%"
        conditions.append(
            sql.SQL("(u.first_name ILIKE %s OR u.last_name ILIKE %s OR c.name ILIKE %s)")
        )
        params.extend([pattern, pattern, pattern])

    where = _where(conditions)

    count_query = sql.SQL("SELECT COUNT(*) AS total {joins} {where}").format(
        joins=_PROFILE_JOINS, where=where
    )
    total = int(await db.fetchval(count_query, tuple(params), column="total") or 0)

    query = sql.SQL("SELECT {cols} {joins} {where} {order} LIMIT %s OFFSET %s").format(
        cols=_LIST_COLUMNS,
        joins=_PROFILE_JOINS,
        where=where,
        order=_order_by(filters.sort_by, filters.sort_order, PLAYER_LIST_SORT_COLUMNS, "pp"),
    )
    rows = await db.fetchall(query, (*params, limit, (page - 1) * limit))

    return {
        "players": [_jsonable(r) for r in rows],
        "pagination": _pagination(page, limit, total),
    }


async def discover_players(
    db: "AsyncPostgresDB",
    filters: DiscoverFilters,
    page: int = 1,
    limit: int = 20,
) -> dict[str, Any]:
    """Advanced agent search across positions, age groups, clubs and physicals."""
    conditions: list[sql.Composable] = [sql.SQL("pp.profile_visibility = 'public'")]
    params: list[Any] = []

    if filters.positions:
        conditions.append(
            sql.SQL("(pp.primary_position = ANY(%s) OR pp.secondary_position = ANY(%s))")
        )
        params.extend([filters.positions, filters.positions])
    if filters.age_groups:
        conditions.append(sql.SQL("pp.age_group = ANY(%s)"))
        params.append(filters.age_groups)
    if filters.min_nova_score is not None:
        conditions.append(sql.SQL("pp.nova_score >= %s"))
        params.append(filters.min_nova_score)
    if filters.max_nova_score is not None:
        conditions.append(sql.SQL("pp.nova_score <= %s"))
        params.append(filters.max_nova_score)
    if filters.min_stars is not None:
        conditions.append(sql.SQL("pp.stars >= %s"))
        params.append(filters.min_stars)
    if filters.nationality:
        conditions.append(sql.SQL("pp.nationality ILIKE %s"))
        params.append(f"%{filters.nationality}%")
    if filters.preferred_foot:
        conditions.append(sql.SQL("pp.preferred_foot = %s"))
        params.append(filters.preferred_foot)
    if filters.min_height is not None:
        conditions.append(sql.SQL("pp.height_cm >= %s"))
        params.append(filters.min_height)
    if filters.max_height is not None:
        conditions.append(sql.SQL("pp.height_cm <= %s"))
        params.append(filters.max_height)
    if filters.clubs:
        conditions.append(sql.SQL("c.id = ANY(%s::uuid[])"))
        params.append(filters.clubs)

    where = _where(conditions)

    count_query = sql.SQL("SELECT COUNT(DISTINCT pp.id) AS total {joins} {where}").format(
        joins=_PROFILE_JOINS, where=where
    )
    total = int(await db.fetchval(count_query, tuple(params), column="total") or 0)

    # DISTINCT ON collapses players on several active teams; sort happens outside it
    query = sql.SQL("""
        SELECT * FROM (
            SELECT DISTINCT ON (pp.id) {cols} {joins} {where} ORDER BY pp.id
        ) p
        {order}
        LIMIT %s OFFSET %s
    """).format(
        cols=_DISCOVER_COLUMNS,
        joins=_PROFILE_JOINS,
        where=where,
        order=_order_by(filters.sort_by, filters.sort_order, PLAYER_DISCOVER_SORT_COLUMNS, "p"),
    )
    rows = await db.fetchall(query, (*params, limit, (page - 1) * limit))

    return {
        "players": [_jsonable(r) for r in rows],
        "pagination": _pagination(page, limit, total),
        "filters": filters.echo(),
    }


async def get_player_detail(db: "AsyncPostgresDB", player_id: str) -> Optional[dict[str, Any]]:
    """
    Full player profile with attributes, team/club, top videos and NovaScore history.

    Returns:
        Detail dict, or None if the player does not exist
    """
    row = await db.fetchone(
        """
        SELECT
            pp.*,
            u.first_name, u.last_name, u.avatar_url, u.email,
            pa.pace, pa.shooting, pa.passing, pa.dribbling, pa.defending, pa.physical,
            pa.aggression, pa.composure, pa.concentration,
            t.id AS team_id, t.name AS team_name, t.age_group AS team_age_group,
            c.id AS club_id, c.name AS club_name, c.logo_url AS club_logo, c.city AS club_city
        FROM player_profiles pp
        JOIN users u ON u.id = pp.user_id
        LEFT JOIN player_attributes pa ON pa.player_id = pp.id
        LEFT JOIN team_players tp ON tp.player_id = pp.id AND tp.is_active = true
        LEFT JOIN teams t ON t.id = tp.team_id
        LEFT JOIN clubs c ON c.id = t.club_id
        WHERE pp.id = %s::uuid
        """,
        (player_id,),
    )
    if not row:
        return None

    player = _jsonable(row)

    attribute_names = (
        "pace", "shooting", "passing", "dribbling", "defending", "physical",
        "aggression", "composure", "concentration",
    )
    player["attributes"] = {name: player.get(name) for name in attribute_names}

    player["team"] = (
        {"id": player["team_id"], "name": player["team_name"], "ageGroup": player["team_age_group"]}
        if player.get("team_id")
        else None
    )
    player["club"] = (
        {
            "id": player["club_id"],
            "name": player["club_name"],
            "logo": player["club_logo"],
            "city": player["club_city"],
        }
        if player.get("club_id")
        else None
    )

    videos = await db.fetchall(
        """
        SELECT v.id, v.title, v.video_url, v.thumbnail_url, v.duration_seconds,
               v.category, v.impact_level, v.views_count, v.likes_count
        FROM top_player_videos tpv
        JOIN videos v ON v.id = tpv.video_id
        WHERE tpv.player_id = %s::uuid
        ORDER BY tpv.position ASC
        LIMIT 3
        """,
        (player_id,),
    )

    history = await db.fetchall(
        """
        SELECT recorded_date, nova_score, match_score, task_score, video_score, physical_score
        FROM nova_score_history
        WHERE player_id = %s::uuid
        ORDER BY recorded_date DESC
        LIMIT 30
        """,
        (player_id,),
    )

    return {
        "player": player,
        "topVideos": [_jsonable(v) for v in videos],
        "novaScoreHistory": [_jsonable(h) for h in history],
    }


async def get_cached_player_detail(
    db: "AsyncPostgresDB",
    cache: FastCache,
    player_id: str,
) -> tuple[Optional[dict[str, Any]], bool]:
    """
    Player detail behind the fast cache (5 minute TTL, no durable copy).

    Returns:
        (detail or None, served_from_cache)
    """
    key = player_key(player_id)
    result = await cache.get(key)
    if isinstance(result, Hit):
        return result.value, True

    detail = await get_player_detail(db, player_id)
    if detail is not None:
        await cache.set(key, detail, TTL_PLAYER_DETAIL)
    return detail, False


async def get_recent_matches(db: "AsyncPostgresDB", player_id: str, limit: int = 10) -> list[dict[str, Any]]:
    """Most recent match performances for a player, newest first."""
    rows = await db.fetchall(
        """
        SELECT m.match_date, m.opponent_name, m.team_score, m.opponent_score, m.result,
               mp.minutes_played, mp.goals, mp.assists, mp.performance_credits
        FROM match_performances mp
        JOIN matches m ON m.id = mp.match_id
        WHERE mp.player_id = %s::uuid
        ORDER BY m.match_date DESC
        LIMIT %s
        """,
        (player_id, limit),
    )
    return [_jsonable(r) for r in rows]


async def get_comparison_rows(db: "AsyncPostgresDB", player_ids: list[str]) -> list[dict[str, Any]]:
    """Profile, attribute and team rows for the players being compared (store order)."""
    return await db.fetchall(
        """
        SELECT
            pp.*,
            u.first_name, u.last_name, u.avatar_url,
            pa.pace, pa.shooting, pa.passing, pa.dribbling, pa.defending, pa.physical,
            t.name AS team_name, c.name AS club_name, c.logo_url AS club_logo
        FROM player_profiles pp
        JOIN users u ON u.id = pp.user_id
        LEFT JOIN player_attributes pa ON pa.player_id = pp.id
        LEFT JOIN team_players tp ON tp.player_id = pp.id AND tp.is_active = true
        LEFT JOIN teams t ON t.id = tp.team_id
        LEFT JOIN clubs c ON c.id = t.club_id
        WHERE pp.id = ANY(%s::uuid[])
        """,
        (player_ids,),
    )
