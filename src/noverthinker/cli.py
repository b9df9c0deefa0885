#!/usr/bin/env python3
"""
Command-line interface for the NoverThinker analytics backend.

Usage:
    noverthinker init                          # Apply database migrations
    noverthinker recompute <player_id> [...]   # Re-derive and persist analytics
    noverthinker show <player_id>              # Print analytics (derives on miss)
    noverthinker serve --port 3000             # Run the API server
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import uuid
from functools import partial
from typing import Optional

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("noverthinker.cli")


def player_id_arg(value: str) -> str:
    """argparse type: reject ids that are not UUIDs before they reach SQL."""
    try:
        uuid.UUID(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid player id (expected a UUID): {value!r}")
    return value


async def _open_clients():
    from .cache import FastCache
    from .core.config import get_settings
    from .pg_async import AsyncPostgresDB

    settings = get_settings()
    db = AsyncPostgresDB.from_settings(settings)
    await db.initialize()
    cache = FastCache.from_settings(settings)
    await cache.connect()
    return db, cache


async def _init(force: bool) -> int:
    from .core.config import get_settings
    from .pg_async import AsyncPostgresDB
    from .schema import init_database

    db = AsyncPostgresDB.from_settings(get_settings())
    try:
        logger.info("Initializing analytics schema...")
        applied = await init_database(db, force=force)
        logger.info("Database initialized (%d migration(s) applied)", applied)
        return 0
    finally:
        await db.close()


async def _recompute(player_ids: list[str]) -> int:
    from .analytics import AnalyticsCoordinator, PostgresAnalyticsStore
    from .errors import NoverThinkerError
    from .services.players import fetch_raw_scores

    db, cache = await _open_clients()
    coordinator = AnalyticsCoordinator(PostgresAnalyticsStore(db), cache)
    failures = 0
    try:
        for player_id in player_ids:
            try:
                record = await coordinator.recompute(player_id, partial(fetch_raw_scores, db))
            except NoverThinkerError as e:
                logger.error("Recompute failed for %s: %s", player_id, e)
                failures += 1
                continue
            print(
                f"{player_id}: consistency={record.consistency.score} ({record.consistency.level}) "
                f"workRate={record.work_rate.score} ({record.work_rate.level}) "
                f"risk={record.risk.score} ({record.risk.level})"
            )
    finally:
        await cache.close()
        await db.close()

    print(f"\nRecomputed {len(player_ids) - failures}/{len(player_ids)} players")
    return 1 if failures else 0


async def _show(player_id: str) -> int:
    from .analytics import AnalyticsCoordinator, PostgresAnalyticsStore
    from .services.players import fetch_raw_scores

    db, cache = await _open_clients()
    try:
        coordinator = AnalyticsCoordinator(PostgresAnalyticsStore(db), cache)
        record = await coordinator.get_analytics(player_id, partial(fetch_raw_scores, db))
    finally:
        await cache.close()
        await db.close()

    print(json.dumps(record.to_dict(), indent=2))
    return 0


def cmd_init(args: argparse.Namespace) -> int:
    """Apply pending migrations."""
    try:
        return asyncio.run(_init(args.force))
    except Exception as e:
        logger.error("Failed to initialize database: %s", e)
        return 1


def cmd_recompute(args: argparse.Namespace) -> int:
    """Explicitly re-derive analytics for the given players."""
    return asyncio.run(_recompute(args.player_ids))


def cmd_show(args: argparse.Namespace) -> int:
    """Print a player's analytics record."""
    from .errors import NoverThinkerError

    try:
        return asyncio.run(_show(args.player_id))
    except NoverThinkerError as e:
        logger.error("%s", e)
        return 1


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the API with uvicorn."""
    import uvicorn

    from .core.config import get_settings

    settings = get_settings()
    uvicorn.run(
        "noverthinker.api.main:app",
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
        reload=args.reload,
        log_level="debug" if settings.debug else "info",
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="noverthinker",
        description="NoverThinker analytics backend",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_init = subparsers.add_parser("init", help="Apply database migrations")
    p_init.add_argument("--force", action="store_true", help="Re-run already applied migrations")
    p_init.set_defaults(func=cmd_init)

    p_recompute = subparsers.add_parser("recompute", help="Re-derive analytics for players")
    p_recompute.add_argument("player_ids", nargs="+", type=player_id_arg, metavar="PLAYER_ID")
    p_recompute.set_defaults(func=cmd_recompute)

    p_show = subparsers.add_parser("show", help="Show analytics for a player")
    p_show.add_argument("player_id", type=player_id_arg, metavar="PLAYER_ID")
    p_show.set_defaults(func=cmd_show)

    p_serve = subparsers.add_parser("serve", help="Run the API server")
    p_serve.add_argument("--host", default=None)
    p_serve.add_argument("--port", type=int, default=None)
    p_serve.add_argument("--reload", action="store_true")
    p_serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
