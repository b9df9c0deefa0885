"""
Database schema management.

Applies the SQL files in ``migrations/`` in filename order and records
each one in ``schema_migrations`` so reruns are no-ops.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .pg_async import AsyncPostgresDB

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"

_MIGRATIONS_TABLE = """
    CREATE TABLE IF NOT EXISTS schema_migrations (
        name VARCHAR(255) PRIMARY KEY,
        applied_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
    )
"""


def get_migration_files() -> list[Path]:
    """Get all SQL migration files in order."""
    if not MIGRATIONS_DIR.exists():
        return []
    return sorted(MIGRATIONS_DIR.glob("*.sql"))


async def get_applied_migrations(db: "AsyncPostgresDB") -> set[str]:
    rows = await db.fetchall("SELECT name FROM schema_migrations")
    return {row["name"] for row in rows}


async def init_database(db: "AsyncPostgresDB", force: bool = False) -> int:
    """
    Run all pending migrations.

    Args:
        db: Database connection
        force: If True, run all migrations even if already applied

    Returns:
        Number of migrations applied
    """
    await db.execute(_MIGRATIONS_TABLE)

    migration_files = get_migration_files()
    if not migration_files:
        logger.warning("No migration files found in %s", MIGRATIONS_DIR)
        return 0

    applied_names = set() if force else await get_applied_migrations(db)
    applied = 0

    for migration_file in migration_files:
        name = migration_file.stem
        if name in applied_names:
            logger.debug("Skipping already applied migration: %s", name)
            continue

        logger.info("Applying migration: %s", name)
        await db.execute(migration_file.read_text())
        await db.execute(
            """
            INSERT INTO schema_migrations (name) VALUES (%s)
            ON CONFLICT (name) DO UPDATE SET applied_at = NOW()
            """,
            (name,),
        )
        applied += 1

    logger.info("Applied %d migration(s)", applied)
    return applied
