"""
Async PostgreSQL connection manager.

Uses psycopg3's native async support for non-blocking database operations,
allowing FastAPI to handle more concurrent requests. Every pooled
connection carries a server-side statement_timeout and pool checkouts
are bounded by ``timeout`` so a stuck database fails requests instead of
hanging them.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Union

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from .core.config import Settings

Query = Union[str, sql.Composable]


class AsyncPostgresDB:
    """
    Async PostgreSQL database connection manager.

    Provides non-blocking database operations using psycopg3's async API
    with connection pooling for optimal performance.
    """

    def __init__(
        self,
        connection_string: str,
        min_pool_size: int = 2,
        max_pool_size: int = 10,
        timeout: float = 30.0,
        statement_timeout_ms: int = 0,
    ):
        """
        Initialize the async PostgreSQL connection manager.

        Args:
            connection_string: PostgreSQL connection URL.
            min_pool_size: Minimum connections to keep in pool.
            max_pool_size: Maximum connections in pool.
            timeout: Seconds to wait for a pooled connection.
            statement_timeout_ms: Per-statement server timeout (0 disables).
        """
        if not connection_string:
            raise ValueError("DATABASE_URL environment variable required or connection_string must be provided")

        self.connection_string = connection_string
        self._min_pool_size = min_pool_size
        self._max_pool_size = max(max_pool_size, min_pool_size)
        self._timeout = timeout
        self._statement_timeout_ms = statement_timeout_ms
        self._pool: Optional[AsyncConnectionPool] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> AsyncPostgresDB:
        return cls(
            settings.db_url,
            min_pool_size=settings.database_pool_min_size,
            max_pool_size=settings.database_pool_size,
            timeout=settings.database_pool_timeout,
            statement_timeout_ms=settings.database_statement_timeout_ms,
        )

    @property
    def min_pool_size(self) -> int:
        return self._min_pool_size

    @property
    def max_pool_size(self) -> int:
        return self._max_pool_size

    async def initialize(self) -> None:
        """Initialize the connection pool. Call this at app startup."""
        if self._pool is None:
            kwargs: dict[str, Any] = {"row_factory": dict_row}
            if self._statement_timeout_ms:
                kwargs["options"] = f"-c statement_timeout={self._statement_timeout_ms}"
            self._pool = AsyncConnectionPool(
                self.connection_string,
                min_size=self._min_pool_size,
                max_size=self._max_pool_size,
                timeout=self._timeout,
                kwargs=kwargs,
                open=False,
            )
            await self._pool.open()

    async def close(self) -> None:
        """Close the connection pool. Call this at app shutdown."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    @asynccontextmanager
    async def get_connection(self) -> AsyncIterator[psycopg.AsyncConnection]:
        """Get a connection from the pool."""
        if self._pool is None:
            await self.initialize()
        async with self._pool.connection() as conn:
            yield conn

    async def execute(self, query: Query, params: Any = ()) -> None:
        """Execute a single query without returning results."""
        async with self.get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, params or None)
            await conn.commit()

    async def fetchone(self, query: Query, params: Any = ()) -> Optional[dict[str, Any]]:
        """Execute a query and fetch one result as a dict."""
        async with self.get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, params or None)
                row = await cur.fetchone()
                return dict(row) if row else None

    async def fetchall(self, query: Query, params: Any = ()) -> list[dict[str, Any]]:
        """Execute a query and fetch all results as dicts."""
        async with self.get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, params or None)
                rows = await cur.fetchall()
                return [dict(row) for row in rows]

    async def fetchval(self, query: Query, params: Any = (), column: str | None = None) -> Any:
        """Execute a query and return a single value from the first row."""
        row = await self.fetchone(query, params)
        if not row:
            return None
        if column is not None:
            return row.get(column)
        return next(iter(row.values()), None)

    async def ping(self) -> bool:
        """Check connectivity. Raises on failure."""
        await self.fetchone("SELECT 1 AS ok")
        return True
