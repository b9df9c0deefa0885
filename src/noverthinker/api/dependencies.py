"""
Dependency injection for API endpoints.

Clients are built once by the application lifespan (or handed to
``create_app`` by tests) and stored on ``app.state.context``. Endpoints
receive them through the ``Annotated`` aliases below; nothing in the
request path opens connections of its own.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from typing import Annotated

from fastapi import Depends, Request

from ..analytics import AnalyticsCoordinator, ComparisonAggregator, PostgresAnalyticsStore
from ..cache import FastCache
from ..pg_async import AsyncPostgresDB
from ..services.players import get_comparison_rows


@dataclass
class AppContext:
    """Process-wide clients shared by all requests."""

    db: AsyncPostgresDB
    cache: FastCache
    coordinator: AnalyticsCoordinator
    comparison: ComparisonAggregator


def build_context(db: AsyncPostgresDB, cache: FastCache) -> AppContext:
    """Wire the analytics pipeline onto already-constructed clients."""
    coordinator = AnalyticsCoordinator(PostgresAnalyticsStore(db), cache)
    comparison = ComparisonAggregator(coordinator, partial(get_comparison_rows, db))
    return AppContext(db=db, cache=cache, coordinator=coordinator, comparison=comparison)


def get_context(request: Request) -> AppContext:
    return request.app.state.context


# Type aliases for dependency injection
ContextDependency = Annotated[AppContext, Depends(get_context)]
