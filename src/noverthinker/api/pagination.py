"""
Pagination utilities for API endpoints.

Usage for listing endpoints:
    @router.get("/players")
    async def list_players(pagination: Annotated[PaginationParams, Depends()]):
        result = await player_service.list_players(db, filters, pagination.page, pagination.limit)
"""

from dataclasses import dataclass

from fastapi import Query

# Default pagination limits
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass
class PaginationParams:
    """
    Pagination parameters extracted from query string.

    Usage as FastAPI dependency:
        async def endpoint(pagination: PaginationParams = Depends()):
            ...
    """
    page: int = Query(default=1, ge=1, description="Page number (1-indexed)")
    page_size: int = Query(
        default=DEFAULT_PAGE_SIZE,
        ge=1,
        le=MAX_PAGE_SIZE,
        alias="limit",
        description=f"Items per page (max {MAX_PAGE_SIZE})",
    )

    @property
    def limit(self) -> int:
        """Return the page size as limit."""
        return self.page_size
