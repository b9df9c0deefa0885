"""
FastAPI application for the NoverThinker scouting API.

The lifespan owns every process-wide client:
- PostgreSQL pool (psycopg3 async)
- fast cache (Redis, in-memory or disabled)

Both are built once at startup, injected into the analytics pipeline
and closed at shutdown.
"""

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

import msgspec
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.status import HTTP_500_INTERNAL_SERVER_ERROR

from ..cache import FastCache
from ..core.config import Settings, get_settings
from ..errors import NoverThinkerError
from ..pg_async import AsyncPostgresDB
from .dependencies import AppContext, build_context
from .errors import APIError, api_error_handler, domain_error_handler
from .routers import players

logger = logging.getLogger(__name__)


class MSGSpecResponse(Response):
    """Custom response class using msgspec for fast JSON serialization."""

    media_type = "application/json"

    def render(self, content: Any) -> bytes:
        if content is None:
            return b""
        return msgspec.json.encode(content)


async def open_context(settings: Settings) -> AppContext:
    """
    Build and connect the process-wide clients.

    A database that is down at startup does not prevent the app from
    starting; requests will surface the connection errors instead. The
    fast cache silently runs disabled if it cannot connect.
    """
    db = AsyncPostgresDB.from_settings(settings)
    try:
        await db.initialize()
        logger.info(
            "Database connection pool opened (min_size=%d, max_size=%d)",
            db.min_pool_size,
            db.max_pool_size,
        )
    except Exception as e:
        logger.error("Failed to initialize database: %s", e)

    cache = FastCache.from_settings(settings)
    await cache.connect()

    return build_context(db, cache)


async def close_context(context: AppContext) -> None:
    await context.cache.close()
    try:
        await context.db.close()
    except Exception as e:
        logger.warning("Error closing database connections: %s", e)


def create_app(settings: Optional[Settings] = None, context: Optional[AppContext] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to use (defaults to environment settings)
        context: Pre-built clients; when given, the lifespan neither
            opens nor closes them

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting %s...", settings.app_name)
        owned = context is None
        app.state.context = await open_context(settings) if owned else context

        yield

        logger.info("Shutting down %s...", settings.app_name)
        if owned:
            await close_context(app.state.context)

    app = FastAPI(
        title=settings.app_name,
        description="Youth football scouting platform API",
        version=settings.app_version,
        default_response_class=MSGSpecResponse,
        docs_url=settings.api_docs_url,
        redoc_url=settings.api_redoc_url,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        allow_credentials=settings.cors_allow_credentials,
        expose_headers=settings.cors_expose_headers,
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = (time.time() - start_time) * 1000
        response.headers["X-Process-Time"] = f"{process_time:.2f}ms"
        return response

    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(NoverThinkerError, domain_error_handler)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions with consistent format."""
        logger.error(
            "Unhandled exception on %s %s: %s",
            request.method,
            request.url.path,
            exc,
            exc_info=True,
        )
        # Never leak exception details in production, regardless of DEBUG flag
        show_detail = settings.debug and settings.environment != "production"
        return JSONResponse(
            status_code=HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "An internal error occurred",
                    "detail": str(exc) if show_detail else None,
                },
            },
        )

    @app.get("/health", tags=["health"])
    async def health_check():
        """Basic health check endpoint."""
        return {"status": "healthy", "timestamp": datetime.now(tz=timezone.utc).isoformat()}

    @app.get("/health/db", tags=["health"])
    async def health_check_db(request: Request):
        """Database connectivity health check."""
        try:
            await request.app.state.context.db.ping()
            return {
                "status": "healthy",
                "database": "connected",
                "timestamp": datetime.now(tz=timezone.utc).isoformat(),
            }
        except Exception as e:
            logger.error("Database health check failed: %s", e)
            return JSONResponse(
                status_code=503,
                content={
                    "status": "unhealthy",
                    "database": "disconnected",
                    "error": "Database connection check failed",
                    "timestamp": datetime.now(tz=timezone.utc).isoformat(),
                },
            )

    @app.get("/health/cache", tags=["health"])
    async def health_check_cache(request: Request):
        """Fast cache status. Always healthy: the API works without it."""
        cache: FastCache = request.app.state.context.cache
        return {
            "status": "healthy",
            "cache": await cache.get_stats(),
            "timestamp": datetime.now(tz=timezone.utc).isoformat(),
        }

    @app.get(settings.api_prefix, tags=["root"])
    async def api_info():
        """API information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "description": "Professional Football Scouting Platform API",
            "documentation": settings.api_docs_url,
            "endpoints": {
                "players": f"{settings.api_prefix}/players",
            },
        }

    app.include_router(players.router, prefix=f"{settings.api_prefix}/players", tags=["players"])

    return app


# Create app instance
app = create_app()
