"""
Unified error handling for consistent API error responses.

All API errors use this response format:
{
    "success": false,
    "error": {
        "code": "ERROR_CODE",
        "message": "Human-readable message",
        "detail": "Optional additional context"
    }
}

Domain exceptions from ``noverthinker.errors`` are translated here, so
services and the analytics pipeline never import FastAPI.
"""

import logging
from typing import Any

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from ..errors import (
    InvalidArgumentError,
    NoverThinkerError,
    PlayerNotFoundError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)


class APIError(HTTPException):
    """Base API error class for consistent error responses."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        detail: str | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.code = code
        self.message = message
        self.error_detail = detail
        super().__init__(
            status_code=status_code,
            detail={"code": code, "message": message, "detail": detail},
            headers=headers,
        )


class NotFoundError(APIError):
    """Resource not found (404)."""

    def __init__(self, resource: str, identifier: Any, context: str | None = None):
        message = f"{resource} not found"
        detail = f"{resource} with ID {identifier}"
        if context:
            detail = f"{detail} in {context}"
        super().__init__(
            status_code=404,
            code="NOT_FOUND",
            message=message,
            detail=detail,
        )


class ValidationError(APIError):
    """Invalid input (400)."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(
            status_code=400,
            code="VALIDATION_ERROR",
            message=message,
            detail=detail,
        )


class StoreUnavailableAPIError(APIError):
    """Durable store unreachable while serving a read (500)."""

    def __init__(self):
        super().__init__(
            status_code=500,
            code="STORE_UNAVAILABLE",
            message="Analytics are temporarily unavailable",
        )


def to_api_error(exc: NoverThinkerError) -> APIError:
    """Map a domain exception onto its API error."""
    if isinstance(exc, PlayerNotFoundError):
        return NotFoundError(exc.resource, exc.player_id)
    if isinstance(exc, InvalidArgumentError):
        return ValidationError(str(exc))
    if isinstance(exc, StoreUnavailableError):
        return StoreUnavailableAPIError()
    return APIError(status_code=500, code="INTERNAL_ERROR", message="An internal error occurred")


def _render(exc: APIError) -> JSONResponse:
    content: dict[str, Any] = {
        "success": False,
        "error": {
            "code": exc.code,
            "message": exc.message,
        },
    }
    if exc.error_detail:
        content["error"]["detail"] = exc.error_detail

    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=exc.headers,
    )


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """FastAPI exception handler for APIError."""
    return _render(exc)


async def domain_error_handler(request: Request, exc: NoverThinkerError) -> JSONResponse:
    """FastAPI exception handler translating domain errors."""
    api_error = to_api_error(exc)
    # Store failures are logged with player context where they are raised
    if api_error.status_code >= 500 and not isinstance(exc, StoreUnavailableError):
        logger.error(
            "Server error on %s %s: %s",
            request.method,
            request.url.path,
            exc,
            exc_info=exc,
        )
    return _render(api_error)
