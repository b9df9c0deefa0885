"""
Domain exceptions.

Raised by the analytics pipeline and player queries; the HTTP layer maps
them onto API error responses in ``api.errors``.
"""

from typing import Any


class NoverThinkerError(Exception):
    """Base class for all domain errors."""


class PlayerNotFoundError(NoverThinkerError):
    """The requested player (or its analytics) does not exist."""

    def __init__(self, player_id: Any, resource: str = "Player"):
        self.player_id = player_id
        self.resource = resource
        super().__init__(f"{resource} {player_id} not found")


class InvalidArgumentError(NoverThinkerError):
    """Caller supplied arguments outside the accepted domain."""


class StoreUnavailableError(NoverThinkerError):
    """The durable analytics store could not be reached or rejected a write."""

    def __init__(self, operation: str, player_id: Any = None, cause: Exception | None = None):
        self.operation = operation
        self.player_id = player_id
        self.cause = cause
        message = f"Analytics store {operation} failed"
        if player_id is not None:
            message = f"{message} for player {player_id}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
