"""API routers."""

from . import players

__all__ = ["players"]
