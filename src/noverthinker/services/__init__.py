"""
Service layer -- SQL-backed lookups used by the API routers.
"""

from . import players

__all__ = ["players"]
