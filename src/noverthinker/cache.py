"""
Fast cache tier with Redis support and an in-memory alternative.

The fast cache is strictly best-effort: every lookup returns a
CacheResult (Hit, Miss or Unavailable) instead of raising, so callers
decide what a degraded cache means for them.

Redis connections are bounded twice:
- connection establishment times out after ``redis_connect_timeout``
- after ``redis_max_reconnect_attempts`` consecutive connection failures
  the cache disables itself until the process restarts
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from .core.config import Settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# TTL constants (seconds) -- single source of truth for all cache durations.
# ---------------------------------------------------------------------------
TTL_ANALYTICS = 3600  # 1h -- derived analytics panels
TTL_PLAYER_DETAIL = 300  # 5m -- player detail responses
TTL_DEFAULT = 3600

KEY_PREFIX = "noverthinker:"

_CONNECTION_ERRORS = (RedisConnectionError, RedisTimeoutError, OSError)


def analytics_key(player_id: Any) -> str:
    return f"analytics:{player_id}"


def player_key(player_id: Any) -> str:
    return f"player:{player_id}"


# =============================================================================
# Lookup results
# =============================================================================


@dataclass(frozen=True)
class Hit:
    value: Any


@dataclass(frozen=True)
class Miss:
    pass


@dataclass(frozen=True)
class Unavailable:
    reason: str = ""


CacheResult = Union[Hit, Miss, Unavailable]

MISS = Miss()


# =============================================================================
# Backends
# =============================================================================


class CacheBackend(ABC):
    """Abstract async cache backend. Implementations may raise; FastCache does not."""

    name = "abstract"

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache, None when absent."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int) -> None:
        """Set value in cache with TTL."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete key from cache."""

    @abstractmethod
    async def size(self) -> int:
        """Get number of cached entries."""

    async def ping(self) -> None:
        """Raise if the backend cannot serve requests."""

    async def close(self) -> None:
        """Release backend resources."""


class InMemoryBackend(CacheBackend):
    """In-process TTL cache with max-size eviction. Single event loop only."""

    name = "memory"
    MAX_ENTRIES = 10_000  # Prevent unbounded memory growth

    def __init__(self):
        self._cache: dict[str, tuple[Any, datetime]] = {}

    async def get(self, key: str) -> Optional[Any]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        value, expiry = entry
        if datetime.now(tz=timezone.utc) < expiry:
            return value
        del self._cache[key]
        return None

    async def set(self, key: str, value: Any, ttl: int) -> None:
        expiry = datetime.now(tz=timezone.utc) + timedelta(seconds=ttl)
        if len(self._cache) >= self.MAX_ENTRIES and key not in self._cache:
            self.cleanup_expired()
            if len(self._cache) >= self.MAX_ENTRIES:
                oldest_key = next(iter(self._cache))
                del self._cache[oldest_key]
        self._cache[key] = (value, expiry)

    async def delete(self, key: str) -> None:
        self._cache.pop(key, None)

    async def size(self) -> int:
        return len(self._cache)

    def cleanup_expired(self) -> int:
        """Remove all expired entries. Returns count of removed entries."""
        now = datetime.now(tz=timezone.utc)
        expired = [k for k, (_, exp) in self._cache.items() if now >= exp]
        for k in expired:
            del self._cache[k]
        return len(expired)


class RedisBackend(CacheBackend):
    """Redis backend storing JSON payloads under a key prefix."""

    name = "redis"

    def __init__(
        self,
        url: str,
        connect_timeout: float = 5.0,
        prefix: str = KEY_PREFIX,
        client: Optional[redis.Redis] = None,
    ):
        self._prefix = prefix
        # Retries are handled by FastCache's reconnect budget, not the client
        self._redis = client or redis.from_url(
            url,
            decode_responses=False,
            socket_connect_timeout=connect_timeout,
            socket_timeout=connect_timeout,
            retry_on_timeout=False,
        )

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> Optional[Any]:
        data = await self._redis.get(self._key(key))
        if data is None:
            return None
        return json.loads(data)

    async def set(self, key: str, value: Any, ttl: int) -> None:
        await self._redis.setex(self._key(key), ttl, json.dumps(value, default=str))

    async def delete(self, key: str) -> None:
        await self._redis.delete(self._key(key))

    async def size(self) -> int:
        count = 0
        async for _ in self._redis.scan_iter(match=f"{self._prefix}*"):
            count += 1
        return count

    async def ping(self) -> None:
        await self._redis.ping()

    async def close(self) -> None:
        await self._redis.aclose()


# =============================================================================
# Fast cache facade
# =============================================================================


class FastCache:
    """
    Best-effort key/value cache in front of the durable store.

    A FastCache without a backend (or one that exhausted its reconnect
    budget) answers every get with Unavailable and every set with False.
    """

    def __init__(
        self,
        backend: Optional[CacheBackend] = None,
        max_reconnect_attempts: int = 3,
        retry_delay: float = 1.0,
    ):
        self._backend = backend
        self._max_attempts = max_reconnect_attempts
        self._retry_delay = retry_delay
        self._failures = 0
        self._retry_at = 0.0
        self._disabled = backend is None
        self._stats = {"hits": 0, "misses": 0, "unavailable": 0, "errors": 0}

    @classmethod
    def from_settings(cls, settings: Settings) -> FastCache:
        """Build an unconnected cache for the configured backend."""
        backend: Optional[CacheBackend] = None
        if not settings.cache_enabled:
            logger.info("Fast cache disabled by configuration")
        elif settings.cache_backend == "memory":
            backend = InMemoryBackend()
        elif settings.redis_url:
            backend = RedisBackend(settings.redis_url, connect_timeout=settings.redis_connect_timeout)
        else:
            logger.info("No REDIS_URL configured, running without cache")
        return cls(
            backend,
            max_reconnect_attempts=settings.redis_max_reconnect_attempts,
            retry_delay=settings.redis_retry_delay,
        )

    @property
    def available(self) -> bool:
        return not self._disabled

    @property
    def backend_name(self) -> str:
        return self._backend.name if self._backend else "none"

    async def connect(self) -> bool:
        """
        Establish the backend connection, retrying within the reconnect budget.

        Returns:
            True if the cache is usable, False if running without it
        """
        if self._backend is None:
            return False

        for attempt in range(1, self._max_attempts + 1):
            try:
                await self._backend.ping()
                self._failures = 0
                self._disabled = False
                logger.info("Fast cache connected (%s)", self._backend.name)
                return True
            except _CONNECTION_ERRORS + (RedisError,) as e:
                logger.warning(
                    "Fast cache connection attempt %d/%d failed: %s",
                    attempt, self._max_attempts, e,
                )
                if attempt < self._max_attempts:
                    await asyncio.sleep(self._retry_delay)

        self._disable()
        return False

    async def close(self) -> None:
        if self._backend is not None:
            try:
                await self._backend.close()
            except _CONNECTION_ERRORS + (RedisError,) as e:
                logger.debug("Error closing fast cache: %s", e)

    def _disable(self) -> None:
        if not self._disabled:
            logger.warning("Redis unavailable - running without cache")
        self._disabled = True

    def _ready(self) -> bool:
        return not self._disabled and time.monotonic() >= self._retry_at

    def _record_success(self) -> None:
        self._failures = 0
        self._retry_at = 0.0

    def _record_failure(self, op: str, key: str, exc: Exception) -> None:
        self._stats["errors"] += 1
        if not isinstance(exc, _CONNECTION_ERRORS):
            logger.warning("Fast cache %s error for %s: %s", op, key, exc)
            return
        self._failures += 1
        logger.warning(
            "Fast cache %s failed for %s (%d/%d): %s",
            op, key, self._failures, self._max_attempts, exc,
        )
        if self._failures >= self._max_attempts:
            self._disable()
        else:
            self._retry_at = time.monotonic() + self._retry_delay

    async def get(self, key: str) -> CacheResult:
        if not self._ready():
            self._stats["unavailable"] += 1
            return Unavailable("disabled" if self._disabled else "backing off")

        try:
            value = await self._backend.get(key)
        except ValueError as e:
            # Undecodable payload; treat as absent
            logger.warning("Discarding unreadable cache entry %s: %s", key, e)
            self._stats["misses"] += 1
            return MISS
        except (RedisError, OSError) as e:
            self._record_failure("get", key, e)
            self._stats["unavailable"] += 1
            return Unavailable(str(e))

        self._record_success()
        if value is None:
            self._stats["misses"] += 1
            return MISS
        self._stats["hits"] += 1
        return Hit(value)

    async def set(self, key: str, value: Any, ttl: int = TTL_DEFAULT) -> bool:
        if not self._ready():
            return False
        try:
            await self._backend.set(key, value, ttl)
        except (RedisError, OSError, TypeError, ValueError) as e:
            self._record_failure("set", key, e)
            return False
        self._record_success()
        return True

    async def delete(self, key: str) -> bool:
        if not self._ready():
            return False
        try:
            await self._backend.delete(key)
        except (RedisError, OSError) as e:
            self._record_failure("delete", key, e)
            return False
        self._record_success()
        return True

    async def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        total = self._stats["hits"] + self._stats["misses"]
        hit_rate = (self._stats["hits"] / total * 100) if total > 0 else 0
        entries = 0
        if self._ready():
            try:
                entries = await self._backend.size()
            except (RedisError, OSError) as e:
                self._record_failure("size", "*", e)
        return {
            **self._stats,
            "hit_rate_percent": round(hit_rate, 2),
            "entries": entries,
            "backend": self.backend_name,
            "available": self.available,
        }
