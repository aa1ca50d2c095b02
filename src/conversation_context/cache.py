"""
Durable cache port and its Redis adapter.

The context store depends only on ``DurableCache``: an async key-value store
with set-with-expiry semantics. ``RedisCache`` implements it on top of
``redis.asyncio``; the client is created lazily on first use and reused for
the lifetime of the process.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from .config import CacheConfig
from .exceptions import CacheOperationError, CacheUnavailableError

logger = logging.getLogger(__name__)


class DurableCache(ABC):
    """Async key-value store with TTL support."""

    name: str = "cache"

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None on a miss."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store ``value`` under ``key``, expiring after ``ttl_seconds``."""
        pass

    async def close(self) -> None:
        """Release any underlying connection."""
        pass


class RedisCache(DurableCache):
    """DurableCache backed by Redis (``GET`` / ``SETEX``)."""

    name = "redis"

    def __init__(
        self,
        config: CacheConfig,
        client: Optional[redis.Redis] = None
    ):
        self.config = config
        self._client = client
        self._unavailable_reason: Optional[str] = None
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def _get_client(self) -> redis.Redis:
        if self._client is not None:
            return self._client

        # Construction failures are sticky: report once, then stay degraded
        if self._unavailable_reason is not None:
            raise CacheUnavailableError(self.name, self._unavailable_reason)

        if not self.config.redis_url:
            self._unavailable_reason = "no Redis URL configured"
            raise CacheUnavailableError(self.name, self._unavailable_reason)

        try:
            self._client = redis.Redis.from_url(
                self.config.redis_url,
                db=self.config.db,
                decode_responses=True,
                socket_connect_timeout=self.config.connect_timeout,
                socket_timeout=self.config.command_timeout,
                client_name=self.config.client_name,
            )
        except (RedisError, ValueError) as e:
            self._unavailable_reason = str(e)
            self.logger.error(f"Failed to create Redis client, falling back to in-memory cache: {e}")
            raise CacheUnavailableError(self.name, self._unavailable_reason)

        self.logger.info("Redis client created for conversation context")
        return self._client

    @property
    def is_available(self) -> bool:
        return self._unavailable_reason is None

    async def get(self, key: str) -> Optional[str]:
        client = self._get_client()
        try:
            return await client.get(key)
        except (RedisError, OSError) as e:
            raise CacheOperationError("get", key, e)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        client = self._get_client()
        try:
            await client.setex(key, ttl_seconds, value)
        except (RedisError, OSError) as e:
            raise CacheOperationError("set", key, e)

    async def close(self) -> None:
        if self._client is None:
            return
        try:
            await self._client.aclose()
        except RedisError as e:
            self.logger.warning(f"Error closing Redis client: {e}")
        finally:
            self._client = None


def create_cache(config: CacheConfig) -> Optional[DurableCache]:
    """
    Build the durable cache described by ``config``.

    Returns:
        A RedisCache, or None when caching is disabled or not configured
    """
    if not config.enabled:
        logger.info("Durable cache disabled, using in-memory cache")
        return None

    if not config.redis_url:
        logger.info("Redis URL not configured, using in-memory cache")
        return None

    return RedisCache(config)
