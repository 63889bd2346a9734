"""Redis-backed cache with TTLs and prefix invalidation.

The cache only ever holds derived data (listing pages, identity snapshots),
so every failure here degrades to a cache miss instead of failing the
request: writes return False, reads return None, and the error is logged.
"""
import json
import logging
import platform
import socket
from typing import Any, Optional

import redis.asyncio as redis

from cloud_drive.config import settings

logger = logging.getLogger(__name__)

USER_CACHE_TTL = 900
FILES_CACHE_TTL = 300
DEFAULT_TTL = 3600


def user_cache_key(user_id) -> str:
    return f"user:{user_id}"


def files_cache_key(
    owner_id,
    page: int,
    limit: int,
    sort_by: str,
    order: str,
    folder: Optional[str] = None,
    search: Optional[str] = None,
) -> str:
    """Composite key for one listing page; every query parameter is part of it."""
    return (
        f"files:{owner_id}:page{page}:limit{limit}:sort{sort_by}:{order}"
        f":folder{folder or 'all'}:search{search or 'none'}"
    )


def files_cache_pattern(owner_id) -> str:
    """Glob covering every cached listing page of one owner."""
    return f"files:{owner_id}:*"


class CacheService:
    """Thin JSON layer over an async Redis client."""

    def __init__(self, client: redis.Redis):
        self.client = client

    async def set(self, key: str, value: Any, ttl: int = DEFAULT_TTL) -> bool:
        """Store a value with expiry. Strings are stored as-is, anything else as JSON."""
        try:
            payload = value if isinstance(value, str) else json.dumps(value)
            await self.client.setex(key, ttl, payload)
            logger.debug("Cached %s (TTL: %ss)", key, ttl)
            return True
        except Exception as e:
            logger.warning("Cache SET failed for %r: %s", key, e)
            return False

    async def get(self, key: str) -> Any:
        """Decoded value, the raw string if it is not JSON, or None on miss."""
        try:
            raw = await self.client.get(key)
        except Exception as e:
            logger.warning("Cache GET failed for %r: %s", key, e)
            return None

        if raw is None:
            logger.debug("Cache miss: %s", key)
            return None
        logger.debug("Cache hit: %s", key)

        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        try:
            return json.loads(raw)
        except ValueError:
            return raw

    async def delete(self, key: str) -> bool:
        try:
            await self.client.delete(key)
            logger.debug("Deleted cache key %s", key)
            return True
        except Exception as e:
            logger.warning("Cache DELETE failed for %r: %s", key, e)
            return False

    async def delete_pattern(self, pattern: str) -> bool:
        """Delete every key matching a glob. True when nothing matched."""
        try:
            keys = [key async for key in self.client.scan_iter(match=pattern)]
            if keys:
                await self.client.delete(*keys)
                logger.info("Deleted %d cache keys matching %s", len(keys), pattern)
            return True
        except Exception as e:
            logger.warning("Cache pattern delete failed for %r: %s", pattern, e)
            return False

    async def exists(self, key: str) -> bool:
        try:
            return await self.client.exists(key) > 0
        except Exception as e:
            logger.warning("Cache EXISTS failed for %r: %s", key, e)
            return False

    async def get_ttl(self, key: str) -> int:
        """Remaining TTL in seconds; -1 without expiry, -2 when missing or unreachable."""
        try:
            return await self.client.ttl(key)
        except Exception as e:
            logger.warning("Cache TTL failed for %r: %s", key, e)
            return -2

    async def clear_all(self) -> bool:
        """Drop the whole cache database."""
        try:
            await self.client.flushdb()
            logger.info("Cache cleared")
            return True
        except Exception as e:
            logger.warning("Cache flush failed: %s", e)
            return False

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except Exception as e:
            logger.warning("Cache ping failed: %s", e)
            return False

    async def close(self) -> None:
        await self.client.aclose()


def _socket_keepalive_options() -> dict:
    """TCP keepalive tuning on Linux; macOS rejects these options."""
    if platform.system() == "Darwin" or not hasattr(socket, "TCP_KEEPIDLE"):
        return {}
    return {
        socket.TCP_KEEPIDLE: 60,
        socket.TCP_KEEPINTVL: 10,
        socket.TCP_KEEPCNT: 6,
    }


def create_redis_client() -> redis.Redis:
    pool = redis.ConnectionPool(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        db=settings.REDIS_DB,
        password=settings.REDIS_PASSWORD or None,
        decode_responses=True,
        max_connections=50,
        socket_keepalive=True,
        socket_keepalive_options=_socket_keepalive_options(),
        socket_connect_timeout=5,
        socket_timeout=5,
    )
    return redis.Redis(connection_pool=pool)


_cache: CacheService | None = None


def get_cache() -> CacheService:
    """Process-wide cache instance (FastAPI dependency)."""
    global _cache
    if _cache is None:
        _cache = CacheService(create_redis_client())
    return _cache


async def close_cache() -> None:
    global _cache
    if _cache is not None:
        await _cache.close()
        _cache = None
