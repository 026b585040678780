from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from backend.app.config import get_settings


logger = logging.getLogger(__name__)

_REDIS_LOCK = threading.Lock()
_REDIS_CLIENT: Redis | None = None
_REDIS_POOL: ConnectionPool | None = None


def _get_prefix() -> str:
    settings = get_settings()
    return f"{settings.SPECTR_REDIS_PREFIX}:{settings.APP_ENV}:"


def make_key(*parts: str) -> str:
    """Construct a namespaced Redis key with the standard spectr:{env}: prefix."""
    suffix = ":".join(part.strip(":") for part in parts if part)
    return f"{_get_prefix()}{suffix}"


def get_redis_client() -> Redis:
    """Return a shared async Redis client instance."""
    global _REDIS_CLIENT, _REDIS_POOL
    if _REDIS_CLIENT is None:
        with _REDIS_LOCK:
            if _REDIS_CLIENT is None:
                settings = get_settings()
                _REDIS_POOL = ConnectionPool.from_url(
                    settings.REDIS_URL,
                    max_connections=settings.REDIS_MAX_CONNECTIONS
                    or settings.REDIS_POOL_SIZE,
                    decode_responses=True,
                )
                _REDIS_CLIENT = Redis(connection_pool=_REDIS_POOL)
    assert _REDIS_CLIENT is not None
    return _REDIS_CLIENT


async def cache_get(
    key: str,
    default: Any | None = None,
    *,
    client: Optional[Redis] = None,
) -> Any | None:
    """Get a value from Redis cache, returning default on missing key or error."""
    client = client if client is not None else get_redis_client()
    try:
        value = await client.get(key)
    except RedisError:
        logger.exception("redis_cache_get_failed", extra={"key": key})
        return default
    if value is None:
        return default
    return value


async def cache_set(
    key: str,
    value: Any,
    *,
    ex: Optional[float] = None,
    client: Optional[Redis] = None,
) -> None:
    """Set a value in Redis cache, with optional expiry in seconds."""
    client = client if client is not None else get_redis_client()
    try:
        await client.set(key, value, ex=ex)
    except RedisError:
        logger.exception("redis_cache_set_failed", extra={"key": key})
