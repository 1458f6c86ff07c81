"""Redis connection pool with degraded mode fallback.

The service works without Redis (degraded mode):
- Queue dispatch runs in-process through the DispatchWorker loop
- The ARQ dispatcher (separate process) is simply not available
- Health endpoint reports Redis as unavailable
"""

import logging

from arq.connections import ArqRedis, RedisSettings, create_pool
from redis.exceptions import RedisError

from ai_tagging.config import get_settings

logger = logging.getLogger(__name__)

_redis_pool: ArqRedis | None = None


def parse_redis_settings(redis_url: str | None = None) -> RedisSettings:
    """Build ARQ RedisSettings that fail fast instead of retrying on connect."""
    base = RedisSettings.from_dsn(redis_url or get_settings().redis_url)
    return RedisSettings(
        host=base.host,
        port=base.port,
        unix_socket_path=base.unix_socket_path,
        database=base.database,
        password=base.password,
        ssl=base.ssl,
        conn_timeout=2,
        conn_retries=0,
        conn_retry_delay=0,
    )


async def get_redis_pool() -> ArqRedis | None:
    """Get or create the Redis connection pool. Returns None in degraded mode."""
    global _redis_pool
    if _redis_pool is not None:
        return _redis_pool

    try:
        _redis_pool = await create_pool(parse_redis_settings())
        logger.info("Redis connection pool created")
        return _redis_pool
    except (ConnectionError, OSError, RedisError, TimeoutError) as e:
        logger.warning(f"Redis unavailable, running in degraded mode: {e}")
        return None


async def close_redis_pool() -> None:
    """Close the Redis connection pool on shutdown."""
    global _redis_pool
    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None
        logger.info("Redis connection pool closed")


async def is_redis_available() -> bool:
    """Check if Redis is connected and responding. Retries when no pool is cached."""
    global _redis_pool

    pool = await get_redis_pool()
    if pool is None:
        return False

    try:
        await pool.ping()
        return True
    except (ConnectionError, OSError, RedisError, TimeoutError):
        _redis_pool = None
        return False
