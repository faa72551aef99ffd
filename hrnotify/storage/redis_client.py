"""Redis client management."""

import redis.asyncio as redis
from redis.asyncio import Redis

from hrnotify.core.config import get_settings

# Global connection pool
_pool: redis.ConnectionPool | None = None


async def init_redis_pool() -> None:
    """Initialize Redis connection pool."""
    global _pool
    if _pool is None:
        settings = get_settings()
        _pool = redis.ConnectionPool.from_url(
            settings.redis_url,
            decode_responses=True,
            max_connections=20,
        )


async def close_redis_pool() -> None:
    """Close Redis connection pool."""
    global _pool
    if _pool is not None:
        await _pool.disconnect()
        _pool = None


def get_redis() -> Redis:
    """Get Redis client from pool.

    Returns:
        Redis client instance

    Raises:
        RuntimeError: If pool not initialized
    """
    if _pool is None:
        raise RuntimeError("Redis pool not initialized. Call init_redis_pool() first.")
    return redis.Redis(connection_pool=_pool)


class RedisKeys:
    """Redis key patterns."""

    NOTIFICATION = "hrnotify:notification:{notification_id}"
    NOTIFICATION_SEQ = "hrnotify:notification:seq"
    # PENDING ids scored by the epoch second they become due
    NOTIFICATION_DUE = "hrnotify:notification:due"
    NOTIFICATION_STATUS = "hrnotify:notification:status:{status}"

    @classmethod
    def notification(cls, notification_id: str) -> str:
        return cls.NOTIFICATION.format(notification_id=notification_id)

    @classmethod
    def notification_status(cls, status: str) -> str:
        return cls.NOTIFICATION_STATUS.format(status=status)
