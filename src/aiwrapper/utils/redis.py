"""Process-wide async Redis client."""

from typing import Optional

import redis.asyncio as redis

_redis_client: Optional[redis.Redis] = None

HEALTH_CHECK_INTERVAL_SECONDS = 30


async def get_redis_client(url: Optional[str] = None) -> redis.Redis:
    """Return the shared client; ``url`` only applies to the first call.

    Used for in-flight job keys, progress pub/sub and the classifier cache.
    """
    global _redis_client

    if _redis_client is None:
        from ..config import settings
        _redis_client = redis.from_url(
            url or settings.REDIS_URL,
            decode_responses=True,
            health_check_interval=HEALTH_CHECK_INTERVAL_SECONDS,
        )
    return _redis_client


def reset_redis_client() -> None:
    """Forget the client without closing it; its sockets belong to another process."""
    global _redis_client
    _redis_client = None


async def close_redis() -> None:
    global _redis_client

    if _redis_client is not None:
        client, _redis_client = _redis_client, None
        await client.aclose()


__all__ = ["get_redis_client", "close_redis", "reset_redis_client"]
