"""Injected TTL cache used to memoize classifier answers."""

import time
from typing import Callable, Dict, Optional, Protocol, Tuple

import redis.asyncio as redis


class Cache(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def expire(self, key: str) -> None: ...


class MemoryCache:
    """Process-local cache with an injectable clock."""

    def __init__(self, clock: Callable[[], float] = time.monotonic, max_entries: int = 1000):
        self._clock = clock
        self._max_entries = max_entries
        self._entries: Dict[str, Tuple[str, float]] = {}

    async def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if key not in self._entries and len(self._entries) >= self._max_entries:
            # Oldest insertion goes first
            oldest = next(iter(self._entries))
            del self._entries[oldest]
        self._entries[key] = (value, self._clock() + ttl_seconds)

    async def expire(self, key: str) -> None:
        self._entries.pop(key, None)


class RedisCache:
    """Cache backed by the shared Redis client."""

    def __init__(self, client: redis.Redis, prefix: str = "aiwrapper:cache:"):
        self._client = client
        self._prefix = prefix

    async def get(self, key: str) -> Optional[str]:
        return await self._client.get(self._prefix + key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._client.set(self._prefix + key, value, ex=ttl_seconds)

    async def expire(self, key: str) -> None:
        await self._client.delete(self._prefix + key)


__all__ = ["Cache", "MemoryCache", "RedisCache"]
