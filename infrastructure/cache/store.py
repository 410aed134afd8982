"""
Shared key/value cache used for OAuth state, PKCE verifiers and rate-limit counters.

Every operation that must be atomic across workers (single-use reads and
bounded counters) is a single Redis command or script.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


# Increment KEYS[1] only while it is below ARGV[1]; start the window TTL (ARGV[2]) on the first hit.
_INCREMENT_WITHIN_LIMIT = """
local current = tonumber(redis.call('GET', KEYS[1]) or '0')
if current >= tonumber(ARGV[1]) then
    return 0
end
current = redis.call('INCR', KEYS[1])
if current == 1 then
    redis.call('EXPIRE', KEYS[1], ARGV[2])
end
return 1
"""


class CacheStore(ABC):
    """Key/value cache contract."""

    @abstractmethod
    async def put(self, key: str, value: str, ttl: int) -> None:
        """Store ``value`` under ``key`` for ``ttl`` seconds."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Read a value without consuming it."""

    @abstractmethod
    async def pull(self, key: str) -> Optional[str]:
        """Atomically read and delete a value."""

    @abstractmethod
    async def forget(self, key: str) -> None:
        """Delete a key."""

    @abstractmethod
    async def increment_within_limit(self, key: str, limit: int, ttl: int) -> bool:
        """
        Atomically count a hit unless the counter already reached ``limit``.

        Args:
            key: Counter key
            limit: Maximum hits allowed in the window
            ttl: Window length in seconds, started by the first hit

        Returns:
            True if the hit was counted, False if the limit was already reached
        """

    @abstractmethod
    async def counter(self, key: str) -> int:
        """Current value of a counter (0 when absent)."""

    @abstractmethod
    async def ttl(self, key: str) -> int:
        """Seconds until ``key`` expires (0 when absent or persistent)."""


class RedisCacheStore(CacheStore):
    """CacheStore backed by redis.asyncio."""

    def __init__(self, client: aioredis.Redis):
        self._redis = client
        self._increment_script = client.register_script(_INCREMENT_WITHIN_LIMIT)

    @classmethod
    def from_url(cls, url: str) -> "RedisCacheStore":
        return cls(aioredis.from_url(url, decode_responses=True))

    async def put(self, key: str, value: str, ttl: int) -> None:
        await self._redis.set(key, value, ex=ttl)

    async def get(self, key: str) -> Optional[str]:
        return await self._redis.get(key)

    async def pull(self, key: str) -> Optional[str]:
        return await self._redis.getdel(key)

    async def forget(self, key: str) -> None:
        await self._redis.delete(key)

    async def increment_within_limit(self, key: str, limit: int, ttl: int) -> bool:
        counted = await self._increment_script(keys=[key], args=[limit, ttl])
        return bool(int(counted))

    async def counter(self, key: str) -> int:
        value = await self._redis.get(key)
        return int(value) if value is not None else 0

    async def ttl(self, key: str) -> int:
        remaining = await self._redis.ttl(key)
        return max(int(remaining), 0)

    async def close(self) -> None:
        await self._redis.aclose()
