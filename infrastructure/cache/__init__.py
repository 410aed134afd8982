"""
Shared cache (Redis) access.
"""

from typing import Optional

from infrastructure.config import settings

from .store import CacheStore, RedisCacheStore

_cache_store: Optional[CacheStore] = None


def get_cache_store() -> CacheStore:
    """Return the process-wide cache store, created lazily from REDIS_URL."""
    global _cache_store
    if _cache_store is None:
        _cache_store = RedisCacheStore.from_url(settings.redis_url)
    return _cache_store


async def close_cache_store() -> None:
    global _cache_store
    if isinstance(_cache_store, RedisCacheStore):
        await _cache_store.close()
    _cache_store = None


__all__ = ["CacheStore", "RedisCacheStore", "get_cache_store", "close_cache_store"]
