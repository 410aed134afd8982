"""
Fixed-window rate limiter for outbound platform API calls.

Counters live in the shared cache so every worker draws from the same
budget. A rejected attempt never touches the counter and there is no
backoff: the caller gets an immediate failure.
"""

import logging

from infrastructure.cache import CacheStore

logger = logging.getLogger(__name__)

DEFAULT_DECAY_SECONDS = 3600

# Calls per window, per rate-limit identifier
PLATFORM_RATE_LIMITS: dict[str, int] = {
    "facebook": 200,
    "instagram": 200,
    "linkedin": 100,
    "youtube": 100,
}


def rate_limit_key(platform: str, identifier: str) -> str:
    """Counter key, e.g. ``facebook_api_rate_limit:<app_id>``."""
    return f"{platform}_api_rate_limit:{identifier}"


class RateLimiter:
    """Atomic check-and-increment limiter over a CacheStore."""

    def __init__(self, store: CacheStore):
        self.store = store

    async def attempt(
        self,
        key: str,
        max_attempts: int,
        decay_seconds: int = DEFAULT_DECAY_SECONDS,
    ) -> bool:
        """
        Count one attempt against ``key``.

        Args:
            key: Counter key
            max_attempts: Attempts allowed per window
            decay_seconds: Window length, started by the first attempt

        Returns:
            True if the attempt is allowed, False once the window's budget is spent
        """
        allowed = await self.store.increment_within_limit(key, max_attempts, decay_seconds)
        if not allowed:
            logger.warning("Rate limit reached for %s (%d per %ds)", key, max_attempts, decay_seconds)
        return allowed

    async def too_many_attempts(self, key: str, max_attempts: int) -> bool:
        return await self.store.counter(key) >= max_attempts

    async def remaining(self, key: str, max_attempts: int) -> int:
        return max(max_attempts - await self.store.counter(key), 0)

    async def available_in(self, key: str) -> int:
        """Seconds until the current window resets."""
        return await self.store.ttl(key)

    async def clear(self, key: str) -> None:
        await self.store.forget(key)
