"""
Short-lived OAuth state and PKCE verifier storage.

Both values are single use: reading them deletes them in the same cache
round trip, so a replayed callback finds nothing.
"""

import json
from datetime import UTC, datetime
from typing import Any, Optional

from infrastructure.cache import CacheStore

DEFAULT_STATE_TTL = 600


def state_key(state: str) -> str:
    return f"oauth_state:{state}"


def code_verifier_key(state: str) -> str:
    return f"twitter_code_verifier:{state}"


class OAuthStateStore:
    """Stores pending authorization attempts keyed by their ``state`` value."""

    def __init__(self, store: CacheStore, ttl: int = DEFAULT_STATE_TTL):
        self.store = store
        self.ttl = ttl

    async def remember(self, state: str, platform: str) -> None:
        payload = {"platform": platform, "created_at": datetime.now(UTC).isoformat()}
        await self.store.put(state_key(state), json.dumps(payload), self.ttl)

    async def consume(self, state: str) -> Optional[dict[str, Any]]:
        """
        Atomically read and delete the state.

        Returns:
            ``{"platform", "created_at"}``, or None if unknown, expired or already used
        """
        raw = await self.store.pull(state_key(state))
        if raw is None:
            return None
        try:
            payload = json.loads(raw)
        except ValueError:
            return None
        return payload if isinstance(payload, dict) else None

    async def remember_code_verifier(self, state: str, verifier: str) -> None:
        await self.store.put(code_verifier_key(state), verifier, self.ttl)

    async def consume_code_verifier(self, state: str) -> Optional[str]:
        return await self.store.pull(code_verifier_key(state))
