"""
OAuth state store backed by Redis.

Issue an opaque nonce, verify-and-consume it once, let Redis expire it.
Because the state lives in Redis, a callback can land on any instance.
"""

import logging
from typing import Optional
import redis.asyncio as redis

from posty.core.config import settings
from posty.core.security import generate_state_token

logger = logging.getLogger(__name__)

STATE_KEY_PREFIX = "oauth_state"


class OAuthStateStore:
    """
    Usage:
        state = await oauth_state_store.issue("google")
        ...
        if not await oauth_state_store.consume(state, "google"):
            return RedirectResponse("/?error=invalid_state")
    """

    def __init__(self, redis_url: Optional[str] = None, ttl_seconds: Optional[int] = None):
        self.redis_url = redis_url or settings.REDIS_URL
        self.ttl_seconds = ttl_seconds or settings.OAUTH_STATE_TTL_SECONDS
        self._redis = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis client for state storage."""
        if not self._redis:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    @staticmethod
    def _key(state: str) -> str:
        return f"{STATE_KEY_PREFIX}:{state}"

    async def issue(self, provider: str) -> str:
        """
        Generate a state token and store it with the configured TTL.

        Args:
            provider: 'google' | 'apple' (a state is only valid for its own provider)

        Returns:
            State token to send in the authorization URL
        """
        state = generate_state_token()
        redis_client = await self._get_redis()
        await redis_client.setex(self._key(state), self.ttl_seconds, provider)
        return state

    async def consume(self, state: Optional[str], provider: str) -> bool:
        """
        Verify and delete a state token in one step (GETDEL).

        Returns:
            True only the first time a live state issued for provider is presented
        """
        if not state:
            return False

        redis_client = await self._get_redis()
        stored = await redis_client.getdel(self._key(state))
        if stored is None:
            logger.warning(f"Unknown or expired OAuth state for {provider}")
            return False

        stored_provider = stored.decode() if isinstance(stored, bytes) else str(stored)
        if stored_provider != provider:
            logger.warning(
                f"OAuth state provider mismatch: expected {provider}, got {stored_provider}"
            )
            return False
        return True

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.close()
            self._redis = None


# Global state store instance
oauth_state_store = OAuthStateStore()
