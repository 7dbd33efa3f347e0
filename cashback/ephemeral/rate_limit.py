"""Fixed-window rate limiting on top of the ephemeral store."""

import logging
from datetime import timedelta

from cashback.ephemeral.store import EphemeralStore

logger = logging.getLogger(__name__)


class FixedWindowRateLimiter:
    """Counts hits per identifier in a window anchored to the first hit.

    If the store is unavailable the limiter denies (fail closed); callers
    turn a denial into a generic 429.
    """

    def __init__(self, store: EphemeralStore, key_prefix: str = "ratelimit:"):
        self._store = store
        self.key_prefix = key_prefix

    async def allow(
        self, identifier: str, max_attempts: int, window: timedelta
    ) -> bool:
        key = f"{self.key_prefix}{identifier}"
        try:
            count = await self._store.increment_with_expiry(key, window)
        except Exception:
            logger.warning("Rate limit check failed for %s", key, exc_info=True)
            return False
        return count <= max_attempts
