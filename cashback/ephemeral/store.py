"""Ephemeral key/value store with per-key TTL.

Holds OTP challenges, pending signups, refresh sessions and rate-limit
counters. Every write carries an expiry; expiry is the only cleanup
mechanism.

Key namespaces:
    otp:{email}
    signup:{email}
    session:{user_id}
    ratelimit:{action}:{identifier}
"""

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import timedelta
from typing import Protocol

from redis.asyncio import Redis

from cashback.core.settings import Settings

logger = logging.getLogger(__name__)

# INCR, then set the TTL only when the counter was just created so the
# window stays anchored to the first hit.
_INCREMENT_WITH_EXPIRY = """
local count = redis.call('INCR', KEYS[1])
if count == 1 then
    redis.call('PEXPIRE', KEYS[1], ARGV[1])
end
return count
"""

# Delete the key only if it still holds the expected value.
_CONSUME_IF_EQUALS = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""


def otp_key(email: str) -> str:
    return f"otp:{email}"


def signup_key(email: str) -> str:
    return f"signup:{email}"


def session_key(user_id: object) -> str:
    return f"session:{user_id}"


def _ttl_ms(ttl: timedelta) -> int:
    milliseconds = int(ttl.total_seconds() * 1000)
    if milliseconds <= 0:
        raise ValueError("ttl must be positive")
    return milliseconds


class EphemeralStore(Protocol):
    """Operations the rest of the app needs from the ephemeral store."""

    async def put(self, key: str, value: str, ttl: timedelta) -> None: ...

    async def get(self, key: str) -> str | None: ...

    async def delete(self, key: str) -> None: ...

    async def increment_with_expiry(self, key: str, window: timedelta) -> int:
        """Increment a counter; the TTL is set only on the 0 -> 1 transition."""
        ...

    async def consume_if_equals(self, key: str, expected: str) -> bool:
        """Atomically delete key if its value equals expected.

        Returns True only for the single caller that removed the value.
        """
        ...

    async def ping(self) -> bool: ...

    async def aclose(self) -> None: ...


class RedisEphemeralStore:
    """Redis-backed store. Multi-step operations run as Lua scripts."""

    def __init__(self, client: Redis):
        self._client = client
        self._increment = client.register_script(_INCREMENT_WITH_EXPIRY)
        self._consume = client.register_script(_CONSUME_IF_EQUALS)

    async def put(self, key: str, value: str, ttl: timedelta) -> None:
        await self._client.set(key, value, px=_ttl_ms(ttl))

    async def get(self, key: str) -> str | None:
        value = await self._client.get(key)
        if isinstance(value, bytes):
            return value.decode()
        return value

    async def delete(self, key: str) -> None:
        await self._client.delete(key)

    async def increment_with_expiry(self, key: str, window: timedelta) -> int:
        count = await self._increment(keys=[key], args=[_ttl_ms(window)])
        return int(count)

    async def consume_if_equals(self, key: str, expected: str) -> bool:
        deleted = await self._consume(keys=[key], args=[expected])
        return int(deleted) == 1

    async def ping(self) -> bool:
        return bool(await self._client.ping())

    async def aclose(self) -> None:
        await self._client.aclose()


class InMemoryEphemeralStore:
    """Process-local store for development and tests.

    Expired entries are dropped lazily on access. The clock is injectable
    so tests can move time forward.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: dict[str, tuple[str, float]] = {}
        self._lock = asyncio.Lock()

    def _live(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, deadline = entry
        if self._clock() >= deadline:
            del self._data[key]
            return None
        return value

    async def put(self, key: str, value: str, ttl: timedelta) -> None:
        deadline = self._clock() + _ttl_ms(ttl) / 1000
        async with self._lock:
            self._data[key] = (value, deadline)

    async def get(self, key: str) -> str | None:
        async with self._lock:
            return self._live(key)

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)

    async def increment_with_expiry(self, key: str, window: timedelta) -> int:
        window_seconds = _ttl_ms(window) / 1000
        async with self._lock:
            current = self._live(key)
            if current is None:
                self._data[key] = ("1", self._clock() + window_seconds)
                return 1
            count = int(current) + 1
            self._data[key] = (str(count), self._data[key][1])
            return count

    async def consume_if_equals(self, key: str, expected: str) -> bool:
        async with self._lock:
            if self._live(key) != expected:
                return False
            del self._data[key]
            return True

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        async with self._lock:
            self._data.clear()


async def create_ephemeral_store(settings: Settings) -> EphemeralStore:
    """Build the store once at startup.

    Uses Redis when REDIS_URL is set and fails fast if it cannot be reached.
    Falls back to the in-process store otherwise.
    """
    if not settings.redis_url:
        logger.warning("REDIS_URL not configured, using in-process ephemeral store")
        return InMemoryEphemeralStore()

    client = Redis.from_url(settings.redis_url, decode_responses=True)
    try:
        await client.ping()
    except Exception:
        await client.aclose()
        logger.error("Failed to connect to Redis")
        raise
    return RedisEphemeralStore(client)
