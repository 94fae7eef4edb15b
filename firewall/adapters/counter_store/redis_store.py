"""Redis-backed counter store.

Uses redis.asyncio with one shared connection pool per process. Every call
is bounded by a timeout; Redis errors, socket errors and timeouts are all
reported as StoreUnavailableError so callers apply a single failure policy.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable

from redis import asyncio as redis
from redis.exceptions import RedisError

from firewall.adapters.counter_store.base import NO_EXPIRY, AbstractCounterStore
from firewall.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

# INCR, then EXPIRE only when the key has no TTL yet. Runs atomically on the
# server, so later requests in a window never extend it and a crash cannot
# leave a counter without expiry.
_INCREMENT_WITH_EXPIRY_LUA = """
local count = redis.call('INCR', KEYS[1])
if redis.call('TTL', KEYS[1]) < 0 then
  redis.call('EXPIRE', KEYS[1], ARGV[1])
end
return count
"""


class RedisCounterStore(AbstractCounterStore):
    """Counter store talking to Redis.

    Attributes:
        atomic_expiry: When True, increment_with_expiry() runs as a Lua
            script. When False, the two-step INCR/EXPIRE protocol from the
            base class is used.
    """

    def __init__(
        self,
        client: redis.Redis,
        *,
        timeout_seconds: float = 0.5,
        atomic_expiry: bool = True,
    ) -> None:
        self._client = client
        self._timeout_seconds = timeout_seconds
        self.atomic_expiry = atomic_expiry
        self._increment_script = client.register_script(_INCREMENT_WITH_EXPIRY_LUA)

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        timeout_seconds: float = 0.5,
        max_connections: int = 50,
        atomic_expiry: bool = True,
    ) -> "RedisCounterStore":
        """Build a store with its own connection pool.

        Args:
            url: Redis connection URL.
            timeout_seconds: Upper bound for each store call.
            max_connections: Size of the shared connection pool.
            atomic_expiry: Use the Lua script for increment_with_expiry().
        """
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=timeout_seconds,
            socket_timeout=timeout_seconds,
            max_connections=max_connections,
        )
        return cls(client, timeout_seconds=timeout_seconds, atomic_expiry=atomic_expiry)

    async def _call(self, operation: str, awaitable: Awaitable[Any]) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise StoreUnavailableError(
                code="store_timeout",
                message=f"Counter store {operation} timed out",
                details={
                    "operation": operation,
                    "backend": "redis",
                    "timeout_seconds": self._timeout_seconds,
                },
            ) from exc
        except (RedisError, OSError) as exc:
            raise StoreUnavailableError(
                code="store_error",
                message=f"Counter store {operation} failed: {type(exc).__name__}",
                details={
                    "operation": operation,
                    "backend": "redis",
                    "error_type": type(exc).__name__,
                },
            ) from exc

    async def increment(self, key: str) -> int:
        return int(await self._call("increment", self._client.incr(key)))

    async def expire(self, key: str, seconds: int) -> None:
        await self._call("expire", self._client.expire(key, seconds))

    async def ttl(self, key: str) -> int | None:
        remaining = int(await self._call("ttl", self._client.ttl(key)))
        if remaining == NO_EXPIRY:
            return NO_EXPIRY
        # -2: missing key
        if remaining < 0:
            return None
        return remaining

    async def increment_with_expiry(self, key: str, seconds: int) -> int:
        if not self.atomic_expiry:
            return await super().increment_with_expiry(key, seconds)
        count = await self._call(
            "increment_with_expiry",
            self._increment_script(keys=[key], args=[seconds]),
        )
        return int(count)

    async def ping(self) -> None:
        await self._call("ping", self._client.ping())

    async def close(self) -> None:
        try:
            await self._client.aclose()
        except (RedisError, OSError) as exc:
            logger.warning(
                "store.close_failed",
                extra={"backend": "redis", "error_type": type(exc).__name__},
            )
