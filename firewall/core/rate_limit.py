"""Distributed fixed-window rate limiting.

Each client gets one counter in the shared store, keyed by prefix + client
id. The first request of a window creates the counter at 1 and gives it a
lifetime of window_seconds; when the key expires the next request starts a
new window. Later requests in the same window never extend the lifetime.

With a store that cannot increment and set expiry atomically, a crash
between the two steps leaves a counter that never expires and locks the
client out for good. The limiter repairs such counters when it sees one
while denying a request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from firewall.adapters.counter_store.base import NO_EXPIRY, AbstractCounterStore
from firewall.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    """Result of consuming one request from a client's budget.

    Attributes:
        allowed: Whether the request is within the limit.
        count: Counter value after this request.
        limit: Max requests per window.
        remaining: Requests left in the current window (0 when blocked).
        retry_after_seconds: Seconds until the window resets, when known.
    """

    allowed: bool
    count: int
    limit: int
    remaining: int
    retry_after_seconds: int | None = None


class FixedWindowRateLimiter:
    """Fixed-window limiter on top of an AbstractCounterStore."""

    def __init__(
        self,
        store: AbstractCounterStore,
        *,
        limit: int,
        window_seconds: int,
        key_prefix: str = "ratelimit:",
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Shared counter store.
            limit: Maximum number of requests per window.
            window_seconds: Size of the fixed window in seconds.
            key_prefix: Namespace for counter keys.

        Raises:
            ValueError: If limit or window_seconds are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        self._store = store
        self._limit = limit
        self._window_seconds = window_seconds
        self._key_prefix = key_prefix

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    def build_key(self, client_id: str) -> str:
        return f"{self._key_prefix}{client_id}"

    async def consume(self, client_id: str) -> RateLimitResult:
        """Count one request for client_id and check it against the limit.

        Args:
            client_id: Client identifier.

        Returns:
            RateLimitResult with the decision and counter state.

        Raises:
            StoreUnavailableError: If the increment (or the expiry that goes
                with it) fails.
        """
        key = self.build_key(client_id)
        count = await self._store.increment_with_expiry(key, self._window_seconds)

        if count <= self._limit:
            return RateLimitResult(
                allowed=True,
                count=count,
                limit=self._limit,
                remaining=self._limit - count,
            )

        return RateLimitResult(
            allowed=False,
            count=count,
            limit=self._limit,
            remaining=0,
            retry_after_seconds=await self._retry_after(key),
        )

    async def _retry_after(self, key: str) -> int | None:
        """Return seconds until key expires, giving it an expiry if it has none.

        A key that is already gone expired between the increment and this
        lookup, so the client may retry at once. Failures here are logged and
        reported as "unknown"; the request is already over the limit and
        stays denied.
        """
        try:
            remaining = await self._store.ttl(key)
            if remaining is None:
                return 0
            if remaining != NO_EXPIRY:
                return remaining

            await self._store.expire(key, self._window_seconds)
        except StoreUnavailableError as exc:
            logger.warning(
                "rate_limit.ttl_lookup_failed",
                extra={"error_code": exc.code, "error_msg": exc.message},
            )
            return None

        logger.warning(
            "rate_limit.expiry_repaired",
            extra={"window_s": self._window_seconds},
        )
        return self._window_seconds
