"""Counter store interface.

The admission engine depends on this abstraction (not on Redis directly) so
the shared counter service can be swapped, and replaced by a deterministic
in-memory implementation in development and tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

# ttl() result for a key that exists but never expires (Redis TTL -1)
NO_EXPIRY = -1


class AbstractCounterStore(ABC):
    """Interface for atomic counters with a time-to-live.

    Every method raises StoreUnavailableError on network, timeout or
    store-side faults. Failures are never reported through return values.
    """

    @abstractmethod
    async def increment(self, key: str) -> int:
        """Atomically increment the integer at key, creating it at 1.

        Args:
            key: Counter key.

        Returns:
            The value after the increment.
        """
        raise NotImplementedError

    @abstractmethod
    async def expire(self, key: str, seconds: int) -> None:
        """Set (or reset) the time-to-live of key."""
        raise NotImplementedError

    @abstractmethod
    async def ttl(self, key: str) -> int | None:
        """Return the remaining lifetime of key in seconds.

        Returns:
            Seconds until expiry, NO_EXPIRY when the key exists without an
            expiry, or None when the key does not exist.
        """
        raise NotImplementedError

    async def increment_with_expiry(self, key: str, seconds: int) -> int:
        """Increment key and give it an expiry if it was just created.

        The default is the two-step protocol: INCR, then EXPIRE when the
        returned count is 1. The pair is not atomic; a crash between the two
        calls leaves a counter without expiry. Stores that can do better
        override this.

        Args:
            key: Counter key.
            seconds: Lifetime of a freshly created counter.

        Returns:
            The value after the increment.
        """
        count = await self.increment(key)
        if count == 1:
            await self.expire(key, seconds)
        return count

    async def ping(self) -> None:
        """Check connectivity; raise StoreUnavailableError if unreachable."""

    async def close(self) -> None:
        """Release connections held by the store."""
