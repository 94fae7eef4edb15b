"""In-memory counter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Expired counters are purged lazily when their key is next touched, and
  by a full sweep every `sweep_interval` writes, so keys of clients that
  never return do not accumulate.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from firewall.adapters.counter_store.base import NO_EXPIRY, AbstractCounterStore


@dataclass
class _Counter:
    value: int
    expires_at: float | None = None

    def expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class InMemoryCounterStore(AbstractCounterStore):
    """Counter store holding keys in a process-local dict.

    Mirrors the subset of Redis semantics the firewall relies on: INCR
    creates missing keys at 1, EXPIRE sets an absolute deadline, and a key
    past its deadline behaves as if it did not exist. Counters that never
    received an expiry are kept until one is set.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: int = 1024,
    ) -> None:
        """Initialize the store.

        Args:
            clock: Time source returning seconds; monotonic by default.
            sweep_interval: Number of writes between sweeps of expired keys.
        """
        if sweep_interval < 1:
            raise ValueError("sweep_interval must be >= 1")
        self._clock = clock
        self._lock = threading.RLock()
        self._counters: dict[str, _Counter] = {}
        self._sweep_interval = sweep_interval
        self._writes_since_sweep = 0

    def _live_counter(self, key: str, now: float) -> _Counter | None:
        counter = self._counters.get(key)
        if counter is None:
            return None
        if counter.expired(now):
            del self._counters[key]
            return None
        return counter

    def _maybe_sweep(self, now: float) -> None:
        # Caller holds the lock
        self._writes_since_sweep += 1
        if self._writes_since_sweep < self._sweep_interval:
            return
        self._writes_since_sweep = 0
        expired = [key for key, counter in self._counters.items() if counter.expired(now)]
        for key in expired:
            del self._counters[key]

    def _incr(self, key: str, now: float) -> _Counter:
        self._maybe_sweep(now)
        counter = self._live_counter(key, now)
        if counter is None:
            counter = _Counter(value=0)
            self._counters[key] = counter
        counter.value += 1
        return counter

    async def increment(self, key: str) -> int:
        with self._lock:
            return self._incr(key, self._clock()).value

    async def expire(self, key: str, seconds: int) -> None:
        with self._lock:
            now = self._clock()
            counter = self._live_counter(key, now)
            if counter is not None:
                counter.expires_at = now + seconds

    async def ttl(self, key: str) -> int | None:
        with self._lock:
            now = self._clock()
            counter = self._live_counter(key, now)
            if counter is None:
                return None
            if counter.expires_at is None:
                return NO_EXPIRY
            return max(0, int(math.ceil(counter.expires_at - now)))

    async def increment_with_expiry(self, key: str, seconds: int) -> int:
        # Holding the lock across both steps makes the pair atomic here
        with self._lock:
            now = self._clock()
            counter = self._incr(key, now)
            if counter.expires_at is None:
                counter.expires_at = now + seconds
            return counter.value
