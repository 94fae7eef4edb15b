"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before any firewall import so the global
settings never try to reach a real Redis or read a developer's .env file.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from unittest.mock import Mock

import pytest

from firewall.adapters.counter_store.base import AbstractCounterStore
from firewall.adapters.counter_store.in_memory import InMemoryCounterStore
from firewall.core.config import FirewallConfig, RateLimitConfig
from firewall.core.errors import StoreUnavailableError

TRUSTED_TOKEN = "service-token-with-plenty-of-entropy-0123456789"


class FailingCounterStore(AbstractCounterStore):
    """Store double whose selected operations raise StoreUnavailableError."""

    def __init__(
        self,
        *,
        fail_on: set[str] | None = None,
        inner: InMemoryCounterStore | None = None,
    ) -> None:
        self.fail_on = fail_on if fail_on is not None else {"increment", "expire", "ttl", "ping"}
        self.calls: list[str] = []
        self._inner = inner or InMemoryCounterStore()

    def _maybe_fail(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail_on:
            raise StoreUnavailableError(
                code="store_error",
                message=f"Counter store {operation} failed: ConnectionError",
                details={"operation": operation, "backend": "test"},
            )

    async def increment(self, key: str) -> int:
        self._maybe_fail("increment")
        return await self._inner.increment(key)

    async def expire(self, key: str, seconds: int) -> None:
        self._maybe_fail("expire")
        await self._inner.expire(key, seconds)

    async def ttl(self, key: str) -> int | None:
        self._maybe_fail("ttl")
        return await self._inner.ttl(key)

    async def ping(self) -> None:
        self._maybe_fail("ping")


def make_config(**overrides) -> FirewallConfig:
    """Build a FirewallConfig with small, test-friendly limits."""
    limit = overrides.pop("limit", 3)
    window_seconds = overrides.pop("window_seconds", 20)
    overrides.setdefault("trusted_tokens", frozenset({TRUSTED_TOKEN}))
    return FirewallConfig(
        rate_limit=RateLimitConfig(limit=limit, window_seconds=window_seconds),
        **overrides,
    )


@pytest.fixture
def clock() -> Mock:
    return Mock(return_value=1000.0)


@pytest.fixture
def memory_store(clock: Mock) -> InMemoryCounterStore:
    return InMemoryCounterStore(clock=clock)


@pytest.fixture
def failing_store() -> FailingCounterStore:
    return FailingCounterStore()
