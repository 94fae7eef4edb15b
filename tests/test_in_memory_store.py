"""Unit tests for the in-memory counter store."""

from unittest.mock import Mock

import pytest

from firewall.adapters.counter_store.base import NO_EXPIRY
from firewall.adapters.counter_store.in_memory import InMemoryCounterStore


@pytest.mark.asyncio
async def test_increment_creates_at_one_and_counts_up(memory_store: InMemoryCounterStore) -> None:
    assert await memory_store.increment("k") == 1
    assert await memory_store.increment("k") == 2
    assert await memory_store.increment("other") == 1


@pytest.mark.asyncio
async def test_key_without_expiry_never_resets(
    memory_store: InMemoryCounterStore, clock: Mock
) -> None:
    await memory_store.increment("k")
    clock.return_value = 1_000_000.0

    assert await memory_store.ttl("k") == NO_EXPIRY
    assert await memory_store.increment("k") == 2


@pytest.mark.asyncio
async def test_expire_deletes_key_exactly_at_deadline(
    memory_store: InMemoryCounterStore, clock: Mock
) -> None:
    await memory_store.increment("k")
    await memory_store.expire("k", 20)

    clock.return_value = 1019.9
    assert await memory_store.ttl("k") == 1

    clock.return_value = 1020.0
    assert await memory_store.ttl("k") is None
    assert await memory_store.increment("k") == 1


@pytest.mark.asyncio
async def test_expire_on_missing_key_is_noop(memory_store: InMemoryCounterStore) -> None:
    await memory_store.expire("missing", 20)

    assert await memory_store.ttl("missing") is None


@pytest.mark.asyncio
async def test_increment_with_expiry_sets_ttl_once(
    memory_store: InMemoryCounterStore, clock: Mock
) -> None:
    assert await memory_store.increment_with_expiry("k", 20) == 1
    clock.return_value = 1010.0
    assert await memory_store.increment_with_expiry("k", 20) == 2

    # Window is not extended by the second request
    assert await memory_store.ttl("k") == 10

    clock.return_value = 1020.0
    assert await memory_store.increment_with_expiry("k", 20) == 1
    assert await memory_store.ttl("k") == 20


@pytest.mark.asyncio
async def test_sweep_drops_expired_keys_never_touched_again(clock: Mock) -> None:
    store = InMemoryCounterStore(clock=clock, sweep_interval=5)
    for client in ("a", "b", "c"):
        await store.increment_with_expiry(client, 20)
    await store.increment("persistent")
    assert len(store._counters) == 4

    clock.return_value = 1020.0
    await store.increment_with_expiry("d", 20)

    # The sweep runs before "d" is written; "persistent" has no expiry
    assert len(store._counters) == 2
    assert await store.ttl("persistent") == NO_EXPIRY
    assert await store.ttl("d") == 20


def test_sweep_interval_must_be_positive() -> None:
    with pytest.raises(ValueError):
        InMemoryCounterStore(sweep_interval=0)
