"""Factory pattern for creating counter store instances."""

from firewall.adapters.counter_store.base import AbstractCounterStore
from firewall.adapters.counter_store.in_memory import InMemoryCounterStore
from firewall.adapters.counter_store.redis_store import RedisCounterStore
from firewall.core.config import StoreSettings, settings
from firewall.core.errors import ConfigurationError


def create_counter_store(store_settings: StoreSettings | None = None) -> AbstractCounterStore:
    """Instantiate the counter store selected by configuration.

    Args:
        store_settings: Store settings; defaults to the global settings.

    Returns:
        AbstractCounterStore: Configured store instance.

    Raises:
        ConfigurationError: If the backend is unknown or misconfigured.
    """
    cfg = store_settings or settings.store
    backend = cfg.backend.lower()

    if backend == "redis":
        if not cfg.redis_url:
            raise ConfigurationError(
                code="store_missing_url",
                message="Redis backend requires STORE_REDIS_URL",
            )
        try:
            return RedisCounterStore.from_url(
                cfg.redis_url,
                timeout_seconds=cfg.timeout_seconds,
                max_connections=cfg.max_connections,
                atomic_expiry=cfg.atomic_expiry,
            )
        except ValueError as exc:
            # The URL may carry a password; keep it out of the error
            raise ConfigurationError(
                code="store_invalid_url",
                message="STORE_REDIS_URL is not a valid Redis URL",
                details={"hint": "Use redis://, rediss:// or unix:// URLs"},
            ) from exc

    if backend == "memory":
        return InMemoryCounterStore()

    raise ConfigurationError(
        code="store_unknown_backend",
        message=f"Unknown counter store backend: '{backend}'. Supported backends: redis, memory",
    )
