from __future__ import annotations

"""Application factory for the FastAPI app.

Centralizes app construction: configuration validation, counter store,
admission engine, middleware, handlers and routers. Tests build apps with
their own FirewallConfig and store instead of patching globals.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from firewall.adapters.counter_store.base import AbstractCounterStore
from firewall.adapters.counter_store.factory import create_counter_store
from firewall.api.routes import health_router
from firewall.core.admission import AdmissionEngine
from firewall.core.config import FirewallConfig, build_firewall_config, settings
from firewall.core.exception_handlers import setup_exception_handlers
from firewall.core.logging import configure_logging
from firewall.core.middleware import admission_middleware, request_id_middleware

logger = logging.getLogger(__name__)


def create_app(
    *,
    config: FirewallConfig | None = None,
    store: AbstractCounterStore | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        config: Firewall configuration; built from settings when omitted.
        store: Counter store; created from settings when omitted.

    Returns:
        Configured FastAPI app with the admission filter installed.

    Raises:
        ConfigurationError: If the firewall or store configuration is
            invalid. The app is never built in that case.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    firewall_config = config or build_firewall_config(settings.firewall)
    counter_store = store or create_counter_store(settings.store)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "firewall.started",
            extra={
                "limit": firewall_config.rate_limit.limit,
                "window_s": firewall_config.rate_limit.window_seconds,
                "trusted_token_count": len(firewall_config.trusted_tokens),
                "allowed_path_count": len(firewall_config.allowed_paths),
                "failure_policy": firewall_config.failure_policy.value,
            },
        )
        yield
        await counter_store.close()

    app = FastAPI(
        title="Edge Firewall",
        description=(
            "Request admission filter: path allowlist, trusted bearer token "
            "bypass and a distributed fixed-window rate limit per client IP."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.firewall_config = firewall_config
    app.state.counter_store = counter_store
    app.state.admission_engine = AdmissionEngine(firewall_config, counter_store)

    # Middleware: admission runs inside request id so rejections carry it
    app.middleware("http")(admission_middleware)
    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(health_router)

    return app
