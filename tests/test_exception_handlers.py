"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, and no information leakage.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from firewall.core.errors import AppError, ConfigurationError, StoreUnavailableError
from firewall.core.exception_handlers import general_exception_handler, setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers, raise_server_exceptions=False)


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_store_unavailable_returns_503(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-store")
        async def test_endpoint():
            raise StoreUnavailableError(
                code="store_timeout",
                message="Counter store ping timed out",
                details={"operation": "ping", "timeout_seconds": 0.5},
            )

        response = client.get("/test-store")

        assert response.status_code == 503
        data = response.json()
        assert data["error"]["code"] == "store_timeout"
        assert data["error"]["details"]["operation"] == "ping"
        assert "request_id" in data["error"]

    def test_configuration_error_returns_500(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-config")
        async def test_endpoint():
            raise ConfigurationError(code="invalid_rate_limit", message="bad limit")

        response = client.get("/test-config")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "invalid_rate_limit"

    def test_base_app_error_returns_400_without_details(
        self, client: TestClient, app_with_handlers: FastAPI
    ):
        @app_with_handlers.get("/test-base")
        async def test_endpoint():
            raise AppError(code="bad_request", message="nope")

        response = client.get("/test-base")

        assert response.status_code == 400
        assert "details" not in response.json()["error"]


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_returns_generic_500(
        self, client: TestClient, app_with_handlers: FastAPI
    ):
        @app_with_handlers.get("/test-boom")
        async def test_endpoint():
            raise RuntimeError("redis password is hunter2")

        response = client.get("/test-boom")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "internal_server_error"
        assert "hunter2" not in response.text

    def test_general_exception_handler_never_leaks_stack_trace(self):
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = ValueError("Test error with details")
        response = asyncio.run(general_exception_handler(request, exc))

        response_text = bytes(response.body).decode()
        data = json.loads(response_text)
        assert data["error"]["code"] == "internal_server_error"
        assert "Traceback" not in response_text
        assert "ValueError" not in response_text


def test_setup_exception_handlers_registers_handlers(app_with_handlers: FastAPI):
    assert AppError in app_with_handlers.exception_handlers
    assert Exception in app_with_handlers.exception_handlers
