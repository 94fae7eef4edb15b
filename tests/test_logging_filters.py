"""Tests for sensitive data filtering in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from firewall.core.logging import (
    JsonFormatter,
    SensitiveDataFilter,
    clear_request_id,
    set_request_id,
)


@pytest.fixture
def log_stream() -> StringIO:
    logger = logging.getLogger("test_redaction")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return stream


def test_sensitive_filter_redacts_tokens(log_stream: StringIO):
    logging.getLogger("test_redaction").info(
        "test_event",
        extra={
            "authorization": "Bearer sk-secret-123",
            "trusted_tokens": ["tok-a", "tok-b"],
            "redis_url": "redis://:hunter2@cache:6379/0",
            "safe_field": "visible",
        },
    )

    output = log_stream.getvalue()

    assert "sk-secret-123" not in output
    assert "tok-a" not in output
    assert "hunter2" not in output
    assert "[REDACTED]" in output
    assert "visible" in output


def test_sensitive_filter_redacts_nested_headers(log_stream: StringIO):
    logging.getLogger("test_redaction").info(
        "nested_event",
        extra={
            "headers": {
                "Authorization": "Bearer nested-secret",
                "user-agent": "pytest",
            },
        },
    )

    output = log_stream.getvalue()

    assert "nested-secret" not in output
    assert "pytest" in output


def test_safe_fields_pass_through(log_stream: StringIO):
    logging.getLogger("test_redaction").info(
        "admission.denied",
        extra={"client_id": "9.9.9.9", "path": "/api/data", "count": 4, "limit": 3},
    )

    data = json.loads(log_stream.getvalue())

    assert data["message"] == "admission.denied"
    assert data["client_id"] == "9.9.9.9"
    assert data["count"] == 4
    assert "[REDACTED]" not in log_stream.getvalue()


def test_request_id_from_context(log_stream: StringIO):
    set_request_id("req-ctx-1")
    try:
        logging.getLogger("test_redaction").info("with_context")
    finally:
        clear_request_id()

    assert json.loads(log_stream.getvalue())["request_id"] == "req-ctx-1"
