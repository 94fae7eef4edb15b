"""Application-level exception types.

This module defines the error taxonomy shared by configuration, the counter
store adapters and the HTTP layer. Rejecting a request for exceeding its rate
limit is a decision, not an error, and is modelled in firewall.core.admission.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    min_value: int
    actual_value: int
    http_status: int
    operation: str
    backend: str
    timeout_seconds: float
    error_type: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ConfigurationError(AppError):
    """Raised at startup when firewall configuration is invalid."""


class StoreUnavailableError(AppError):
    """Raised when a counter store call fails or times out."""
