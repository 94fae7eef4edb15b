"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

Raw settings are read once at startup and frozen into a FirewallConfig by
build_firewall_config(). The admission engine only ever sees the frozen
object.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from firewall.core.errors import ConfigurationError


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class FailurePolicy(str, Enum):
    """What the engine does when the counter store cannot be reached."""

    OPEN = "open"
    CLOSED = "closed"


class ValidatedSettings(BaseSettings):
    """BaseSettings that reports invalid values as ConfigurationError.

    Input values are left out of the error details; they may be secrets.
    """

    def __init__(self, **values: Any) -> None:
        try:
            super().__init__(**values)
        except ValidationError as exc:
            errors = exc.errors(include_url=False, include_input=False)
            raise ConfigurationError(
                code="invalid_settings",
                message=f"Invalid {type(self).__name__}: {exc.error_count()} error(s)",
                details={
                    "context": {
                        "fields": [".".join(str(part) for part in err["loc"]) for err in errors],
                        "errors": [err["msg"] for err in errors],
                    },
                },
            ) from exc


class LogSettings(ValidatedSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log output: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        0,
        description="Rotate the log file at this size (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Number of rotated files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and propagate the request id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class FirewallSettings(ValidatedSettings):
    """Admission filter configuration.

    Type errors (a non-integer limit, an unknown failure policy) are raised
    by ValidatedSettings; range and token checks run when the values are
    frozen into a FirewallConfig.
    """

    rate_limit_requests: int = Field(
        30,
        description="Maximum number of requests allowed per window (per client)",
    )
    rate_limit_window_seconds: int = Field(
        20,
        description="Fixed window size in seconds",
    )
    trusted_tokens: str | None = Field(
        None,
        description="Comma-separated list of bearer tokens that bypass the rate limit",
    )
    allowed_paths: str | None = Field(
        None,
        description="Comma-separated list of exact paths exempt from all checks",
    )
    failure_policy: FailurePolicy = Field(
        FailurePolicy.OPEN,
        description="Behaviour when the counter store is unavailable: open or closed",
    )
    client_ip_header: str = Field(
        "cf-connecting-ip",
        description="Header set by the trusted proxy with the client IP",
    )
    forwarded_for_header: str = Field(
        "x-forwarded-for",
        description="Generic forwarded-for header, used when the proxy header is absent",
    )
    unknown_client_id: str = Field(
        "127.0.0.1",
        description="Client identifier used when no client IP header is present",
    )
    key_prefix: str = Field(
        "ratelimit:",
        description="Prefix for counter keys in the store",
    )
    include_headers: bool = Field(
        True,
        description="Include Retry-After and X-RateLimit-Limit headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="FIREWALL_",
        case_sensitive=False,
    )


class StoreSettings(ValidatedSettings):
    """Counter store configuration."""

    backend: str = Field("redis", description="Counter store backend: redis or memory")
    redis_url: str = Field("redis://localhost:6379/0", description="Redis connection URL")
    timeout_seconds: float = Field(
        0.5,
        description="Upper bound for a single counter store call",
        gt=0,
    )
    max_connections: int = Field(
        50,
        description="Maximum connections in the shared Redis pool",
        ge=1,
    )
    atomic_expiry: bool = Field(
        True,
        description="Increment and set expiry in a single atomic script",
    )

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        case_sensitive=False,
    )


class Settings(ValidatedSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.

    Environments:
    - development: Local development
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    log: LogSettings = Field(default_factory=LogSettings)
    firewall: FirewallSettings = Field(default_factory=FirewallSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


@dataclass(frozen=True)
class RateLimitConfig:
    limit: int
    window_seconds: int

    def __post_init__(self) -> None:
        if self.limit <= 0:
            raise ConfigurationError(
                code="invalid_rate_limit",
                message="Rate limit must be a positive integer",
                details={"actual_value": self.limit, "min_value": 1},
            )
        if self.window_seconds <= 0:
            raise ConfigurationError(
                code="invalid_rate_limit_window",
                message="Rate limit window must be a positive number of seconds",
                details={"actual_value": self.window_seconds, "min_value": 1},
            )


@dataclass(frozen=True)
class FirewallConfig:
    """Immutable, validated configuration handed to the admission engine.

    Attributes:
        rate_limit: Fixed-window limit and window size.
        trusted_tokens: Secrets whose bearer presentation bypasses all checks.
        allowed_paths: Paths exempt from every check (exact match).
        failure_policy: Decision taken when the counter store fails.
        client_ip_header: Header written by the trusted reverse proxy.
        forwarded_for_header: Fallback forwarded-for header.
        unknown_client_id: Identifier used when neither header is present.
        key_prefix: Counter key namespace.
        include_headers: Whether throttled responses carry rate limit headers.
    """

    rate_limit: RateLimitConfig
    trusted_tokens: frozenset[str] = frozenset()
    allowed_paths: frozenset[str] = frozenset()
    failure_policy: FailurePolicy = FailurePolicy.OPEN
    client_ip_header: str = "cf-connecting-ip"
    forwarded_for_header: str = "x-forwarded-for"
    unknown_client_id: str = "127.0.0.1"
    key_prefix: str = "ratelimit:"
    include_headers: bool = True

    def __post_init__(self) -> None:
        if any(not token for token in self.trusted_tokens):
            raise ConfigurationError(
                code="invalid_trusted_tokens",
                message="Trusted token list contains blank entries",
            )

    def __repr__(self) -> str:
        # Never render the secrets themselves
        return (
            f"FirewallConfig(rate_limit={self.rate_limit!r}, "
            f"trusted_tokens=<{len(self.trusted_tokens)} redacted>, "
            f"allowed_paths={sorted(self.allowed_paths)!r}, "
            f"failure_policy={self.failure_policy.value!r})"
        )


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",")]


def parse_trusted_tokens(tokens_string: str | None) -> frozenset[str]:
    """Parse comma-separated trusted tokens into a frozenset.

    Args:
        tokens_string: Comma-separated tokens, or None.

    Returns:
        Frozenset of trimmed tokens.

    Raises:
        ConfigurationError: If the list contains blank entries (e.g. "a,,b").

    Examples:
        >>> sorted(parse_trusted_tokens("tok1, tok2"))
        ['tok1', 'tok2']
        >>> parse_trusted_tokens(None)
        frozenset()
    """
    tokens = _split_csv(tokens_string)
    blank = sum(1 for token in tokens if not token)
    if blank:
        raise ConfigurationError(
            code="invalid_trusted_tokens",
            message="Trusted token list contains blank entries",
            details={"hint": "Remove empty items from FIREWALL_TRUSTED_TOKENS"},
        )
    return frozenset(tokens)


def parse_allowed_paths(paths_string: str | None) -> frozenset[str]:
    """Parse comma-separated allowlisted paths; blank items are dropped."""
    return frozenset(path for path in _split_csv(paths_string) if path)


def build_firewall_config(firewall_settings: FirewallSettings | None = None) -> FirewallConfig:
    """Validate raw settings and freeze them into a FirewallConfig.

    Args:
        firewall_settings: Raw settings; read from the environment when
            omitted.

    Returns:
        FirewallConfig ready to be passed to the admission engine.

    Raises:
        ConfigurationError: If a value has the wrong type, limit or window is
            not positive, or the token list is malformed.
    """
    cfg = firewall_settings or FirewallSettings()

    return FirewallConfig(
        rate_limit=RateLimitConfig(
            limit=cfg.rate_limit_requests,
            window_seconds=cfg.rate_limit_window_seconds,
        ),
        trusted_tokens=parse_trusted_tokens(cfg.trusted_tokens),
        allowed_paths=parse_allowed_paths(cfg.allowed_paths),
        failure_policy=FailurePolicy(cfg.failure_policy),
        client_ip_header=cfg.client_ip_header.lower(),
        forwarded_for_header=cfg.forwarded_for_header.lower(),
        unknown_client_id=cfg.unknown_client_id,
        key_prefix=cfg.key_prefix,
        include_headers=cfg.include_headers,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
