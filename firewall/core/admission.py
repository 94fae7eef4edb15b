"""Admission engine: decides, per request, whether it may proceed.

Evaluation order (first match wins):

1. Path allowlist: exact string match, nothing else runs.
2. Trusted bearer token: exact match against the configured secrets.
3. Fixed-window rate limit against the shared counter store.

A counter store failure never turns into a denial on its own. It produces
ALLOW_ON_ERROR under the fail-open policy, or a DENY with reason
"rate_limiter_unavailable" when the deployment chooses fail-closed.

The engine keeps no mutable state of its own; all counters live in the
store, so concurrent decisions need no locking here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping

from firewall.adapters.counter_store.base import AbstractCounterStore
from firewall.core.auth import extract_bearer_token, is_trusted_token
from firewall.core.client_identity import resolve_client_id
from firewall.core.config import FailurePolicy, FirewallConfig
from firewall.core.errors import StoreUnavailableError
from firewall.core.rate_limit import FixedWindowRateLimiter, RateLimitResult

RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
RATE_LIMITER_UNAVAILABLE = "rate_limiter_unavailable"


class Outcome(str, Enum):
    ALLOW = "allow"
    DENY = "deny"
    ALLOW_ON_ERROR = "allow_on_error"


@dataclass(frozen=True)
class AdmissionRequest:
    """What the engine needs to know about an inbound request.

    Attributes:
        path: Request path, without query string.
        headers: Request headers; lookups use lower-cased names.
    """

    path: str
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def authorization(self) -> str | None:
        return self.headers.get("authorization")


@dataclass(frozen=True)
class Decision:
    """Outcome of an admission check.

    Attributes:
        outcome: ALLOW, DENY or ALLOW_ON_ERROR.
        reason: Machine-readable reason code (e.g. "allowed_path",
            "trusted_token", "within_limit", "rate_limit_exceeded").
        client_id: Client identifier, set once the rate limit step ran.
        rate_limit: Counter state when the store answered.
        cause: Store failure behind ALLOW_ON_ERROR or a fail-closed DENY.
    """

    outcome: Outcome
    reason: str
    client_id: str | None = None
    rate_limit: RateLimitResult | None = None
    cause: StoreUnavailableError | None = None

    @property
    def admitted(self) -> bool:
        """True for ALLOW and ALLOW_ON_ERROR."""
        return self.outcome is not Outcome.DENY


class AdmissionEngine:
    """Stateless admission decisions over an immutable FirewallConfig."""

    def __init__(self, config: FirewallConfig, store: AbstractCounterStore) -> None:
        self._config = config
        self._limiter = FixedWindowRateLimiter(
            store,
            limit=config.rate_limit.limit,
            window_seconds=config.rate_limit.window_seconds,
            key_prefix=config.key_prefix,
        )

    @property
    def config(self) -> FirewallConfig:
        return self._config

    def client_id_for(self, request: AdmissionRequest) -> str:
        return resolve_client_id(
            request.headers,
            client_ip_header=self._config.client_ip_header,
            forwarded_for_header=self._config.forwarded_for_header,
            unknown_client_id=self._config.unknown_client_id,
        )

    async def decide(self, request: AdmissionRequest) -> Decision:
        """Decide whether request may proceed.

        Args:
            request: Path and headers of the inbound request.

        Returns:
            Decision. Never raises for store failures.
        """
        if request.path in self._config.allowed_paths:
            return Decision(outcome=Outcome.ALLOW, reason="allowed_path")

        token = extract_bearer_token(request.authorization)
        if is_trusted_token(token, self._config.trusted_tokens):
            return Decision(outcome=Outcome.ALLOW, reason="trusted_token")

        client_id = self.client_id_for(request)
        try:
            result = await self._limiter.consume(client_id)
        except StoreUnavailableError as exc:
            return self._on_store_failure(client_id, exc)

        if not result.allowed:
            return Decision(
                outcome=Outcome.DENY,
                reason=RATE_LIMIT_EXCEEDED,
                client_id=client_id,
                rate_limit=result,
            )

        return Decision(
            outcome=Outcome.ALLOW,
            reason="within_limit",
            client_id=client_id,
            rate_limit=result,
        )

    def _on_store_failure(self, client_id: str, exc: StoreUnavailableError) -> Decision:
        if self._config.failure_policy is FailurePolicy.CLOSED:
            return Decision(
                outcome=Outcome.DENY,
                reason=RATE_LIMITER_UNAVAILABLE,
                client_id=client_id,
                cause=exc,
            )
        return Decision(
            outcome=Outcome.ALLOW_ON_ERROR,
            reason="store_unavailable",
            client_id=client_id,
            cause=exc,
        )
