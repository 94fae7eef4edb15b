"""HTTP middleware: request correlation and request admission.

request_id_middleware:
- Accepts incoming X-Request-ID header or generates a UUID
- Stores request_id in contextvars for log correlation
- Injects request_id and duration into response headers

admission_middleware:
- Runs the AdmissionEngine stored on app.state before any route handler
- Maps DENY to 429 "rate limit exceeded" (or 503 when the counter store is
  down and the failure policy is closed)
- Logs ALLOW_ON_ERROR with its cause and lets the request through

Usage (last registered runs first, so register admission before request id):
    app.middleware("http")(admission_middleware)
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response, status
from fastapi.responses import PlainTextResponse

from firewall.core.admission import (
    RATE_LIMITER_UNAVAILABLE,
    AdmissionEngine,
    AdmissionRequest,
    Decision,
    Outcome,
)
from firewall.core.auth import extract_bearer_token, token_fingerprint
from firewall.core.config import settings
from firewall.core.logging import clear_request_id, set_request_id

logger = logging.getLogger(__name__)

RATE_LIMIT_EXCEEDED_BODY = "rate limit exceeded"
SERVICE_UNAVAILABLE_BODY = "service unavailable"


async def request_id_middleware(request: Request, call_next) -> Response:
    """HTTP middleware for request ID generation and propagation.

    If the client provides an X-Request-ID header (configurable via
    LOG_REQUEST_ID_HEADER), that value is used. Otherwise, a new UUID is
    generated. The ID is propagated back in the response headers and stored
    in contextvars for log correlation.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The response from the next handler with request_id and
            duration headers added.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


def _denied_response(decision: Decision, engine: AdmissionEngine) -> Response:
    if decision.reason == RATE_LIMITER_UNAVAILABLE:
        return PlainTextResponse(
            SERVICE_UNAVAILABLE_BODY,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    headers: dict[str, str] = {}
    if engine.config.include_headers and decision.rate_limit is not None:
        headers["X-RateLimit-Limit"] = str(decision.rate_limit.limit)
        if decision.rate_limit.retry_after_seconds is not None:
            headers["Retry-After"] = str(decision.rate_limit.retry_after_seconds)

    return PlainTextResponse(
        RATE_LIMIT_EXCEEDED_BODY,
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        headers=headers or None,
    )


def _log_decision(decision: Decision, request: AdmissionRequest) -> None:
    if decision.outcome is Outcome.ALLOW:
        extra = {"reason": decision.reason, "path": request.path}
        if decision.reason == "trusted_token":
            extra["token_fingerprint"] = token_fingerprint(
                extract_bearer_token(request.authorization)
            )
        if decision.rate_limit is not None:
            extra["count"] = decision.rate_limit.count
            extra["remaining"] = decision.rate_limit.remaining
        logger.debug("admission.allowed", extra=extra)
        return

    if decision.cause is not None:
        logger.error(
            "admission.store_unavailable",
            extra={
                "outcome": decision.outcome.value,
                "path": request.path,
                "client_id": decision.client_id,
                "error_code": decision.cause.code,
                "error_msg": decision.cause.message,
                "error_details": decision.cause.details,
            },
        )
        return

    logger.warning(
        "admission.denied",
        extra={
            "reason": decision.reason,
            "path": request.path,
            "client_id": decision.client_id,
            "count": decision.rate_limit.count if decision.rate_limit else None,
            "limit": decision.rate_limit.limit if decision.rate_limit else None,
        },
    )


async def admission_middleware(request: Request, call_next) -> Response:
    """HTTP middleware enforcing the admission decision.

    ALLOW and ALLOW_ON_ERROR continue to the next handler; DENY
    short-circuits with a plain-text response.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response from the next handler, or the rejection response.
    """

    engine: AdmissionEngine = request.app.state.admission_engine
    admission_request = AdmissionRequest(path=request.url.path, headers=request.headers)

    decision = await engine.decide(admission_request)
    _log_decision(decision, admission_request)

    if not decision.admitted:
        return _denied_response(decision, engine)

    return await call_next(request)
