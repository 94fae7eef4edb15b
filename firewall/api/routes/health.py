from __future__ import annotations

from fastapi import APIRouter, Request

from firewall.core.errors import StoreUnavailableError

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check.

    Returns:
        dict: {"status": "ok"}.
    """

    return {"status": "ok"}


@router.get("/ready")
async def readiness_check(request: Request) -> dict:
    """Readiness check: the counter store must answer a ping.

    Returns:
        dict: {"status": "ready"}.

    Raises:
        StoreUnavailableError: With code "store_unavailable" when the ping
            fails; the exception handlers turn it into a 503.
    """

    try:
        await request.app.state.counter_store.ping()
    except StoreUnavailableError as exc:
        raise StoreUnavailableError(
            code="store_unavailable",
            message="Counter store is not reachable",
            details={"context": {"cause": exc.code}},
        ) from exc
    return {"status": "ready"}
