"""Client identifier derivation.

The identifier comes from headers supplied by the caller. That is only safe
when the service runs behind a reverse proxy that strips or overwrites them;
exposed directly, any client can pick its own identifier.
"""

from __future__ import annotations

from typing import Mapping


def _first_hop(forwarded_for: str) -> str:
    # "client, proxy1, proxy2": the leftmost entry is the originating client
    return forwarded_for.split(",", 1)[0].strip()


def resolve_client_id(
    headers: Mapping[str, str],
    *,
    client_ip_header: str = "cf-connecting-ip",
    forwarded_for_header: str = "x-forwarded-for",
    unknown_client_id: str = "127.0.0.1",
) -> str:
    """Pick the client identifier from request headers.

    Priority: the trusted proxy's client IP header, then the first hop of
    the forwarded-for header, then the sentinel for unknown/local origin.
    Blank header values count as absent.

    Args:
        headers: Request headers. Lookups use the lower-cased names, so pass
            a case-insensitive mapping (Starlette's Headers) or lower-cased
            keys.
        client_ip_header: Header set by the trusted proxy.
        forwarded_for_header: Generic forwarded-for header.
        unknown_client_id: Fallback identifier.

    Returns:
        The client identifier string.
    """
    client_ip = (headers.get(client_ip_header) or "").strip()
    if client_ip:
        return client_ip

    forwarded_for = _first_hop(headers.get(forwarded_for_header) or "")
    if forwarded_for:
        return forwarded_for

    return unknown_client_id
