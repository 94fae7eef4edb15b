"""Trusted credential checks.

Services we operate can present a long secret as a bearer token to bypass
rate limiting entirely. This module only answers "is this one of our
tokens?"; it never issues or validates any other credential type.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Iterable

BEARER_PREFIX = "Bearer "


def extract_bearer_token(authorization: str | None) -> str:
    """Return the token from an ``Authorization: Bearer <token>`` header.

    Args:
        authorization: Raw header value, or None if absent.

    Returns:
        Everything after the literal "Bearer " prefix, or "" if the header is
        absent or does not start with that prefix.

    Examples:
        >>> extract_bearer_token("Bearer abc")
        'abc'
        >>> extract_bearer_token("Basic abc")
        ''
        >>> extract_bearer_token(None)
        ''
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return ""
    return authorization[len(BEARER_PREFIX):]


def is_trusted_token(token: str, trusted_tokens: Iterable[str]) -> bool:
    """Check whether token exactly matches one of the trusted tokens.

    Each candidate is compared with hmac.compare_digest and the loop never
    exits early, so timing does not reveal which token (if any) matched.

    Args:
        token: Extracted bearer token.
        trusted_tokens: Configured secrets.

    Returns:
        True on an exact match. An empty token never matches.
    """
    if not token:
        return False

    candidate = token.encode()
    matched = False
    for trusted in trusted_tokens:
        if hmac.compare_digest(candidate, trusted.encode()):
            matched = True
    return matched


def token_fingerprint(token: str) -> str:
    """Short, non-reversible identifier for a token, safe to log."""
    return hashlib.sha256(token.encode()).hexdigest()[:16]
