"""Unit tests for trusted credential checks."""

import pytest

from firewall.core.auth import extract_bearer_token, is_trusted_token, token_fingerprint


class TestExtractBearerToken:
    """Test bearer token extraction from the Authorization header."""

    def test_extracts_token_after_prefix(self) -> None:
        assert extract_bearer_token("Bearer abc123") == "abc123"

    def test_keeps_everything_after_prefix(self) -> None:
        """Only the literal prefix is removed; the rest is the token verbatim."""
        assert extract_bearer_token("Bearer a b  c") == "a b  c"

    @pytest.mark.parametrize(
        "header",
        [None, "", "abc123", "Basic abc123", "bearer abc123", "Bearer"],
    )
    def test_absent_or_malformed_header_yields_empty(self, header) -> None:
        assert extract_bearer_token(header) == ""

    def test_prefix_only_yields_empty(self) -> None:
        assert extract_bearer_token("Bearer ") == ""


class TestIsTrustedToken:
    """Test exact-match trusted token lookup."""

    def test_exact_match(self) -> None:
        assert is_trusted_token("tok-1", {"tok-1", "tok-2"}) is True
        assert is_trusted_token("tok-2", {"tok-1", "tok-2"}) is True

    def test_unknown_token_rejected(self) -> None:
        assert is_trusted_token("wrong-token", {"tok-1"}) is False

    def test_prefix_and_suffix_do_not_match(self) -> None:
        assert is_trusted_token("tok", {"tok-1"}) is False
        assert is_trusted_token("tok-1-extra", {"tok-1"}) is False

    def test_empty_token_never_matches(self) -> None:
        assert is_trusted_token("", {"tok-1"}) is False
        assert is_trusted_token("", set()) is False

    def test_no_trusted_tokens_configured(self) -> None:
        assert is_trusted_token("tok-1", frozenset()) is False


def test_token_fingerprint_is_stable_and_does_not_contain_token() -> None:
    fingerprint = token_fingerprint("super-secret-token")

    assert fingerprint == token_fingerprint("super-secret-token")
    assert len(fingerprint) == 16
    assert "super-secret" not in fingerprint
