"""Tests for the core error hierarchy."""

from openbands.core.errors import (
    AttestationError,
    AttestationUnavailableError,
    AuthorizationError,
    ConfigError,
    ConflictError,
    NotFoundError,
    OpenBandsError,
    RateLimitExceededError,
    RequestError,
    SignatureError,
    StorageError,
    ValidationError,
)


class TestHierarchy:
    """All errors inherit from OpenBandsError."""

    def test_attestation_unavailable(self):
        err = AttestationUnavailableError("celo", "RPC down")
        assert isinstance(err, AttestationError)
        assert isinstance(err, OpenBandsError)

    def test_request_errors(self):
        for cls in (
            ValidationError,
            SignatureError,
            AuthorizationError,
            NotFoundError,
            ConflictError,
        ):
            assert issubclass(cls, RequestError)
            assert issubclass(cls, OpenBandsError)

    def test_other_errors(self):
        assert isinstance(ConfigError("bad"), OpenBandsError)
        assert isinstance(StorageError("db down"), OpenBandsError)
        assert isinstance(RateLimitExceededError("k", 1.0), OpenBandsError)

    def test_unavailable_is_not_a_request_error(self):
        assert not isinstance(AttestationUnavailableError("base", "x"), RequestError)


class TestStatusCodes:
    def test_codes(self):
        assert ValidationError.status_code == 400
        assert SignatureError.status_code == 401
        assert AuthorizationError.status_code == 403
        assert NotFoundError.status_code == 404
        assert ConflictError.status_code == 409


class TestMessages:
    def test_unavailable_prefixes_network(self):
        err = AttestationUnavailableError("celo", "wrong chain")
        assert err.network == "celo"
        assert str(err) == "[celo] wrong chain"

    def test_rate_limit_fields(self):
        err = RateLimitExceededError("0xabc", 12.4)
        assert err.key == "0xabc"
        assert err.retry_after == 12.4
        assert "retry after 12s" in str(err)

    def test_request_error_reason(self):
        err = AuthorizationError("You need to verify your age first")
        assert err.reason == "You need to verify your age first"
        assert str(err) == err.reason
