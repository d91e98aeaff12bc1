"""Exception hierarchy for openbands.

Every module imports from here. The hierarchy is:

    OpenBandsError
    ├── AttestationError
    │   └── AttestationUnavailableError(network)
    ├── RateLimitExceededError(key, retry_after)
    ├── RequestError(status_code)
    │   ├── ValidationError          (400)
    │   ├── SignatureError           (401)
    │   ├── AuthorizationError       (403)
    │   ├── NotFoundError            (404)
    │   └── ConflictError            (409)
    ├── ConfigError
    └── StorageError
"""

from __future__ import annotations


class OpenBandsError(Exception):
    """Base exception for all openbands errors."""


# ─── Attestation Errors ───────────────────────────────────────


class AttestationError(OpenBandsError):
    """Base for attestation registry errors."""


class AttestationUnavailableError(AttestationError):
    """The registry could not be read (RPC failure, wrong network, no contract).

    Distinct from "no badge": callers must not treat this as a denial.
    """

    def __init__(self, network: str, message: str) -> None:
        self.network = network
        super().__init__(f"[{network}] {message}")


# ─── Rate Limiting ────────────────────────────────────────────


class RateLimitExceededError(OpenBandsError):
    """Too many attempts for a key within the current window."""

    def __init__(self, key: str, retry_after: float) -> None:
        self.key = key
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded for {key} (retry after {retry_after:.0f}s)")


# ─── Request Errors ───────────────────────────────────────────


class RequestError(OpenBandsError):
    """A request that cannot be served; carries the HTTP status to return."""

    status_code = 400

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class ValidationError(RequestError):
    """Malformed input (bad address, content length, missing fields)."""

    status_code = 400


class SignatureError(RequestError):
    """Wallet signature did not verify."""

    status_code = 401


class AuthorizationError(RequestError):
    """Caller lacks the badge or membership required for the action."""

    status_code = 403


class NotFoundError(RequestError):
    """Community, post or comment does not exist."""

    status_code = 404


class ConflictError(RequestError):
    """Resource already exists."""

    status_code = 409


# ─── Configuration Errors ─────────────────────────────────────


class ConfigError(OpenBandsError):
    """Invalid configuration."""


# ─── Storage Errors ───────────────────────────────────────────


class StorageError(OpenBandsError):
    """Database or schema error."""
