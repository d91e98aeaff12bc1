"""Core types, errors, and shared utilities."""

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
from openbands.core.wallet import is_wallet_address, normalize_address

__all__ = [
    "AttestationError",
    "AttestationUnavailableError",
    "AuthorizationError",
    "ConfigError",
    "ConflictError",
    "NotFoundError",
    "OpenBandsError",
    "RateLimitExceededError",
    "RequestError",
    "SignatureError",
    "StorageError",
    "ValidationError",
    "is_wallet_address",
    "normalize_address",
]
