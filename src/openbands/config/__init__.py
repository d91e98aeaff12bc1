"""Configuration loading and validation."""

from openbands.config.loader import load_config
from openbands.config.schema import (
    APIConfig,
    AttestationConfig,
    ChainConfig,
    CommunityConfig,
    DatabaseConfig,
    LoggingConfig,
    OpenBandsConfig,
    RateLimitConfig,
    RateLimitRule,
)

__all__ = [
    "APIConfig",
    "AttestationConfig",
    "ChainConfig",
    "CommunityConfig",
    "DatabaseConfig",
    "LoggingConfig",
    "OpenBandsConfig",
    "RateLimitConfig",
    "RateLimitRule",
    "load_config",
]
