"""Pydantic models for openbands configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field


class DatabaseConfig(BaseModel):
    """Database connection settings."""

    url: str = "sqlite+aiosqlite:///~/.local/share/openbands/openbands.db"
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: float = 30.0
    pool_recycle: int = 3600


class APIConfig(BaseModel):
    """REST API server settings."""

    host: str = "127.0.0.1"
    port: int = 8080
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])


class RateLimitRule(BaseModel):
    """Allow ``limit`` attempts per ``window`` seconds for one wallet."""

    limit: int = 10
    window: int = 60


class RateLimitConfig(BaseModel):
    """Per-wallet rate limiting for mutating actions."""

    backend: str = "memory"  # memory, redis
    redis_url: str = "redis://localhost:6379/0"
    join: RateLimitRule = Field(default_factory=lambda: RateLimitRule(limit=10, window=60))
    create_community: RateLimitRule = Field(
        default_factory=lambda: RateLimitRule(limit=5, window=3600)
    )
    create_post: RateLimitRule = Field(
        default_factory=lambda: RateLimitRule(limit=10, window=3600)
    )
    create_comment: RateLimitRule = Field(
        default_factory=lambda: RateLimitRule(limit=30, window=3600)
    )


class ChainConfig(BaseModel):
    """A single EVM network used for attestation reads."""

    chain_id: int
    rpc_url: str | None = None
    rpc_url_env: str | None = None


class AttestationConfig(BaseModel):
    """Where badge attestations live on-chain."""

    celo: ChainConfig = Field(
        default_factory=lambda: ChainConfig(
            chain_id=42220,
            rpc_url="https://forno.celo.org",
            rpc_url_env="OPENBANDS_CELO_RPC_URL",
        )
    )
    base: ChainConfig = Field(
        default_factory=lambda: ChainConfig(
            chain_id=8453,
            rpc_url="https://mainnet.base.org",
            rpc_url_env="OPENBANDS_BASE_RPC_URL",
        )
    )
    nationality_registry: str = "0x5aCA8d5C9F44D69Fa48cCeCb6b566475c2A5961a"
    age_registry: str = "0x72f1619824bcD499F4a27E28Bf9F1aa913c2EF2a"
    zk_jwt_proof_manager: str | None = None
    zk_jwt_proof_manager_env: str = "OPENBANDS_ZK_JWT_PROOF_MANAGER"
    request_timeout: float = 10.0


class CommunityConfig(BaseModel):
    """Community creation and discussion limits."""

    signature_max_age_seconds: int = 300
    max_comment_depth: int = 10
    max_nationalities: int = 50


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str = ""


class OpenBandsConfig(BaseModel):
    """Top-level configuration for openbands."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    attestation: AttestationConfig = Field(default_factory=AttestationConfig)
    community: CommunityConfig = Field(default_factory=CommunityConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
