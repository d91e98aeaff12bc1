"""Tests for configuration loading and validation."""

from __future__ import annotations

import pytest

from openbands.config.loader import _deep_merge, load_config
from openbands.config.schema import (
    AttestationConfig,
    CommunityConfig,
    OpenBandsConfig,
    RateLimitConfig,
)
from openbands.core.errors import ConfigError


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Keep user/project config files and env overrides out of the tests."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.chdir(tmp_path)
    for var in (
        "OPENBANDS_CONFIG",
        "OPENBANDS_DATABASE_URL",
        "OPENBANDS_CELO_RPC_URL",
        "OPENBANDS_BASE_RPC_URL",
        "OPENBANDS_ZK_JWT_PROOF_MANAGER",
    ):
        monkeypatch.delenv(var, raising=False)


# ─── Schema Defaults ──────────────────────────────────────────


class TestSchemaDefaults:
    def test_top_level_defaults(self):
        cfg = OpenBandsConfig()
        assert cfg.database.url.startswith("sqlite+aiosqlite:///")
        assert cfg.api.port == 8080
        assert cfg.logging.level == "INFO"

    def test_rate_limit_defaults(self):
        cfg = RateLimitConfig()
        assert cfg.backend == "memory"
        assert (cfg.join.limit, cfg.join.window) == (10, 60)
        assert (cfg.create_community.limit, cfg.create_community.window) == (5, 3600)
        assert (cfg.create_post.limit, cfg.create_post.window) == (10, 3600)

    def test_attestation_defaults(self):
        cfg = AttestationConfig()
        assert cfg.celo.chain_id == 42220
        assert cfg.base.chain_id == 8453
        assert cfg.nationality_registry == "0x5aCA8d5C9F44D69Fa48cCeCb6b566475c2A5961a"
        assert cfg.age_registry == "0x72f1619824bcD499F4a27E28Bf9F1aa913c2EF2a"
        assert cfg.zk_jwt_proof_manager is None

    def test_community_defaults(self):
        cfg = CommunityConfig()
        assert cfg.signature_max_age_seconds == 300
        assert cfg.max_comment_depth == 10
        assert cfg.max_nationalities == 50


# ─── Merge ────────────────────────────────────────────────────


class TestDeepMerge:
    def test_nested_override(self):
        base = {"rate_limit": {"join": {"limit": 10, "window": 60}}}
        override = {"rate_limit": {"join": {"limit": 3}}}
        assert _deep_merge(base, override) == {
            "rate_limit": {"join": {"limit": 3, "window": 60}}
        }

    def test_base_not_mutated(self):
        base = {"a": {"b": 1}}
        _deep_merge(base, {"a": {"b": 2}})
        assert base == {"a": {"b": 1}}


# ─── Loading ──────────────────────────────────────────────────


class TestLoadConfig:
    def test_defaults_without_files(self):
        cfg = load_config()
        assert cfg == OpenBandsConfig()

    def test_explicit_file(self, tmp_path):
        path = tmp_path / "custom.toml"
        path.write_text('[api]\nport = 9999\n\n[rate_limit.join]\nlimit = 2\n')
        cfg = load_config(path=path)
        assert cfg.api.port == 9999
        assert cfg.rate_limit.join.limit == 2
        assert cfg.rate_limit.join.window == 60

    def test_project_file_discovered(self, tmp_path):
        (tmp_path / "openbands.toml").write_text('[logging]\nlevel = "DEBUG"\n')
        assert load_config().logging.level == "DEBUG"

    def test_overrides_win(self, tmp_path):
        path = tmp_path / "c.toml"
        path.write_text("[api]\nport = 1111\n")
        cfg = load_config(path=path, overrides={"api": {"port": 2222}})
        assert cfg.api.port == 2222

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(path=tmp_path / "nope.toml")

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("[api\nport = ")
        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_config(path=path)

    def test_validation_failure(self):
        with pytest.raises(ConfigError, match="validation failed"):
            load_config(overrides={"api": {"port": "not-a-port"}})

    def test_layer_order(self, monkeypatch, tmp_path):
        user_dir = tmp_path / "xdg" / "openbands"
        user_dir.mkdir(parents=True)
        (user_dir / "config.toml").write_text("[api]\nport = 1000\nhost = \"10.0.0.1\"\n")
        env_file = tmp_path / "env.toml"
        env_file.write_text("[api]\nport = 2000\n")
        monkeypatch.setenv("OPENBANDS_CONFIG", str(env_file))
        explicit = tmp_path / "explicit.toml"
        explicit.write_text("[api]\nport = 3000\n")

        assert load_config().api.port == 2000
        cfg = load_config(path=explicit)
        assert cfg.api.port == 3000
        assert cfg.api.host == "10.0.0.1"

    def test_env_config_path_missing(self, monkeypatch, tmp_path):
        monkeypatch.setenv("OPENBANDS_CONFIG", str(tmp_path / "missing.toml"))
        with pytest.raises(ConfigError, match="OPENBANDS_CONFIG"):
            load_config()


class TestEnvOverrides:
    def test_database_url(self, monkeypatch):
        monkeypatch.setenv("OPENBANDS_DATABASE_URL", "postgresql+asyncpg://db/openbands")
        assert load_config().database.url == "postgresql+asyncpg://db/openbands"

    def test_rpc_urls(self, monkeypatch):
        monkeypatch.setenv("OPENBANDS_CELO_RPC_URL", "http://celo.local")
        monkeypatch.setenv("OPENBANDS_BASE_RPC_URL", "http://base.local")
        cfg = load_config()
        assert cfg.attestation.celo.rpc_url == "http://celo.local"
        assert cfg.attestation.base.rpc_url == "http://base.local"

    def test_proof_manager_from_env(self, monkeypatch):
        monkeypatch.setenv("OPENBANDS_ZK_JWT_PROOF_MANAGER", "0x" + "1" * 40)
        assert load_config().attestation.zk_jwt_proof_manager == "0x" + "1" * 40

    def test_configured_proof_manager_not_replaced(self, monkeypatch):
        monkeypatch.setenv("OPENBANDS_ZK_JWT_PROOF_MANAGER", "0x" + "1" * 40)
        cfg = load_config(
            overrides={"attestation": {"zk_jwt_proof_manager": "0x" + "2" * 40}}
        )
        assert cfg.attestation.zk_jwt_proof_manager == "0x" + "2" * 40
