"""Load ``OpenBandsConfig`` from TOML files and the environment.

Files are merged table by table, later ones winning:

    ``$XDG_CONFIG_HOME/openbands/config.toml`` (or ``~/.config/...``)
    ``./openbands.toml``
    ``$OPENBANDS_CONFIG``
    the ``path`` passed to ``load_config`` (``openbands --config``)

``overrides`` are merged after the files. Deployment secrets come from the
environment last: ``OPENBANDS_DATABASE_URL``, the RPC URL variables named
by each chain's ``rpc_url_env``, and the proof-manager address variable
(only when no address is configured).
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from openbands.core.errors import ConfigError

from .schema import OpenBandsConfig

CONFIG_PATH_ENV = "OPENBANDS_CONFIG"
DATABASE_URL_ENV = "OPENBANDS_DATABASE_URL"


def _config_files(explicit: str | Path | None) -> list[Path]:
    """Existing config files, lowest priority first."""
    config_home = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    implicit = [Path(config_home) / "openbands" / "config.toml", Path.cwd() / "openbands.toml"]
    files = [p for p in implicit if p.is_file()]

    env_path = os.environ.get(CONFIG_PATH_ENV)
    if env_path:
        if not Path(env_path).is_file():
            msg = f"{CONFIG_PATH_ENV} points to non-existent file: {env_path}"
            raise ConfigError(msg)
        files.append(Path(env_path))

    if explicit is not None:
        if not Path(explicit).is_file():
            msg = f"Config file not found: {explicit}"
            raise ConfigError(msg)
        files.append(Path(explicit))
    return files


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {path}: {e}"
        raise ConfigError(msg) from e
    except OSError as e:
        msg = f"Cannot read config file {path}: {e}"
        raise ConfigError(msg) from e


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``; nested tables merge key by key."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            value = _deep_merge(current, value)
        merged[key] = value
    return merged


def _apply_env(config: OpenBandsConfig) -> None:
    config.database.url = os.environ.get(DATABASE_URL_ENV) or config.database.url

    attestation = config.attestation
    for chain in (attestation.celo, attestation.base):
        if chain.rpc_url_env:
            chain.rpc_url = os.environ.get(chain.rpc_url_env) or chain.rpc_url

    # A configured address is never replaced by the environment.
    if attestation.zk_jwt_proof_manager is None and attestation.zk_jwt_proof_manager_env:
        attestation.zk_jwt_proof_manager = os.environ.get(attestation.zk_jwt_proof_manager_env)


def load_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> OpenBandsConfig:
    """Build the validated configuration.

    Raises:
        ConfigError: a named file is missing, a file is not valid TOML,
            or the merged values fail validation.
    """
    merged: dict[str, Any] = {}
    for config_file in _config_files(path):
        merged = _deep_merge(merged, _read_toml(config_file))
    merged = _deep_merge(merged, overrides or {})

    try:
        config = OpenBandsConfig.model_validate(merged)
    except ValidationError as e:
        msg = f"Configuration validation failed: {e}"
        raise ConfigError(msg) from e

    _apply_env(config)
    return config
