"""Shared configuration loader for nearctl."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

import yaml


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG_PATH = Path.home() / ".nearctl.yaml"
DEFAULT_CREDENTIALS_DIR = Path.home() / ".near-credentials"
DEFAULT_TIMEOUT = 30.0
_CONFIG_PATH_OVERRIDE: Path | None = None


@dataclass(frozen=True)
class NetworkConfig:
    """Connection details for one ledger network."""

    name: str
    rpc_url: str
    explorer_url: str | None = None
    api_key: str | None = None
    timeout: float = DEFAULT_TIMEOUT

    def explorer_transaction_url(self, tx_hash: str) -> str | None:
        if not self.explorer_url:
            return None
        return f"{self.explorer_url.rstrip('/')}/transactions/{tx_hash}"


BUILTIN_NETWORKS: dict[str, NetworkConfig] = {
    "mainnet": NetworkConfig(
        name="mainnet",
        rpc_url="https://archival-rpc.mainnet.near.org",
        explorer_url="https://explorer.near.org",
    ),
    "testnet": NetworkConfig(
        name="testnet",
        rpc_url="https://archival-rpc.testnet.near.org",
        explorer_url="https://explorer.testnet.near.org",
    ),
    "betanet": NetworkConfig(
        name="betanet",
        rpc_url="https://rpc.betanet.near.org",
        explorer_url="https://explorer.betanet.near.org",
    ),
}


def set_default_config_path(path: str | Path | None) -> None:
    """Remember a user-supplied config path for future loads."""

    global _CONFIG_PATH_OVERRIDE
    _CONFIG_PATH_OVERRIDE = Path(path).expanduser() if path else None


def _resolve_path(config_path: str | Path | None) -> tuple[Path, bool]:
    explicit = config_path is not None or _CONFIG_PATH_OVERRIDE is not None
    if config_path is not None:
        return Path(config_path).expanduser(), explicit
    return _CONFIG_PATH_OVERRIDE or DEFAULT_CONFIG_PATH, explicit


def _load_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {path}")
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Expected {path} to contain a YAML object with a 'networks' section")
    return loaded


def _networks_section(file_config: Mapping[str, Any], path: Path) -> dict[str, Any]:
    section = file_config.get("networks", {}) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Expected 'networks' to be a mapping in {path}")
    return section


def _coerce_timeout(raw: Any, *, source: str) -> float | None:
    if raw is None:
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid timeout in {source}: {raw}") from exc
    if value <= 0:
        raise ConfigurationError(f"Timeout in {source} must be positive: {raw}")
    return value


def _check_url(raw: str | None, *, source: str) -> str | None:
    if not raw:
        return None
    parsed = urlparse(raw)
    if parsed.scheme not in {"http", "https"} or not parsed.hostname:
        raise ConfigurationError(f"Invalid RPC endpoint URL in {source}: {raw}")
    return raw


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None:
            return value
    return default


def list_network_names(
    *,
    config_path: str | Path | None = None,
) -> list[str]:
    """Return built-in networks followed by networks declared in the config file."""

    path, explicit = _resolve_path(config_path)
    file_config = _load_config_file(path, required=explicit)
    names = list(BUILTIN_NETWORKS)
    for name in _networks_section(file_config, path):
        if name not in names:
            names.append(name)
    return names


def load_network_config(
    name: str | None = None,
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> NetworkConfig:
    """Load connection settings for ``name`` from overrides, environment and YAML."""

    env_map = os.environ if env is None else env
    path, explicit = _resolve_path(config_path)
    file_config = _load_config_file(path, required=explicit)
    networks = _networks_section(file_config, path)
    override_map = dict(overrides or {})

    resolved_name = _first_value(
        name, env_map.get("NEARCTL_NETWORK"), file_config.get("default_network"), "testnet"
    )
    section = networks.get(resolved_name, {}) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Expected networks.{resolved_name} to be a mapping in {path}")

    base = BUILTIN_NETWORKS.get(resolved_name)
    rpc_url = _first_value(
        _check_url(override_map.get("rpc_url"), source="overrides"),
        _check_url(env_map.get("NEARCTL_RPC_URL"), source="environment"),
        _check_url(section.get("rpc_url"), source=f"{path} networks.{resolved_name}"),
        base.rpc_url if base else None,
    )
    if not rpc_url:
        raise ConfigurationError(
            f"Unknown network '{resolved_name}'; declare networks.{resolved_name}.rpc_url in {path} "
            "or pass --rpc-url"
        )

    timeout = _first_value(
        _coerce_timeout(override_map.get("timeout"), source="overrides"),
        _coerce_timeout(env_map.get("NEARCTL_RPC_TIMEOUT"), source="environment"),
        _coerce_timeout(section.get("timeout"), source=f"{path} networks.{resolved_name}.timeout"),
        DEFAULT_TIMEOUT,
    )

    config = base or NetworkConfig(name=resolved_name, rpc_url=rpc_url)
    return replace(
        config,
        rpc_url=rpc_url,
        explorer_url=_first_value(section.get("explorer_url"), config.explorer_url),
        api_key=_first_value(
            override_map.get("api_key"), env_map.get("NEARCTL_API_KEY"), section.get("api_key")
        ),
        timeout=timeout,
    )


def credentials_dir(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> Path:
    """Directory holding ``<network>/<account_id>.json`` keychain files."""

    env_map = os.environ if env is None else env
    path, explicit = _resolve_path(config_path)
    file_config = _load_config_file(path, required=explicit)
    raw = _first_value(env_map.get("NEARCTL_CREDENTIALS_DIR"), file_config.get("credentials_dir"))
    return Path(raw).expanduser() if raw else DEFAULT_CREDENTIALS_DIR
