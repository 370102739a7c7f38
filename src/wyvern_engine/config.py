"""
Configuration for the order engine.

Configuration resolves in layers (later layers override earlier ones):

1. Built-in network preset (contract addresses for ``mainnet`` or ``rinkeby``)
2. Optional YAML/JSON file, with ``${VAR}`` / ``$VAR`` tokens expanded from
   the environment
3. In-memory overrides supplied at call time
"""

from __future__ import annotations

import copy
import json
import os
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from eth_utils import is_address

from .constants import (
    DEFAULT_BUYER_FEE_BASIS_POINTS,
    DEFAULT_SELLER_FEE_BASIS_POINTS,
    MAINNET_EXCHANGE_ADDRESS,
    MAINNET_FEE_RECIPIENT,
    MAINNET_PROXY_REGISTRY_ADDRESS,
    MAINNET_TOKEN_TRANSFER_PROXY,
    MAINNET_WETH_ADDRESS,
    MARKETPLACE_SELLER_BOUNTY_BASIS_POINTS,
)
from .errors import ConfigError, ConfigNotFoundError

PRIVATE_KEY_ENV = "WYVERN_PRIVATE_KEY"
RPC_URL_ENV = "WYVERN_RPC_URL"


@dataclass
class RetryConfig:
    """Bounded retry counts and fixed delays for RPC reads."""

    proxy_poll_retries: int = 10
    proxy_poll_interval_seconds: float = 1.0
    ownership_retries: int = 1
    ownership_retry_delay_seconds: float = 0.5
    match_validation_retries: int = 1
    match_retry_delay_seconds: float = 0.5
    gas_estimation_retries: int = 2
    gas_retry_delay_seconds: float = 0.0
    receipt_timeout_seconds: float = 120.0


@dataclass
class GasLimitConfig:
    """Static gas limits used when estimation fails."""

    register_proxy: int = 410_000
    set_approval_for_all: int = 300_000
    approve_fungible: int = 120_000
    payment_approval: int = 90_000
    atomic_match: int = 350_000
    cancel_order: int = 100_000
    approve_order: int = 200_000
    approval_when_no_proxy: int = 300_000
    match_when_unapproved: int = 350_000


@dataclass
class FeeDefaults:
    buyer_fee_basis_points: int = DEFAULT_BUYER_FEE_BASIS_POINTS
    seller_fee_basis_points: int = DEFAULT_SELLER_FEE_BASIS_POINTS
    marketplace_seller_bounty_basis_points: int = MARKETPLACE_SELLER_BOUNTY_BASIS_POINTS


@dataclass
class EngineConfig:
    """Top-level configuration shared by every engine component."""

    network: str = "mainnet"
    rpc_url: Optional[str] = None
    chain_id: Optional[int] = 1
    exchange_address: str = MAINNET_EXCHANGE_ADDRESS
    proxy_registry_address: str = MAINNET_PROXY_REGISTRY_ADDRESS
    token_transfer_proxy: str = MAINNET_TOKEN_TRANSFER_PROXY
    fee_recipient: str = MAINNET_FEE_RECIPIENT
    weth_address: str = MAINNET_WETH_ADDRESS
    private_key: Optional[str] = None
    retry: RetryConfig = field(default_factory=RetryConfig)
    gas_limits: GasLimitConfig = field(default_factory=GasLimitConfig)
    fees: FeeDefaults = field(default_factory=FeeDefaults)

    def validate(self) -> "EngineConfig":
        for name in (
            "exchange_address",
            "proxy_registry_address",
            "token_transfer_proxy",
            "fee_recipient",
            "weth_address",
        ):
            value = getattr(self, name)
            if not isinstance(value, str) or not is_address(value):
                raise ConfigError(f"Config field '{name}' is not a valid address: {value!r}")
            setattr(self, name, value.lower())

        for name, value in asdict(self.retry).items():
            if name.endswith("_retries"):
                if value < 0:
                    raise ConfigError(f"Retry count '{name}' must be >= 0, got {value}")
            elif name == "receipt_timeout_seconds":
                if value <= 0:
                    raise ConfigError(f"'{name}' must be positive, got {value}")
            elif value < 0:
                raise ConfigError(f"Retry delay '{name}' must be >= 0, got {value}")

        for name, value in asdict(self.gas_limits).items():
            if value <= 0:
                raise ConfigError(f"Gas limit '{name}' must be positive, got {value}")
        return self

    def as_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload.pop("private_key", None)
        return payload


_NETWORK_PRESETS: Dict[str, Dict[str, Any]] = {
    "mainnet": {
        "network": "mainnet",
        "chain_id": 1,
        "exchange_address": MAINNET_EXCHANGE_ADDRESS,
        "proxy_registry_address": MAINNET_PROXY_REGISTRY_ADDRESS,
        "token_transfer_proxy": MAINNET_TOKEN_TRANSFER_PROXY,
        "fee_recipient": MAINNET_FEE_RECIPIENT,
        "weth_address": MAINNET_WETH_ADDRESS,
    },
    "rinkeby": {
        "network": "rinkeby",
        "chain_id": 4,
        "exchange_address": "0x5206e78b21ce315ce284fb24cf05e0585a93b1d9",
        "proxy_registry_address": "0x1e525eeaf261ca41b809884cbde9dd9e1619573a",
        "token_transfer_proxy": "0x82d102457854c985221249f86659c9d6cf12aa72",
        "fee_recipient": MAINNET_FEE_RECIPIENT,
        "weth_address": "0xc778417e063141139fce010982780140aa0cd5ab",
    },
}

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}|\$([A-Za-z0-9_]+)")


def _load_mapping(path: Path) -> Mapping[str, Any]:
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text)
    else:
        raise ConfigError(f"Unsupported config extension for {path}")
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level")
    return _expand_env(data)


def _expand_env(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _expand_env(val) for key, val in value.items()}
    if isinstance(value, list):
        return [_expand_env(item) for item in value]
    if isinstance(value, str):
        return _ENV_PATTERN.sub(_replace_env_token, value)
    return value


def _replace_env_token(match: re.Match[str]) -> str:
    key = match.group(1) or match.group(2)
    if not key:
        return match.group(0)
    env_val = os.getenv(key)
    if env_val is None:
        return match.group(0)
    return env_val


def _merge_dicts(base: Dict[str, Any], updates: Mapping[str, Any]) -> Dict[str, Any]:
    for key, value in updates.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            base[key] = _merge_dicts(base[key], value)
        else:
            base[key] = value
    return base


def _build_section(cls, payload: Optional[Mapping[str, Any]], section: str):
    try:
        return cls(**(payload or {}))
    except TypeError as exc:
        raise ConfigError(f"Invalid '{section}' section: {exc}") from exc


def load_engine_config(
    path: Optional[str | Path] = None,
    *,
    network: Optional[str] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> EngineConfig:
    """
    Load configuration from disk or return the network preset.

    Parameters
    ----------
    path: optional str
        Path to a YAML/JSON file. If omitted, only the preset and overrides apply.
    network: optional str
        Preset to start from. Defaults to the file's ``network`` key, then ``mainnet``.
    overrides: optional mapping
        Applied last, useful for tests.
    """
    payload: Dict[str, Any] = {}
    if path is not None:
        cfg_path = Path(path)
        if not cfg_path.is_file():
            raise ConfigNotFoundError(f"Engine config file '{path}' not found.")
        payload = dict(_load_mapping(cfg_path))

    network_name = network or payload.get("network") or "mainnet"
    try:
        merged = copy.deepcopy(_NETWORK_PRESETS[network_name])
    except KeyError as exc:
        raise ConfigError(
            f"Unknown network '{network_name}'. Expected one of: {', '.join(sorted(_NETWORK_PRESETS))}"
        ) from exc

    _merge_dicts(merged, payload)
    if overrides:
        _merge_dicts(merged, overrides)
    merged["network"] = network_name

    retry = _build_section(RetryConfig, merged.pop("retry", None), "retry")
    gas_limits = _build_section(GasLimitConfig, merged.pop("gas_limits", None), "gas_limits")
    fees = _build_section(FeeDefaults, merged.pop("fees", None), "fees")
    config = _build_section(EngineConfig, merged, "root")
    config.retry = retry
    config.gas_limits = gas_limits
    config.fees = fees
    if config.chain_id is not None:
        config.chain_id = int(config.chain_id)
    return config.validate()


def resolve_private_key(cli_value: Optional[str], config: EngineConfig) -> Optional[str]:
    """CLI flag, then config file, then ``WYVERN_PRIVATE_KEY``."""
    return cli_value or config.private_key or os.getenv(PRIVATE_KEY_ENV)


__all__ = [
    "EngineConfig",
    "FeeDefaults",
    "GasLimitConfig",
    "PRIVATE_KEY_ENV",
    "RPC_URL_ENV",
    "RetryConfig",
    "load_engine_config",
    "resolve_private_key",
]
