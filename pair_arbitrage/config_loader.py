"""
Configuration loading and normalization for the pair arbitrage bot.

Combines the process environment (signing key, node endpoints, executor
contract) with an optional YAML file (token descriptors, venues, timeouts)
into one read-only RuntimeConfig. Everything is validated before any network
resource is created.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from .config_schema import (
    TokenSpec,
    checksum_address,
    validate_bot_config,
    validate_token_pair,
)
from .exceptions import ConfigurationError

PRIVATE_KEY_PATTERN = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")
TRUE_VALUES = ("1", "true", "yes", "on")
FALSE_VALUES = ("0", "false", "no", "off", "")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class VenueConfig:
    """Normalized venue configuration."""

    name: str
    factory: str
    fee_bps: int = 30


@dataclass(frozen=True)
class RuntimeConfig:
    """Immutable runtime configuration object."""

    chain_node: str
    chain_node_ws: str
    flash_swap_address: str
    token0: TokenSpec
    token1: TokenSpec
    venue_a: VenueConfig
    venue_b: VenueConfig
    private_key: Optional[str] = field(default=None, repr=False)
    dry_run: bool = False
    log_level: str = "INFO"
    rpc_timeout_sec: float = 10.0
    confirmation_timeout_sec: float = 120.0
    metrics_port: int = 0


def load_yaml_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """Load and parse YAML configuration file."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}")
    except OSError as e:
        raise ConfigurationError(f"Failed to load config {config_path}: {e}")

    if config_dict is None:
        raise ConfigurationError(f"Empty configuration file: {config_path}")
    if not isinstance(config_dict, dict):
        raise ConfigurationError(
            f"Configuration root must be a mapping: {config_path}"
        )

    return config_dict


def derive_ws_url(http_url: str) -> str:
    """Swap an http(s) endpoint's scheme for the matching websocket scheme."""
    if http_url.startswith("https://"):
        return "wss://" + http_url[len("https://"):]
    if http_url.startswith("http://"):
        return "ws://" + http_url[len("http://"):]
    raise ConfigurationError(
        f"Cannot derive websocket endpoint from {http_url!r}", key="CHAIN_NODE"
    )


def _parse_bool(env: Mapping[str, str], key: str, default: bool = False) -> bool:
    raw = env.get(key)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise ConfigurationError(f"{key} must be a boolean, got {raw!r}", key=key)


def _normalize_environment(env: Mapping[str, str]) -> Dict[str, Any]:
    """Validate the recognized environment keys."""
    chain_node = (env.get("CHAIN_NODE") or "").strip()
    if not chain_node:
        raise ConfigurationError("CHAIN_NODE is required", key="CHAIN_NODE")
    if not chain_node.startswith(("http://", "https://")):
        raise ConfigurationError(
            "CHAIN_NODE must be an http:// or https:// URL", key="CHAIN_NODE"
        )

    chain_node_ws = (env.get("CHAIN_NODE_WS") or "").strip()
    if chain_node_ws:
        if not chain_node_ws.startswith(("ws://", "wss://")):
            raise ConfigurationError(
                "CHAIN_NODE_WS must be a ws:// or wss:// URL", key="CHAIN_NODE_WS"
            )
    else:
        chain_node_ws = derive_ws_url(chain_node)

    raw_flash_swap = (env.get("FLASH_SWAP_ADDRESS") or "").strip()
    if not raw_flash_swap:
        raise ConfigurationError(
            "FLASH_SWAP_ADDRESS is required", key="FLASH_SWAP_ADDRESS"
        )
    try:
        flash_swap_address = checksum_address(raw_flash_swap, "FLASH_SWAP_ADDRESS")
    except ValueError as e:
        raise ConfigurationError(str(e), key="FLASH_SWAP_ADDRESS")

    private_key = (env.get("PRIVATE_KEY") or "").strip() or None
    if private_key is not None and not PRIVATE_KEY_PATTERN.match(private_key):
        # Never echo the key itself
        raise ConfigurationError(
            "PRIVATE_KEY must be 32 bytes of hex", key="PRIVATE_KEY"
        )

    log_level = (env.get("LOG_LEVEL") or "INFO").strip().upper()
    if log_level not in LOG_LEVELS:
        raise ConfigurationError(
            f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}", key="LOG_LEVEL"
        )

    return {
        "chain_node": chain_node,
        "chain_node_ws": chain_node_ws,
        "flash_swap_address": flash_swap_address,
        "private_key": private_key,
        "dry_run": _parse_bool(env, "DRY_RUN"),
        "log_level": log_level,
    }


def load_runtime_config(
    config_path: Optional[Union[str, Path]] = None,
    env: Optional[Mapping[str, str]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> RuntimeConfig:
    """
    Load and normalize the bot configuration.

    Args:
        config_path: Optional YAML file with tokens, venues and tunables
        env: Environment mapping (defaults to os.environ)
        overrides: Values that replace normalized fields, e.g. from CLI flags

    Returns:
        Immutable runtime configuration

    Raises:
        ConfigurationError: If the environment or YAML file is invalid
        ValidationError: If a token descriptor is invalid
    """
    env = os.environ if env is None else env
    env_values = _normalize_environment(env)

    file_dict = load_yaml_config(config_path) if config_path else {}
    file_config = validate_bot_config(file_dict)

    tokens = file_config.tokens
    for descriptor in ("token0", "token1"):
        if descriptor not in tokens:
            raise ConfigurationError(
                f"tokens.{descriptor} is required", key=f"tokens.{descriptor}"
            )
    token0, token1 = validate_token_pair(tokens["token0"], tokens["token1"])

    venues = file_config.venues
    values: Dict[str, Any] = dict(
        env_values,
        token0=token0,
        token1=token1,
        venue_a=VenueConfig(
            name=venues.a.name, factory=venues.a.factory, fee_bps=venues.a.fee_bps
        ),
        venue_b=VenueConfig(
            name=venues.b.name, factory=venues.b.factory, fee_bps=venues.b.fee_bps
        ),
        rpc_timeout_sec=file_config.rpc_timeout_sec,
        confirmation_timeout_sec=file_config.confirmation_timeout_sec,
        metrics_port=file_config.metrics_port,
    )

    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if key not in values:
            raise ConfigurationError(f"Unknown configuration override: {key}", key=key)
        values[key] = value

    return RuntimeConfig(**values)
