"""Tests for the config_loader module."""

from dataclasses import FrozenInstanceError
from decimal import Decimal

import pytest
import yaml
from web3 import Web3

from pair_arbitrage.config_loader import (
    RuntimeConfig,
    VenueConfig,
    derive_ws_url,
    load_runtime_config,
    load_yaml_config,
)
from pair_arbitrage.exceptions import ConfigurationError, ValidationError

WAVAX = "0xb31f66aa3c1e785363f0875a1b74e27b85fd66c7"
USDC = "0xa7d7079b0fead91f3e65f86e8915cb59c1a4c664"
FLASH_SWAP = "0x5b38da6a701c568545dcfcb03fcb875f56beddc4"
PRIVATE_KEY = "0x" + "11" * 32


@pytest.fixture
def env():
    return {
        "CHAIN_NODE": "https://api.avax.network/ext/bc/C/rpc",
        "FLASH_SWAP_ADDRESS": FLASH_SWAP,
        "PRIVATE_KEY": PRIVATE_KEY,
    }


@pytest.fixture
def config_file(tmp_path):
    config_data = {
        "tokens": {
            "token0": {"address": WAVAX, "symbol": "WAVAX", "volume": 10},
            "token1": {"address": USDC, "symbol": "usdc", "volume": 100},
        },
        "rpc_timeout_sec": 5,
        "metrics_port": 9100,
    }
    path = tmp_path / "flash_arb.yaml"
    path.write_text(yaml.dump(config_data))
    return path


def test_load_yaml_config_valid(tmp_path):
    """Test loading a valid YAML configuration."""
    path = tmp_path / "config.yaml"
    path.write_text("metrics_port: 9100\n")
    assert load_yaml_config(path) == {"metrics_port": 9100}


def test_load_yaml_config_file_not_found():
    """Test loading config from non-existent file."""
    with pytest.raises(ConfigurationError, match="Configuration file not found"):
        load_yaml_config("/non/existent/file.yaml")


def test_load_yaml_config_empty_file(tmp_path):
    """Test loading config from empty file."""
    path = tmp_path / "empty.yaml"
    path.write_text("")
    with pytest.raises(ConfigurationError, match="Empty configuration file"):
        load_yaml_config(path)


def test_load_yaml_config_invalid_yaml(tmp_path):
    """Test loading config with invalid YAML."""
    path = tmp_path / "broken.yaml"
    path.write_text("tokens: [unclosed\n")
    with pytest.raises(ConfigurationError, match="Invalid YAML"):
        load_yaml_config(path)


def test_load_yaml_config_non_mapping(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n")
    with pytest.raises(ConfigurationError, match="must be a mapping"):
        load_yaml_config(path)


@pytest.mark.parametrize(
    "http_url, ws_url",
    [
        ("https://node.example/ext/bc/C/rpc", "wss://node.example/ext/bc/C/rpc"),
        ("http://localhost:9650", "ws://localhost:9650"),
    ],
)
def test_derive_ws_url(http_url, ws_url):
    assert derive_ws_url(http_url) == ws_url


class TestLoadRuntimeConfig:
    def test_full_config(self, env, config_file):
        config = load_runtime_config(config_file, env=env)

        assert isinstance(config, RuntimeConfig)
        assert config.chain_node == env["CHAIN_NODE"]
        assert config.chain_node_ws == "wss://api.avax.network/ext/bc/C/rpc"
        assert config.flash_swap_address == Web3.to_checksum_address(FLASH_SWAP)
        assert config.private_key == PRIVATE_KEY
        assert config.dry_run is False
        assert config.log_level == "INFO"
        assert config.token0.symbol == "WAVAX"
        assert config.token1.symbol == "USDC"
        assert config.token1.trade_volume == Decimal("100")
        assert config.venue_a == VenueConfig(
            name="Pangolin",
            factory=Web3.to_checksum_address("0xefa94de7a4656d787667c749f7e1223d71e9fd88"),
            fee_bps=30,
        )
        assert config.venue_b.name == "TraderJoe"
        assert config.rpc_timeout_sec == 5
        assert config.confirmation_timeout_sec == 120.0
        assert config.metrics_port == 9100

    def test_config_is_frozen(self, env, config_file):
        config = load_runtime_config(config_file, env=env)
        with pytest.raises(FrozenInstanceError):
            config.dry_run = True

    def test_private_key_not_in_repr(self, env, config_file):
        config = load_runtime_config(config_file, env=env)
        assert "11" * 32 not in repr(config)

    def test_explicit_ws_endpoint(self, env, config_file):
        env["CHAIN_NODE_WS"] = "wss://ws.example/ext/bc/C/ws"
        config = load_runtime_config(config_file, env=env)
        assert config.chain_node_ws == "wss://ws.example/ext/bc/C/ws"

    def test_dry_run_and_log_level(self, env, config_file):
        env["DRY_RUN"] = "true"
        env["LOG_LEVEL"] = "debug"
        config = load_runtime_config(config_file, env=env)
        assert config.dry_run is True
        assert config.log_level == "DEBUG"

    def test_overrides(self, env, config_file):
        config = load_runtime_config(
            config_file, env=env, overrides={"dry_run": True, "metrics_port": None}
        )
        assert config.dry_run is True
        assert config.metrics_port == 9100

    def test_unknown_override(self, env, config_file):
        with pytest.raises(ConfigurationError, match="Unknown configuration override"):
            load_runtime_config(config_file, env=env, overrides={"gas_limit": 1})

    def test_private_key_optional(self, env, config_file):
        del env["PRIVATE_KEY"]
        assert load_runtime_config(config_file, env=env).private_key is None

    @pytest.mark.parametrize(
        "key, value",
        [
            ("CHAIN_NODE", None),
            ("CHAIN_NODE", "ftp://node.example"),
            ("CHAIN_NODE_WS", "https://node.example"),
            ("FLASH_SWAP_ADDRESS", None),
            ("FLASH_SWAP_ADDRESS", "0x1234"),
            ("PRIVATE_KEY", "0x1234"),
            ("DRY_RUN", "maybe"),
            ("LOG_LEVEL", "VERBOSE"),
        ],
    )
    def test_invalid_environment(self, env, config_file, key, value):
        if value is None:
            env.pop(key)
        else:
            env[key] = value

        with pytest.raises(ConfigurationError) as exc_info:
            load_runtime_config(config_file, env=env)
        assert exc_info.value.key == key

    def test_private_key_never_echoed(self, env, config_file):
        env["PRIVATE_KEY"] = "0xdeadbeef"
        with pytest.raises(ConfigurationError) as exc_info:
            load_runtime_config(config_file, env=env)
        assert "deadbeef" not in str(exc_info.value)

    def test_missing_tokens(self, env, tmp_path):
        path = tmp_path / "no_tokens.yaml"
        path.write_text("metrics_port: 0\n")
        with pytest.raises(ConfigurationError) as exc_info:
            load_runtime_config(path, env=env)
        assert exc_info.value.key == "tokens.token0"

    def test_no_file_means_no_tokens(self, env):
        with pytest.raises(ConfigurationError):
            load_runtime_config(None, env=env)

    def test_invalid_token_raises_validation_error(self, env, tmp_path):
        path = tmp_path / "bad_token.yaml"
        path.write_text(
            yaml.dump(
                {
                    "tokens": {
                        "token0": {"address": WAVAX, "symbol": "WAVAX", "volume": 10},
                        "token1": {"address": USDC[:-1], "symbol": "USDC", "volume": 100},
                    }
                }
            )
        )
        with pytest.raises(ValidationError) as exc_info:
            load_runtime_config(path, env=env)
        assert exc_info.value.field == "address"
        assert exc_info.value.descriptor == "token1"
