"""
Configuration schema validation using Pydantic
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from web3 import Web3

from .exceptions import ConfigurationError, ValidationError

ADDRESS_LENGTH = 42
ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")
SYMBOL_PATTERN = re.compile(r"^[A-Z]{2,7}$")

# Avalanche C-Chain V2-style factories
PANGOLIN_FACTORY = "0xefa94DE7a4656D787667C749f7E1223D71E9FD88"
TRADERJOE_FACTORY = "0x9Ad6C38BE94206cA50bb0d90783181662f0Cfa10"


def checksum_address(value: Any, label: str = "address") -> str:
    """Validate a 0x-prefixed 20-byte hex address and return its checksum form."""
    if not isinstance(value, str):
        raise ValueError(f"{label} must be a string")
    if len(value) != ADDRESS_LENGTH:
        raise ValueError(
            f"{label} must be exactly {ADDRESS_LENGTH} characters, got {len(value)}"
        )
    if not ADDRESS_PATTERN.match(value):
        raise ValueError(f"{label} must be 0x followed by 40 hex characters")
    return Web3.to_checksum_address(value)


class TokenSpec(BaseModel):
    """
    One side of the traded pair.

    Immutable once validated. `volume` is the fixed amount borrowed when this
    token is the borrow side of an opportunity.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    address: str = Field(description="Checksummed token contract address")
    symbol: str = Field(description="2-7 uppercase letters")
    trade_volume: Decimal = Field(alias="volume", description="Fixed trade size")

    @field_validator("address", mode="before")
    @classmethod
    def validate_address(cls, v):
        return checksum_address(v)

    @field_validator("symbol", mode="before")
    @classmethod
    def validate_symbol(cls, v):
        if not isinstance(v, str):
            raise ValueError("symbol must be a string")
        symbol = v.upper()
        if not SYMBOL_PATTERN.match(symbol):
            raise ValueError(
                f"symbol must be 2-7 alphabetic characters, got {v!r}"
            )
        return symbol

    @field_validator("trade_volume", mode="before")
    @classmethod
    def validate_volume(cls, v):
        if isinstance(v, bool) or not isinstance(v, (int, float, str, Decimal)):
            raise ValueError("volume must be a number")
        try:
            volume = Decimal(str(v))
        except InvalidOperation:
            raise ValueError(f"volume must be a number, got {v!r}")
        if not volume.is_finite():
            raise ValueError("volume must be finite")
        if volume < 0:
            raise ValueError(f"volume must be non-negative, got {volume}")
        return volume


def validate_token(raw: Any, descriptor: str) -> TokenSpec:
    """
    Validate one raw token descriptor.

    Raises:
        ValidationError: naming the offending field and descriptor
    """
    if isinstance(raw, TokenSpec):
        return raw
    if not isinstance(raw, Mapping):
        raise ValidationError(
            f"{descriptor} must be a mapping with address, symbol and volume",
            descriptor=descriptor,
        )

    try:
        return TokenSpec.model_validate(dict(raw))
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = str(first["loc"][0]) if first["loc"] else None
        message = first["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        raise ValidationError(
            f"{descriptor}.{field}: {message}",
            field=field,
            descriptor=descriptor,
            details={"errors": e.errors(include_url=False)},
        ) from e


def validate_token_pair(token0: Any, token1: Any) -> Tuple[TokenSpec, TokenSpec]:
    """
    Validate both startup token descriptors.

    token0 is the network's native coin (wrapped), token1 the paired asset.
    Either both validate or an error is raised; nothing is partially applied.
    """
    spec0 = validate_token(token0, "token0")
    spec1 = validate_token(token1, "token1")
    if spec0.address == spec1.address:
        raise ValidationError(
            "token1.address: must differ from token0.address",
            field="address",
            descriptor="token1",
        )
    return spec0, spec1


class VenueSettings(BaseModel):
    """One V2-style DEX venue."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1, description="Display name")
    factory: str = Field(description="Factory contract exposing getPair")
    fee_bps: int = Field(default=30, ge=0, lt=10000, description="Swap fee in bps")

    @field_validator("factory", mode="before")
    @classmethod
    def validate_factory(cls, v):
        return checksum_address(v, "factory")


class VenuePairSettings(BaseModel):
    """The two venues compared every block."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    a: VenueSettings = VenueSettings(name="Pangolin", factory=PANGOLIN_FACTORY)
    b: VenueSettings = VenueSettings(name="TraderJoe", factory=TRADERJOE_FACTORY)


class BotFileConfig(BaseModel):
    """Schema of the optional YAML configuration file."""

    model_config = ConfigDict(extra="forbid")

    tokens: Dict[str, Any] = Field(default_factory=dict)
    venues: VenuePairSettings = Field(default_factory=VenuePairSettings)
    rpc_timeout_sec: float = Field(default=10.0, gt=0, le=300)
    confirmation_timeout_sec: float = Field(default=120.0, gt=0, le=3600)
    metrics_port: int = Field(default=0, ge=0, le=65535)


def validate_bot_config(config_dict: Optional[Dict[str, Any]]) -> BotFileConfig:
    """
    Validate a loaded YAML document.

    Token descriptors are left raw here; validate_token_pair checks them so
    that errors name the descriptor.
    """
    try:
        return BotFileConfig.model_validate(config_dict or {})
    except PydanticValidationError as e:
        first = e.errors()[0]
        key = ".".join(str(part) for part in first["loc"])
        raise ConfigurationError(
            f"Invalid configuration at '{key}': {first['msg']}",
            key=key,
            details={"errors": e.errors(include_url=False)},
        ) from e
