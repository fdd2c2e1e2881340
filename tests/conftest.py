"""Shared fixtures for the pair arbitrage test suite."""

from decimal import Decimal

import pytest
from web3 import Web3

from dex.evaluator import evaluate
from dex.types import PriceQuote, Venue
from pair_arbitrage.config_loader import VenueConfig
from pair_arbitrage.config_schema import (
    PANGOLIN_FACTORY,
    TRADERJOE_FACTORY,
    validate_token,
)

WAVAX = Web3.to_checksum_address("0xb31f66aa3c1e785363f0875a1b74e27b85fd66c7")
USDC = Web3.to_checksum_address("0xa7d7079b0fead91f3e65f86e8915cb59c1a4c664")
PAIR_A = Web3.to_checksum_address("0x" + "11" * 20)
PAIR_B = Web3.to_checksum_address("0x" + "22" * 20)


@pytest.fixture
def token0():
    return validate_token({"address": WAVAX, "symbol": "WAVAX", "volume": 10}, "token0")


@pytest.fixture
def token1():
    return validate_token({"address": USDC, "symbol": "USDC", "volume": 100}, "token1")


@pytest.fixture
def venues():
    return {
        Venue.A: VenueConfig(name="Pangolin", factory=PANGOLIN_FACTORY, fee_bps=30),
        Venue.B: VenueConfig(name="TraderJoe", factory=TRADERJOE_FACTORY, fee_bps=30),
    }


def _make_quotes(price_a, price_b, inverted=False, fee_bps=30):
    return (
        PriceQuote(Venue.A, Decimal(price_a), fee_bps, PAIR_A, inverted),
        PriceQuote(Venue.B, Decimal(price_b), fee_bps, PAIR_B, inverted),
    )


@pytest.fixture
def make_quotes():
    """Build a (venue A, venue B) quote pair from two prices"""
    return _make_quotes


@pytest.fixture
def unprofitable_quotes():
    """A quotes 10.00, B quotes 10.05: the spread does not cover both fees"""
    return _make_quotes("10.00", "10.05")


@pytest.fixture
def profitable_quotes():
    """A quotes 10.00, B quotes 10.10: about 3.97 profit on 100 borrowed"""
    return _make_quotes("10.00", "10.10")


@pytest.fixture
def profitable_decision(profitable_quotes, token0, token1):
    return evaluate(*profitable_quotes, token0, token1)


@pytest.fixture
def pair_addresses():
    return {Venue.A: PAIR_A, Venue.B: PAIR_B}
