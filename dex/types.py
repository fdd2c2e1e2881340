"""
Core data types for two-venue flash swap arbitrage.
"""

from dataclasses import dataclass
from decimal import Decimal, localcontext
from enum import Enum
from typing import Optional

from pair_arbitrage.config_schema import TokenSpec
from pair_arbitrage.exceptions import ErrorKind
from pair_arbitrage.utils import TOKEN_QUANTUM, bps_to_rate

# Working precision for reserve ratios; results are quantized to 18 places
PRICE_PRECISION = 50


class Venue(str, Enum):
    """The two liquidity pools compared every block."""

    A = "A"
    B = "B"


@dataclass(frozen=True)
class ReservePair:
    """
    Reserves of one venue's pair, read fresh every cycle.

    Attributes:
        reserve0: Balance of the pair's token0, in token units
        reserve1: Balance of the pair's token1, in token units
    """

    reserve0: Decimal
    reserve1: Decimal

    @property
    def is_empty(self) -> bool:
        return self.reserve0 <= 0 or self.reserve1 <= 0

    def price(self) -> Decimal:
        """
        reserve0 / reserve1: the pair's token1 priced in token0 units.

        Raises:
            ZeroDivisionError: if reserve1 is zero
        """
        if self.reserve1 == 0:
            raise ZeroDivisionError("reserve1 is zero")
        with localcontext() as ctx:
            ctx.prec = PRICE_PRECISION
            return (self.reserve0 / self.reserve1).quantize(TOKEN_QUANTUM)

    def swapped(self) -> "ReservePair":
        return ReservePair(reserve0=self.reserve1, reserve1=self.reserve0)


@dataclass(frozen=True)
class PriceQuote:
    """
    One venue's price for this cycle.

    Attributes:
        venue: Which venue the quote came from
        price: reserve0/reserve1 of the venue's pair
        fee_bps: Swap fee charged by the venue, in basis points
        pair_address: Checksummed pair contract address
        inverted: True when the pair's token0 is the configured token1
    """

    venue: Venue
    price: Decimal
    fee_bps: int
    pair_address: str = ""
    inverted: bool = False

    @property
    def fee_rate(self) -> Decimal:
        return bps_to_rate(self.fee_bps)


@dataclass(frozen=True)
class ArbitrageDecision:
    """
    Directional profitability decision for one cycle.

    All amounts are in return-token units except `borrow_volume` (borrow-token
    units) and `profit_native` (native coin units).
    """

    borrow_token: TokenSpec
    return_token: TokenSpec
    borrow_venue: Venue
    sell_venue: Venue
    sell_pair_address: str
    borrow_price: Decimal
    sell_price: Decimal
    borrow_volume: Decimal
    expected_repayment: Decimal
    expected_received: Decimal
    expected_profit: Decimal
    profit_native: Decimal
    profitable: bool


@dataclass(frozen=True)
class ExecutionResult:
    """
    Terminal outcome of one submitted (or simulated) decision.

    Attributes:
        tx_hash: 0x-prefixed transaction hash, None for simulations and
            failures before submission
        confirmed: True only when the transaction was mined with status 1
        error: Failure category when not confirmed
        block_number: Block the transaction was mined in
        gas_used: Gas consumed by the mined transaction
        simulated: True when produced by a dry-run eth_call
    """

    tx_hash: Optional[str]
    confirmed: bool
    error: Optional[ErrorKind] = None
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    simulated: bool = False
