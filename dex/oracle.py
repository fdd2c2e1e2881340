"""
Per-venue price reads for the configured token pair.

Pair contracts are resolved once through each venue's factory and cached for
the life of the process. Reserves are never cached: every quote is a fresh
read bounded by the RPC deadline.
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from web3 import Web3

from pair_arbitrage.config_loader import VenueConfig
from pair_arbitrage.config_schema import TokenSpec
from pair_arbitrage.exceptions import QuoteUnavailable
from pair_arbitrage.utils import get_logger

from .adapters.v2 import ZERO_ADDRESS, fetch_reserves_async, resolve_pair_async
from .types import PriceQuote, Venue

logger = get_logger(__name__)


@dataclass(frozen=True)
class ResolvedPair:
    """A venue's pair contract for the configured tokens."""

    venue: Venue
    address: str
    inverted: bool


class PairPriceOracle:
    """
    Reads reserve-derived prices from both venues.

    Args:
        web3: Connected Web3 instance (owned by the caller)
        token0: Configured native-coin token
        token1: Configured paired token
        venues: Venue configuration for Venue.A and Venue.B
        rpc_timeout: Deadline in seconds for each RPC read
    """

    def __init__(
        self,
        web3: Web3,
        token0: TokenSpec,
        token1: TokenSpec,
        venues: Dict[Venue, VenueConfig],
        rpc_timeout: float = 10.0,
    ):
        missing = [venue.value for venue in Venue if venue not in venues]
        if missing:
            raise ValueError(f"Missing venue configuration: {', '.join(missing)}")

        self.web3 = web3
        self.token0 = token0
        self.token1 = token1
        self.venues = venues
        self.rpc_timeout = rpc_timeout
        self._pairs: Dict[Venue, ResolvedPair] = {}
        self._resolve_lock = asyncio.Lock()

    @property
    def resolved(self) -> bool:
        return len(self._pairs) == len(Venue)

    def pair(self, venue: Venue) -> Optional[ResolvedPair]:
        return self._pairs.get(venue)

    async def resolve(self) -> Dict[Venue, ResolvedPair]:
        """
        Resolve both venues' pair contracts, once.

        Raises:
            QuoteUnavailable: If a factory call fails or a pair does not exist
        """
        async with self._resolve_lock:
            for venue in Venue:
                if venue not in self._pairs:
                    self._pairs[venue] = await self._resolve_venue(venue)
        return dict(self._pairs)

    async def _resolve_venue(self, venue: Venue) -> ResolvedPair:
        config = self.venues[venue]
        try:
            pair_addr, pair_token0 = await asyncio.wait_for(
                resolve_pair_async(
                    self.web3, config.factory, self.token0.address, self.token1.address
                ),
                timeout=self.rpc_timeout,
            )
        except asyncio.TimeoutError as e:
            raise QuoteUnavailable(
                f"{config.name}: pair lookup timed out after {self.rpc_timeout}s",
                venue=config.name,
            ) from e
        except Exception as e:
            raise QuoteUnavailable(
                f"{config.name}: pair lookup failed: {e}", venue=config.name
            ) from e

        if pair_addr == ZERO_ADDRESS:
            raise QuoteUnavailable(
                f"{config.name}: no pair for {self.token0.symbol}/{self.token1.symbol}",
                venue=config.name,
            )

        if pair_token0 not in (self.token0.address, self.token1.address):
            raise QuoteUnavailable(
                f"{config.name}: pair {pair_addr} does not hold the configured tokens",
                venue=config.name,
            )

        resolved = ResolvedPair(
            venue=venue,
            address=pair_addr,
            inverted=pair_token0 != self.token0.address,
        )
        logger.info(
            f"{config.name} pair {self.token0.symbol}/{self.token1.symbol}: "
            f"{pair_addr}{' (inverted)' if resolved.inverted else ''}"
        )
        return resolved

    async def current_price(self, venue: Venue) -> PriceQuote:
        """
        Fresh reserve0/reserve1 quote for one venue.

        Raises:
            QuoteUnavailable: On RPC failure, deadline expiry, empty reserves or a
                price below 18-decimal resolution
        """
        if venue not in self._pairs:
            await self.resolve()

        resolved = self._pairs[venue]
        config = self.venues[venue]

        try:
            reserves = await asyncio.wait_for(
                fetch_reserves_async(self.web3, resolved.address),
                timeout=self.rpc_timeout,
            )
        except asyncio.TimeoutError as e:
            raise QuoteUnavailable(
                f"{config.name}: reserve read timed out after {self.rpc_timeout}s",
                venue=config.name,
            ) from e
        except Exception as e:
            raise QuoteUnavailable(
                f"{config.name}: reserve read failed: {e}", venue=config.name
            ) from e

        if reserves.is_empty:
            raise QuoteUnavailable(
                f"{config.name}: pair {resolved.address} has an empty reserve",
                venue=config.name,
            )

        price = reserves.price()
        if price == 0:
            raise QuoteUnavailable(
                f"{config.name}: price of pair {resolved.address} rounds to zero",
                venue=config.name,
            )

        return PriceQuote(
            venue=venue,
            price=price,
            fee_bps=config.fee_bps,
            pair_address=resolved.address,
            inverted=resolved.inverted,
        )

    async def fetch_quotes(self) -> Tuple[PriceQuote, PriceQuote]:
        """
        Read both venues concurrently.

        Raises:
            QuoteUnavailable: The first venue failure; no partial result
        """
        if not self.resolved:
            await self.resolve()

        results = await asyncio.gather(
            self.current_price(Venue.A),
            self.current_price(Venue.B),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        quote_a, quote_b = results
        return quote_a, quote_b
