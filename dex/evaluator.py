"""
Fee-adjusted profitability of a two-venue flash swap.

Pure functions only: identical quotes always produce an identical decision.

Prices are reserve0/reserve1, i.e. the pair's token1 priced in pair token0.
The pair's token1 is cheap where the price is lower, so it is borrowed there
and sold at the other venue; the loan is repaid in the pair's token0, which
is therefore the return token:

    repayment = volume * borrow_price * (1 + borrow_fee)
    received  = volume * sell_price   * (1 - sell_fee)
    profit    = received - repayment

The trade size is the borrow token's fixed configured volume. It does not
follow available liquidity, and the trade's own price impact is not modeled.
"""

from decimal import Decimal, localcontext

from pair_arbitrage.config_schema import TokenSpec

from .types import PRICE_PRECISION, ArbitrageDecision, PriceQuote

ONE = Decimal(1)


def evaluate(
    quote_a: PriceQuote,
    quote_b: PriceQuote,
    token0: TokenSpec,
    token1: TokenSpec,
) -> ArbitrageDecision:
    """
    Decide direction, size and expected profit for one cycle.

    Args:
        quote_a: Venue A quote
        quote_b: Venue B quote
        token0: Configured native-coin token
        token1: Configured paired token

    Returns:
        ArbitrageDecision; profitable only when profit is strictly positive
        and the two prices differ

    Raises:
        ValueError: If the quotes disagree on pair orientation or a price is
            not positive
    """
    if quote_a.inverted != quote_b.inverted:
        raise ValueError("Venue quotes disagree on pair token ordering")
    if quote_a.price <= 0 or quote_b.price <= 0:
        raise ValueError(
            f"Venue prices must be positive, got {quote_a.price} and {quote_b.price}"
        )

    # Tie keeps venue A as the nominal borrow side
    if quote_b.price < quote_a.price:
        borrow_quote, sell_quote = quote_b, quote_a
    else:
        borrow_quote, sell_quote = quote_a, quote_b

    if borrow_quote.inverted:
        borrow_token, return_token = token0, token1
    else:
        borrow_token, return_token = token1, token0

    volume = borrow_token.trade_volume

    with localcontext() as ctx:
        ctx.prec = PRICE_PRECISION
        repayment = volume * borrow_quote.price * (ONE + borrow_quote.fee_rate)
        received = volume * sell_quote.price * (ONE - sell_quote.fee_rate)
        profit = received - repayment

        if return_token.address == token0.address:
            profit_native = profit
        else:
            profit_native = profit / sell_quote.price

    profitable = quote_a.price != quote_b.price and profit > 0

    return ArbitrageDecision(
        borrow_token=borrow_token,
        return_token=return_token,
        borrow_venue=borrow_quote.venue,
        sell_venue=sell_quote.venue,
        sell_pair_address=sell_quote.pair_address,
        borrow_price=borrow_quote.price,
        sell_price=sell_quote.price,
        borrow_volume=volume,
        expected_repayment=repayment,
        expected_received=received,
        expected_profit=profit,
        profit_native=profit_native,
        profitable=profitable,
    )
