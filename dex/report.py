"""
Console reporting of cycles and chain events.

ReportLogger is the logging consumer of the event channel: every finished
cycle is rendered as a one-row table and every domain event gets a log line.
"""

from typing import Dict

from tabulate import tabulate
from web3 import Web3

from pair_arbitrage.config_schema import TokenSpec
from pair_arbitrage.events import (
    CycleReportEvent,
    EventBus,
    GasAddedEvent,
    TradeEvent,
    TxHashEvent,
    WithdrawalEvent,
)
from pair_arbitrage.utils import format_amount, format_duration, get_logger, to_units

from .types import Venue

logger = get_logger(__name__)


def render_cycle_table(
    report, venue_names: Dict[Venue, str], token0: TokenSpec, token1: TokenSpec
) -> str:
    """
    One-row grid with both venue prices, the borrow leg and the potential
    profit (after swap fees, before gas).
    """
    prices = {quote.venue: quote.price for quote in report.quotes}
    headers = [
        "Token0",
        "Token1",
        venue_names[Venue.A],
        venue_names[Venue.B],
        "Borrow",
        "Potential Profit",
    ]
    row = [
        token0.symbol,
        token1.symbol,
        _format_price(prices.get(Venue.A)),
        _format_price(prices.get(Venue.B)),
    ]

    decision = report.decision
    if decision is None:
        row += ["-", "-"]
    else:
        row += [
            f"{format_amount(decision.borrow_volume)} {decision.borrow_token.symbol}",
            f"{format_amount(decision.expected_profit)} {decision.return_token.symbol}",
        ]

    return tabulate([row], headers=headers, tablefmt="grid", disable_numparse=True)


def _format_price(price) -> str:
    if price is None:
        return "-"
    return f"{price:.8f}"


class ReportLogger:
    """Logs cycle tables and domain events."""

    def __init__(self, venue_names: Dict[Venue, str], token0: TokenSpec, token1: TokenSpec):
        self.venue_names = venue_names
        self.token0 = token0
        self.token1 = token1

    def attach(self, bus: EventBus) -> None:
        bus.subscribe(CycleReportEvent, self.on_cycle)
        bus.subscribe(TxHashEvent, self.on_tx_hash)
        bus.subscribe(TradeEvent, self.on_trade)
        bus.subscribe(GasAddedEvent, self.on_gas_added)
        bus.subscribe(WithdrawalEvent, self.on_withdrawal)

    def on_cycle(self, event: CycleReportEvent) -> None:
        report = event.report
        if report.dropped:
            return

        if report.quotes:
            table = render_cycle_table(report, self.venue_names, self.token0, self.token1)
            logger.info(f"\n>> Block {report.block_number}\n{table}")

        summary = (
            f"Block {report.block_number}: {report.outcome} "
            f"in {format_duration(report.duration_seconds)}"
        )
        if report.result is not None and report.result.tx_hash:
            summary += f" (tx {report.result.tx_hash})"
        if report.note:
            summary += f" [{report.note}]"

        if report.error is not None:
            logger.warning(f"{summary}: {report.error.value}: {report.error_message}")
        else:
            logger.info(summary)

    def on_tx_hash(self, event: TxHashEvent) -> None:
        logger.info(f"Trade submitted: {event.hash}")

    def on_trade(self, event: TradeEvent) -> None:
        symbol = self._symbol_for(event.token)
        logger.info(
            f"Trade completed: profit {format_amount(to_units(event.profit))} {symbol}"
        )

    def on_gas_added(self, event: GasAddedEvent) -> None:
        logger.info(f"Gas added by {event.by}: {format_amount(to_units(event.amount))}")

    def on_withdrawal(self, event: WithdrawalEvent) -> None:
        logger.info(f"Withdrawal by {event.by}: {format_amount(to_units(event.amount))}")

    def _symbol_for(self, address: str) -> str:
        try:
            checksummed = Web3.to_checksum_address(address)
        except ValueError:
            return address
        for token in (self.token0, self.token1):
            if token.address == checksummed:
                return token.symbol
        return checksummed
