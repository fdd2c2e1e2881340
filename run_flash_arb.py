#!/usr/bin/env python3
"""
Run the two-venue flash swap arbitrage bot.

Watches new block heads, compares the configured pair's price on both venues
every block and fires the flash swap contract when the spread covers both
swap fees. Contract events (Trade, GasAdded, Withdraw) are forwarded to the
log and the metrics endpoint.

MODES:
  1. Live (default): Submit real transactions (REQUIRES PRIVATE_KEY)
  2. Dry Run: Simulate flashSwap with eth_call, nothing is signed or sent

Usage:
  # Dry run
  python run_flash_arb.py --config configs/flash_arb.yaml --dry-run

  # Live execution
  python run_flash_arb.py --config configs/flash_arb.yaml

  # Show the flash swap contract's gas balance and exit
  python run_flash_arb.py --config configs/flash_arb.yaml --check-gas

Environment Variables:
  CHAIN_NODE: HTTP(S) JSON-RPC endpoint (required)
  CHAIN_NODE_WS: Websocket endpoint (default: derived from CHAIN_NODE)
  PRIVATE_KEY: Signing key (required unless DRY_RUN)
  FLASH_SWAP_ADDRESS: Flash swap contract address (required)
  DRY_RUN: Simulate instead of submitting (default: false)
  LOG_LEVEL: Logging level (default: INFO)
"""

import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv

import logging_config
from dex.event_bridge import ChainEventBridge
from dex.report import ReportLogger
from dex.runner import CycleController
from dex.subscriptions import contract_logs, new_heads
from dex.types import Venue
from pair_arbitrage import VERSION
from pair_arbitrage.config_loader import LOG_LEVELS, load_runtime_config
from pair_arbitrage.events import EventBus
from pair_arbitrage.exceptions import PairArbitrageError
from pair_arbitrage.metrics import get_metrics
from pair_arbitrage.utils import format_amount, get_logger, to_units

logger = get_logger(__name__)


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Two-venue flash swap arbitrage bot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        "--config",
        type=str,
        default="configs/flash_arb.yaml",
        help="Path to the bot config YAML file (default: configs/flash_arb.yaml)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Simulate flashSwap with eth_call instead of submitting",
    )
    parser.add_argument(
        "--check-gas",
        action="store_true",
        help="Print the flash swap contract's gas balance and exit",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Logging level (default: LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Serve Prometheus metrics on this port (0 disables)",
    )

    return parser.parse_args(argv)


async def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    load_dotenv()
    logging_config.setup()

    try:
        config = load_runtime_config(
            args.config,
            overrides={
                "dry_run": True if (args.dry_run or args.check_gas) else None,
                "log_level": args.log_level,
                "metrics_port": args.metrics_port,
            },
        )
    except PairArbitrageError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    if config.log_level == "DEBUG":
        logging_config.setup_debug()
    else:
        logging_config.setup(level=getattr(logging, config.log_level))
    logger.info(f"Pair arbitrage v{VERSION}")
    logger.info(f"Execution Mode: {'DRY RUN' if config.dry_run else 'LIVE'}")
    logger.info(
        f"Pair: {config.token0.symbol}/{config.token1.symbol} on "
        f"{config.venue_a.name} and {config.venue_b.name}"
    )

    bus = EventBus()
    metrics = get_metrics()
    metrics_started = False

    try:
        controller = CycleController.from_config(config, bus)

        balance = await controller.executor.check_gas()
        logger.info(f"Flash swap contract gas balance: {format_amount(to_units(balance))}")
        if args.check_gas:
            print(balance)
            return 0

        await controller.oracle.resolve()

        ReportLogger(
            {Venue.A: config.venue_a.name, Venue.B: config.venue_b.name},
            config.token0,
            config.token1,
        ).attach(bus)
        metrics.attach(bus)
        if config.metrics_port > 0:
            metrics_started = await metrics.start_server(port=config.metrics_port)

        bridge = ChainEventBridge(controller.executor.contract, bus)

        logger.info(f"Listening for new blocks on {config.chain_node_ws}...\n")
        await asyncio.gather(
            controller.run(new_heads(config.chain_node_ws)),
            bridge.run(contract_logs(config.chain_node_ws, config.flash_swap_address)),
        )

    except PairArbitrageError as e:
        logger.error(f"Fatal error: {e}")
        return 1

    finally:
        if metrics_started:
            await metrics.stop_server()

    return 0


def cli():
    """Console script entry point."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("\n\nShutdown requested by user")
        sys.exit(0)


if __name__ == "__main__":
    cli()
