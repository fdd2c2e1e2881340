"""
Logging configuration for cleaner output.

Usage:
    import logging_config
    logging_config.setup()
"""

import logging
import sys

from pair_arbitrage.utils import DEFAULT_HANDLER_NAME

APP_LOGGER_PREFIXES = ("dex.", "pair_arbitrage.")


def setup(level=logging.INFO):
    """
    Configure logging for cleaner, more readable output.

    - Suppresses verbose RPC and websocket logs
    - Uses shorter timestamp format (HH:MM:SS instead of full datetime)
    - Drops per-module fallback handlers so each record prints once
    """

    # Root logger - minimal format
    root = logging.getLogger()
    root.setLevel(level)

    # Clear existing handlers
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)

    # Minimal format: time + level + message
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-7s | %(message)s", datefmt="%H:%M:%S"
    )
    console.setFormatter(formatter)
    root.addHandler(console)

    for name, existing in list(logging.root.manager.loggerDict.items()):
        if not isinstance(existing, logging.Logger):
            continue
        existing.handlers = [
            h for h in existing.handlers if h.get_name() != DEFAULT_HANDLER_NAME
        ]
        # Module loggers inherit from their package logger configured below
        if name.startswith(APP_LOGGER_PREFIXES):
            existing.setLevel(logging.NOTSET)

    # Suppress noisy loggers
    logging.getLogger("web3").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("websockets").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)

    # Keep application loggers at the requested level
    logging.getLogger("__main__").setLevel(level)
    logging.getLogger("dex").setLevel(level)
    logging.getLogger("pair_arbitrage").setLevel(level)


def setup_debug():
    """
    Verbose logging for debugging.
    Shows everything including RPC traffic.
    """
    setup(level=logging.DEBUG)
    logging.getLogger("web3").setLevel(logging.DEBUG)
