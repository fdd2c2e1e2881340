"""
Common utilities and helper functions for the pair arbitrage system.

This module provides centralized helpers for durations, fixed-point token
amount conversion, basis point math and logger construction.
"""

import logging
from decimal import ROUND_DOWN, Decimal
from typing import Any, Dict, Optional, Union

# On-chain token amounts carry 18 fractional digits
TOKEN_DECIMALS = 18
TOKEN_QUANTUM = Decimal(1).scaleb(-TOKEN_DECIMALS)

# Name of the fallback handler get_logger attaches; logging_config.setup removes it
DEFAULT_HANDLER_NAME = "pair_arbitrage.default"


# Time utilities
def format_duration(seconds: float) -> str:
    """Format duration in seconds to human-readable string."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    elif seconds < 60:
        return f"{seconds:.2f}s"
    elif seconds < 3600:
        minutes = seconds / 60
        return f"{minutes:.1f}m"
    else:
        hours = seconds / 3600
        return f"{hours:.1f}h"


# Fixed-point utilities
def to_units(raw: Union[int, Decimal], decimals: int = TOKEN_DECIMALS) -> Decimal:
    """Convert a raw on-chain integer amount to a decimal token amount."""
    return Decimal(raw).scaleb(-decimals)


def to_wei(amount: Union[int, float, str, Decimal], decimals: int = TOKEN_DECIMALS) -> int:
    """
    Convert a decimal token amount to its raw on-chain integer.

    Fractions below one raw unit are truncated, never rounded up.
    """
    scaled = Decimal(str(amount)).scaleb(decimals)
    return int(scaled.quantize(Decimal(1), rounding=ROUND_DOWN))


def bps_to_rate(bps: Union[int, Decimal]) -> Decimal:
    """Convert basis points to a decimal rate (30 bps = 0.003)."""
    return Decimal(bps) / Decimal(10000)


def format_amount(value: Decimal, places: int = 6) -> str:
    """Format a token amount with thousands separators."""
    return f"{value:,.{places}f}"


# Logging utilities
def get_logger(
    name: str,
    level: Union[str, int] = logging.INFO,
    extra: Optional[Dict[str, Any]] = None,
) -> logging.Logger:
    """
    Get a structured logger with consistent formatting and extra context.

    When the root logger is already configured, records propagate to it and
    no handler is attached here. logging_config.setup() strips the fallback
    handler from loggers created before it ran.

    Args:
        name: Logger name (typically __name__)
        level: Logging level
        extra: Additional context fields to include in all log messages

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)

    if logger.level == logging.NOTSET:
        logger.setLevel(level)

    if not logger.handlers and not logging.getLogger().handlers:
        handler = logging.StreamHandler()
        format_str = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"

        if extra:
            extra_fields = " | ".join([f"{k}=%(extra_{k})s" for k in extra.keys()])
            format_str = format_str.replace(
                " | %(message)s", f" | {extra_fields} | %(message)s"
            )

        handler.setFormatter(logging.Formatter(format_str, datefmt="%H:%M:%S"))
        handler.set_name(DEFAULT_HANDLER_NAME)
        logger.addHandler(handler)

    if extra:
        return logging.LoggerAdapter(
            logger, {"extra_" + k: v for k, v in extra.items()}
        )

    return logger
