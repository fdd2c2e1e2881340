"""
DEX adapter modules for different AMM types.
"""

from .v2 import (
    ZERO_ADDRESS,
    fetch_reserves_async,
    resolve_pair,
    resolve_pair_async,
)

__all__ = [
    "ZERO_ADDRESS",
    "fetch_reserves_async",
    "resolve_pair",
    "resolve_pair_async",
]
