"""
Two-venue flash swap arbitrage.

Watches a token pair on two V2-style DEX venues, and when their prices diverge
by more than both swap fees, borrows on the cheaper venue and repays from the
dearer one in a single atomic transaction.
"""

from pair_arbitrage.version import __version__

VERSION = __version__

__all__ = ["VERSION", "__version__"]
