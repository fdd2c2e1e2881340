"""
On-chain side of the pair arbitrage bot: venue quotes, decision math,
flash swap execution and the block-driven cycle controller.
"""
