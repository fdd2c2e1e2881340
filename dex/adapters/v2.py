"""
Uniswap V2 style adapter for constant-product AMM pairs.

Resolves pair contracts through a factory and reads their reserves. The
synchronous web3 calls are pushed to the default thread pool by the async
variants so they never block the event loop.
"""

import asyncio
from typing import Tuple

from web3 import Web3
from web3.exceptions import Web3Exception

from pair_arbitrage.utils import to_units

from ..abi import V2_FACTORY_ABI, V2_PAIR_ABI
from ..types import ReservePair

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def _is_rate_limit(error: Exception) -> bool:
    error_msg = str(error)
    return (
        "429" in error_msg
        or "Too Many Requests" in error_msg
        or "-32005" in error_msg
        or "limit exceeded" in error_msg.lower()
    )


def resolve_pair(
    web3: Web3, factory_addr: str, token_a: str, token_b: str
) -> Tuple[str, str]:
    """
    Look up the pair for two tokens through a V2 factory.

    Returns:
        Tuple of (pair_address, pair_token0); pair_address is the zero
        address when the factory has no such pair

    Raises:
        Web3Exception: If an RPC call fails
    """
    factory = web3.eth.contract(address=factory_addr, abi=V2_FACTORY_ABI)
    try:
        pair_addr = Web3.to_checksum_address(
            factory.functions.getPair(token_a, token_b).call()
        )
        if pair_addr == ZERO_ADDRESS:
            return pair_addr, ZERO_ADDRESS

        pair = web3.eth.contract(address=pair_addr, abi=V2_PAIR_ABI)
        token0 = Web3.to_checksum_address(pair.functions.token0().call())
    except Web3Exception:
        raise
    except Exception as e:
        raise Web3Exception(f"Failed to resolve pair via {factory_addr}: {e}") from e

    return pair_addr, token0


async def resolve_pair_async(
    web3: Web3, factory_addr: str, token_a: str, token_b: str
) -> Tuple[str, str]:
    """Async version of resolve_pair, run in the default thread pool."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        None, resolve_pair, web3, factory_addr, token_a, token_b
    )


async def fetch_reserves_async(
    web3: Web3, pair_addr: str, max_retries: int = 3
) -> ReservePair:
    """
    Read the current reserves of a V2 pair.

    Runs the synchronous RPC call in a thread pool to avoid blocking the event
    loop. Rate limit errors are retried with exponential backoff.

    Raises:
        Web3Exception: If RPC calls fail after all retries
        ValueError: If pair address is invalid
    """
    if not Web3.is_checksum_address(pair_addr):
        raise ValueError(f"Invalid pair address: {pair_addr}")

    pair = web3.eth.contract(address=pair_addr, abi=V2_PAIR_ABI)
    loop = asyncio.get_running_loop()

    for attempt in range(max_retries):
        try:
            reserves = await loop.run_in_executor(
                None, pair.functions.getReserves().call
            )
            return ReservePair(reserve0=to_units(reserves[0]), reserve1=to_units(reserves[1]))
        except Exception as e:
            if _is_rate_limit(e) and attempt < max_retries - 1:
                # Exponential backoff: 2s, 4s, 8s
                await asyncio.sleep(2 ** (attempt + 1))
                continue
            raise Web3Exception(f"Failed to fetch reserves for {pair_addr}: {e}") from e

    raise Web3Exception(f"Failed to fetch reserves for {pair_addr}")
