"""Tests for V2 pair resolution and reserve reads against a mocked web3."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from web3 import Web3
from web3.exceptions import Web3Exception

from dex.adapters.v2 import ZERO_ADDRESS, fetch_reserves_async, resolve_pair

FACTORY = Web3.to_checksum_address("0x" + "11" * 20)
PAIR = Web3.to_checksum_address("0x" + "22" * 20)
TOKEN = Web3.to_checksum_address("0x" + "33" * 20)


@pytest.fixture
def web3():
    return MagicMock()


def get_reserves(web3):
    return web3.eth.contract.return_value.functions.getReserves.return_value.call


class TestResolvePair:
    def test_resolves_pair_and_token0(self, web3):
        functions = web3.eth.contract.return_value.functions
        functions.getPair.return_value.call.return_value = PAIR
        functions.token0.return_value.call.return_value = TOKEN

        assert resolve_pair(web3, FACTORY, TOKEN, FACTORY) == (PAIR, TOKEN)

    def test_missing_pair(self, web3):
        functions = web3.eth.contract.return_value.functions
        functions.getPair.return_value.call.return_value = ZERO_ADDRESS

        assert resolve_pair(web3, FACTORY, TOKEN, FACTORY) == (ZERO_ADDRESS, ZERO_ADDRESS)
        functions.token0.assert_not_called()

    def test_rpc_failure(self, web3):
        functions = web3.eth.contract.return_value.functions
        functions.getPair.return_value.call.side_effect = ConnectionError("reset")

        with pytest.raises(Web3Exception):
            resolve_pair(web3, FACTORY, TOKEN, FACTORY)


class TestFetchReserves:
    @pytest.mark.asyncio
    async def test_converts_raw_reserves(self, web3):
        get_reserves(web3).return_value = (5 * 10**18, 2 * 10**18, 1700000000)

        reserves = await fetch_reserves_async(web3, PAIR)

        assert reserves.reserve0 == Decimal("5")
        assert reserves.reserve1 == Decimal("2")

    @pytest.mark.asyncio
    async def test_rejects_unchecksummed_address(self, web3):
        with pytest.raises(ValueError):
            await fetch_reserves_async(web3, PAIR.lower().replace("0x", ""))

    @pytest.mark.asyncio
    async def test_rate_limit_is_retried(self, web3):
        get_reserves(web3).side_effect = [
            Exception("429 Too Many Requests"),
            (10**18, 10**18, 0),
        ]

        with patch("dex.adapters.v2.asyncio.sleep", new_callable=AsyncMock) as sleep:
            reserves = await fetch_reserves_async(web3, PAIR)

        assert reserves.reserve0 == Decimal("1")
        sleep.assert_awaited_once_with(2)

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self, web3):
        get_reserves(web3).side_effect = ConnectionError("reset")

        with patch("dex.adapters.v2.asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(Web3Exception):
                await fetch_reserves_async(web3, PAIR)

        sleep.assert_not_awaited()
        assert get_reserves(web3).call_count == 1
