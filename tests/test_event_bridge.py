"""Tests for decoding flash swap contract logs into domain events."""

import pytest
from eth_abi import encode
from web3 import Web3

from dex.abi import FLASH_SWAP_ABI
from dex.event_bridge import ChainEventBridge, event_signature, normalize_log
from pair_arbitrage.events import EventBus, GasAddedEvent, TradeEvent, WithdrawalEvent

CONTRACT = Web3.to_checksum_address("0x" + "55" * 20)
WAVAX = Web3.to_checksum_address("0xb31f66aa3c1e785363f0875a1b74e27b85fd66c7")
OWNER = Web3.to_checksum_address("0x" + "66" * 20)


def raw_log(signature, types, values, address=CONTRACT):
    return {
        "address": address.lower(),
        "topics": [Web3.to_hex(Web3.keccak(text=signature))],
        "data": Web3.to_hex(encode(types, values)),
        "blockNumber": "0x10",
        "blockHash": "0x" + "aa" * 32,
        "transactionHash": "0x" + "bb" * 32,
        "transactionIndex": "0x0",
        "logIndex": "0x2",
        "removed": False,
    }


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def bridge(bus):
    w3 = Web3(Web3.HTTPProvider("http://127.0.0.1:8545"))
    contract = w3.eth.contract(address=CONTRACT, abi=FLASH_SWAP_ABI)
    return ChainEventBridge(contract, bus)


def test_event_signature():
    trade = next(item for item in FLASH_SWAP_ABI if item.get("name") == "Trade")
    assert event_signature(trade) == "Trade(address,uint256)"


def test_normalize_log():
    log = normalize_log(raw_log("Trade(address,uint256)", ["address", "uint256"], [WAVAX, 1]))

    assert log["address"] == CONTRACT
    assert log["blockNumber"] == 16
    assert log["logIndex"] == 2
    assert isinstance(log["topics"][0], bytes)


class TestDecode:
    def test_trade(self, bridge):
        event = bridge.decode(
            raw_log("Trade(address,uint256)", ["address", "uint256"], [WAVAX, 397 * 10**16])
        )

        assert event == TradeEvent(token=WAVAX, profit=397 * 10**16)

    def test_gas_added(self, bridge):
        event = bridge.decode(
            raw_log("GasAdded(address,uint256)", ["address", "uint256"], [OWNER, 10**18])
        )

        assert event == GasAddedEvent(by=OWNER, amount=10**18)

    def test_withdraw(self, bridge):
        event = bridge.decode(
            raw_log("Withdraw(address,uint256)", ["address", "uint256"], [OWNER, 5])
        )

        assert event == WithdrawalEvent(by=OWNER, amount=5)

    def test_unknown_event_is_ignored(self, bridge):
        log = raw_log("Sync(uint112,uint112)", ["uint112", "uint112"], [1, 2])
        assert bridge.decode(log) is None

    def test_log_without_topics(self, bridge):
        log = raw_log("Trade(address,uint256)", ["address", "uint256"], [WAVAX, 1])
        log["topics"] = []
        assert bridge.decode(log) is None


class TestForward:
    def test_publishes_decoded_event(self, bridge, bus):
        seen = []
        bus.subscribe(TradeEvent, seen.append)

        bridge.forward(raw_log("Trade(address,uint256)", ["address", "uint256"], [WAVAX, 7]))

        assert seen == [TradeEvent(token=WAVAX, profit=7)]
        assert bridge.events_forwarded == 1

    def test_truncated_data_is_dropped(self, bridge, bus):
        seen = []
        bus.subscribe(TradeEvent, seen.append)
        log = raw_log("Trade(address,uint256)", ["address", "uint256"], [WAVAX, 7])
        log["data"] = log["data"][:40]

        assert bridge.forward(log) is None
        assert seen == []
        assert bridge.events_forwarded == 0

    @pytest.mark.asyncio
    async def test_run_forwards_every_log(self, bridge, bus):
        seen = []
        bus.subscribe(GasAddedEvent, seen.append)
        bus.subscribe(WithdrawalEvent, seen.append)

        async def logs():
            yield raw_log("GasAdded(address,uint256)", ["address", "uint256"], [OWNER, 1])
            yield raw_log("Withdraw(address,uint256)", ["address", "uint256"], [OWNER, 1])

        await bridge.run(logs())

        assert [event.name for event in seen] == ["gas-added", "withdrawal"]
