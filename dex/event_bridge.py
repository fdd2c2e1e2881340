"""
Republishes the flash swap contract's events on the domain event channel.

Trade, GasAdded and Withdraw logs are decoded with the contract ABI and
forwarded unchanged as TradeEvent, GasAddedEvent and WithdrawalEvent.
"""

from typing import Any, AsyncIterator, Dict, Mapping, Optional

from eth_abi.exceptions import DecodingError
from hexbytes import HexBytes
from web3 import Web3
from web3.contract import Contract
from web3.datastructures import AttributeDict
from web3.exceptions import MismatchedABI

from pair_arbitrage.events import (
    Event,
    EventBus,
    GasAddedEvent,
    TradeEvent,
    WithdrawalEvent,
)
from pair_arbitrage.utils import get_logger

logger = get_logger(__name__)

# Contract event name -> (domain event, {domain field: contract arg})
EVENT_MAPPING = {
    "Trade": (TradeEvent, {"token": "token", "profit": "profit"}),
    "GasAdded": (GasAddedEvent, {"by": "depositor", "amount": "value"}),
    "Withdraw": (WithdrawalEvent, {"by": "sender", "amount": "amount"}),
}


def _to_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, str):
        return int(value, 16)
    return int(value)


def _to_bytes(value: Any) -> Optional[HexBytes]:
    if value is None:
        return None
    return HexBytes(value)


def normalize_log(raw: Mapping[str, Any]) -> AttributeDict:
    """Convert a JSON-RPC log object into the shape web3 event decoding expects."""
    return AttributeDict(
        {
            "address": Web3.to_checksum_address(raw["address"]),
            "topics": [HexBytes(topic) for topic in raw.get("topics", [])],
            "data": HexBytes(raw.get("data") or "0x"),
            "blockNumber": _to_int(raw.get("blockNumber")),
            "blockHash": _to_bytes(raw.get("blockHash")),
            "transactionHash": _to_bytes(raw.get("transactionHash")),
            "transactionIndex": _to_int(raw.get("transactionIndex")),
            "logIndex": _to_int(raw.get("logIndex")),
            "removed": bool(raw.get("removed", False)),
        }
    )


def event_signature(event_abi: Dict[str, Any]) -> str:
    types = ",".join(item["type"] for item in event_abi["inputs"])
    return f"{event_abi['name']}({types})"


class ChainEventBridge:
    """
    Decodes executor contract logs and republishes them as domain events.

    Args:
        contract: Flash swap contract bound to FLASH_SWAP_ABI
        bus: Channel receiving the republished events
    """

    def __init__(self, contract: Contract, bus: EventBus):
        self.contract = contract
        self.bus = bus
        self.events_forwarded = 0
        self._topics: Dict[bytes, str] = {}

        for item in contract.abi:
            if item.get("type") == "event" and item["name"] in EVENT_MAPPING:
                topic = bytes(Web3.keccak(text=event_signature(item)))
                self._topics[topic] = item["name"]

    def decode(self, raw_log: Mapping[str, Any]) -> Optional[Event]:
        """
        Decode one raw log.

        Returns:
            The domain event, or None for logs of other events
        """
        log = normalize_log(raw_log)
        if not log["topics"]:
            return None

        name = self._topics.get(bytes(log["topics"][0]))
        if name is None:
            return None

        decoded = getattr(self.contract.events, name)().process_log(log)
        event_type, fields = EVENT_MAPPING[name]
        args = decoded["args"]
        return event_type(**{field: args[arg] for field, arg in fields.items()})

    def forward(self, raw_log: Mapping[str, Any]) -> Optional[Event]:
        """Decode a log and publish the resulting event."""
        try:
            event = self.decode(raw_log)
        except (DecodingError, MismatchedABI, ValueError, KeyError) as e:
            logger.warning(f"Undecodable log from {raw_log.get('address')}: {e}")
            return None

        if event is not None:
            self.events_forwarded += 1
            logger.debug(f"Contract event '{event.name}': {event}")
            self.bus.publish(event)
        return event

    async def run(self, logs: AsyncIterator[Mapping[str, Any]]) -> None:
        """Forward every log from a subscription until it ends."""
        async for raw_log in logs:
            self.forward(raw_log)
