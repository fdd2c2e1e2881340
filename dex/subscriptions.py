"""
JSON-RPC eth_subscribe feeds over websockets.

new_heads yields block numbers as the node announces them and contract_logs
yields raw log objects emitted by one contract. Both reconnect and resubscribe
when the socket drops; nothing here polls.
"""

import asyncio
import json
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Union

import websockets

from pair_arbitrage.utils import get_logger

logger = get_logger(__name__)

# Pause before resubscribing after the node rejects a subscription
RESUBSCRIBE_DELAY_SEC = 1.0

Message = Dict[str, Any]


def build_subscribe_request(params: List[Any], request_id: int = 1) -> str:
    return json.dumps(
        {"jsonrpc": "2.0", "id": request_id, "method": "eth_subscribe", "params": params}
    )


def decode_message(raw: Union[str, bytes]) -> Message:
    message = json.loads(raw)
    if not isinstance(message, dict):
        raise ValueError(f"Unexpected JSON-RPC payload: {message!r}")
    return message


def parse_subscription_id(message: Message) -> str:
    """
    Extract the subscription id from an eth_subscribe response.

    Raises:
        ValueError: If the node answered with an error
    """
    if "error" in message:
        raise ValueError(f"eth_subscribe rejected: {message['error']}")
    subscription_id = message.get("result")
    if not isinstance(subscription_id, str):
        raise ValueError(f"eth_subscribe returned no subscription id: {message!r}")
    return subscription_id


def _notification_result(
    message: Message, subscription_id: Optional[str]
) -> Optional[Any]:
    if message.get("method") != "eth_subscription":
        return None
    params = message.get("params") or {}
    if subscription_id is not None and params.get("subscription") != subscription_id:
        return None
    return params.get("result")


def parse_block_number(
    message: Message, subscription_id: Optional[str] = None
) -> Optional[int]:
    """
    Block number of a newHeads notification, or None for anything else.

    Raises:
        ValueError: If the head carries a number that is not a hex string
    """
    head = _notification_result(message, subscription_id)
    if not isinstance(head, dict) or head.get("number") is None:
        return None
    try:
        return int(head["number"], 16)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid block number {head['number']!r}") from e


def parse_log(
    message: Message, subscription_id: Optional[str] = None
) -> Optional[Dict[str, Any]]:
    """
    Raw log object of a logs notification.

    Logs flagged `removed` (dropped by a reorg) are skipped.
    """
    log = _notification_result(message, subscription_id)
    if not isinstance(log, dict) or "topics" not in log:
        return None
    if log.get("removed"):
        logger.debug(f"Skipping removed log in tx {log.get('transactionHash')}")
        return None
    return log


async def _subscribe(
    ws_url: str,
    params: List[Any],
    parse: Callable[[Message, Optional[str]], Optional[Any]],
    label: str,
) -> AsyncIterator[Any]:
    async for websocket in websockets.connect(ws_url):
        try:
            await websocket.send(build_subscribe_request(params))
            subscription_id = parse_subscription_id(decode_message(await websocket.recv()))
            logger.info(f"Subscribed to {label} ({subscription_id})")

            async for raw in websocket:
                try:
                    item = parse(decode_message(raw), subscription_id)
                except ValueError as e:
                    logger.warning(f"Ignoring malformed {label} message: {e}")
                    continue
                if item is not None:
                    yield item

        except websockets.ConnectionClosed as e:
            logger.warning(f"{label} subscription dropped ({e}), reconnecting...")
            continue
        except ValueError as e:
            logger.error(f"{label} subscription failed: {e}, reconnecting...")
            await websocket.close()
            await asyncio.sleep(RESUBSCRIBE_DELAY_SEC)
            continue


async def new_heads(ws_url: str) -> AsyncIterator[int]:
    """Yield the number of every new block head."""
    async for block_number in _subscribe(
        ws_url, ["newHeads"], parse_block_number, "newHeads"
    ):
        yield block_number


async def contract_logs(ws_url: str, address: str) -> AsyncIterator[Dict[str, Any]]:
    """Yield raw logs emitted by one contract."""
    async for log in _subscribe(
        ws_url, ["logs", {"address": address}], parse_log, f"logs({address})"
    ):
        yield log
