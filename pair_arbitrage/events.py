"""
Typed event channel.

Producers publish frozen event instances; consumers subscribe by event class.
Delivery is decoupled from emission: a failing consumer is logged and never
reaches the publisher or the other consumers.
"""

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, List, Set, Type

from .utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Event:
    """Base class; `name` is the event's wire name."""

    name: ClassVar[str] = "event"


@dataclass(frozen=True)
class TxHashEvent(Event):
    """A flash swap submitted by this process was mined successfully."""

    name: ClassVar[str] = "tx-hash"
    hash: str


@dataclass(frozen=True)
class TradeEvent(Event):
    """The executor contract reported a completed trade."""

    name: ClassVar[str] = "trade"
    token: str
    profit: int


@dataclass(frozen=True)
class GasAddedEvent(Event):
    name: ClassVar[str] = "gas-added"
    by: str
    amount: int


@dataclass(frozen=True)
class WithdrawalEvent(Event):
    name: ClassVar[str] = "withdrawal"
    by: str
    amount: int


@dataclass(frozen=True)
class CycleReportEvent(Event):
    """Outcome of one block-driven evaluation cycle."""

    name: ClassVar[str] = "cycle"
    report: Any


Handler = Callable[[Event], Any]


class EventBus:
    """
    Publish/subscribe hub keyed by event class.

    Synchronous handlers run inline in publish order. Coroutine handlers are
    scheduled as tasks on the running loop.
    """

    def __init__(self):
        self._subscribers: Dict[Type[Event], List[Handler]] = {}
        self._pending: Set[asyncio.Task] = set()

    def subscribe(self, event_type: Type[Event], handler: Handler) -> None:
        """Register a handler for one event class."""
        handlers = self._subscribers.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)

    def unsubscribe(self, event_type: Type[Event], handler: Handler) -> None:
        handlers = self._subscribers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def subscriber_count(self, event_type: Type[Event]) -> int:
        return len(self._subscribers.get(event_type, []))

    def publish(self, event: Event) -> None:
        """Deliver an event to every handler subscribed to its class."""
        for handler in list(self._subscribers.get(type(event), [])):
            if inspect.iscoroutinefunction(handler):
                self._schedule(handler, event)
                continue
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"Event handler {getattr(handler, '__name__', handler)!r} "
                    f"failed on '{event.name}': {e}",
                    exc_info=True,
                )

    async def drain(self) -> None:
        """Wait for all scheduled coroutine handlers to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _schedule(self, handler: Handler, event: Event) -> None:
        try:
            task = asyncio.get_running_loop().create_task(handler(event))
        except RuntimeError:
            logger.error(
                f"Cannot schedule async handler for '{event.name}' outside an event loop"
            )
            return
        self._pending.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Async event handler failed: {error}", exc_info=error)
