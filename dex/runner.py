"""
Block-driven cycle controller.

Every new block head triggers one evaluation cycle:

    IDLE -> FETCHING -> EVALUATING -> SKIPPED -> IDLE
                                   -> EXECUTING -> CONFIRMING -> IDLE

Any failure routes through ERROR back to IDLE; no cycle error stops the
controller. At most one cycle runs at a time: a trigger that arrives while a
cycle is in progress is dropped, never queued, so a second transaction can
never be submitted while another is still awaiting confirmation.
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, List, Optional, Set, Tuple

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

from pair_arbitrage.config_loader import RuntimeConfig
from pair_arbitrage.config_schema import TokenSpec
from pair_arbitrage.events import CycleReportEvent, EventBus
from pair_arbitrage.exceptions import (
    ConfigurationError,
    ErrorKind,
    ExecutionReverted,
    ExecutionTimeout,
    PairArbitrageError,
    SubmissionError,
)
from pair_arbitrage.utils import get_logger

from .abi import FLASH_SWAP_ABI
from .evaluator import evaluate
from .executor import FlashSwapExecutor
from .oracle import PairPriceOracle
from .types import ArbitrageDecision, ExecutionResult, PriceQuote, Venue

logger = get_logger(__name__)


class CycleState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    EVALUATING = "evaluating"
    SKIPPED = "skipped"
    EXECUTING = "executing"
    CONFIRMING = "confirming"
    ERROR = "error"


@dataclass
class CycleReport:
    """What happened in one cycle, published once the controller is idle again."""

    block_number: Optional[int]
    final_state: CycleState = CycleState.IDLE
    quotes: Tuple[PriceQuote, ...] = ()
    decision: Optional[ArbitrageDecision] = None
    result: Optional[ExecutionResult] = None
    error: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    note: Optional[str] = None
    dropped: bool = False
    duration_seconds: float = 0.0
    states: List[CycleState] = field(default_factory=list)

    @property
    def outcome(self) -> str:
        """Metric label: skipped, executed, error or dropped."""
        if self.dropped:
            return "dropped"
        if self.error is not None:
            return "error"
        if self.result is not None:
            return "executed"
        return "skipped"

    @property
    def execution_status(self) -> Optional[str]:
        if self.result is None:
            return None
        if self.result.simulated:
            return "simulated"
        if self.result.confirmed:
            return "confirmed"
        return self.result.error.value if self.result.error else "unknown"


class CycleController:
    """
    Drives one evaluation cycle per block with single-flight execution.

    The oracle and executor carry the web3 connection, contracts and signing
    account; the controller owns them together with the single-flight guard
    and the hash of any transaction whose outcome is still unknown.
    """

    def __init__(
        self,
        oracle: PairPriceOracle,
        executor: FlashSwapExecutor,
        bus: EventBus,
        token0: TokenSpec,
        token1: TokenSpec,
    ):
        self.oracle = oracle
        self.executor = executor
        self.bus = bus
        self.token0 = token0
        self.token1 = token1

        self.state = CycleState.IDLE
        self._lock = asyncio.Lock()
        self._tasks: Set[asyncio.Task] = set()
        self._unreconciled_tx: Optional[str] = None
        self._states: List[CycleState] = []

        self.cycles_run = 0
        self.cycles_dropped = 0

    @classmethod
    def from_config(cls, config: RuntimeConfig, bus: EventBus) -> "CycleController":
        """
        Create the web3 connection, signing account and contract handles and
        wire them into an oracle, an executor and a controller.
        """
        web3 = Web3(
            Web3.HTTPProvider(
                config.chain_node, request_kwargs={"timeout": config.rpc_timeout_sec}
            )
        )

        account: Optional[LocalAccount] = None
        if config.private_key:
            account = Account.from_key(config.private_key)
            logger.info(f"Loaded account: {account.address}")
        elif not config.dry_run:
            raise ConfigurationError(
                "PRIVATE_KEY is required unless DRY_RUN is enabled", key="PRIVATE_KEY"
            )

        contract = web3.eth.contract(address=config.flash_swap_address, abi=FLASH_SWAP_ABI)

        oracle = PairPriceOracle(
            web3,
            config.token0,
            config.token1,
            {Venue.A: config.venue_a, Venue.B: config.venue_b},
            rpc_timeout=config.rpc_timeout_sec,
        )
        executor = FlashSwapExecutor(
            web3,
            contract,
            account,
            bus,
            confirmation_timeout=config.confirmation_timeout_sec,
            rpc_timeout=config.rpc_timeout_sec,
            dry_run=config.dry_run,
        )
        return cls(oracle, executor, bus, config.token0, config.token1)

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @property
    def unreconciled_tx(self) -> Optional[str]:
        return self._unreconciled_tx

    def _set_state(self, state: CycleState) -> None:
        self.state = state
        self._states.append(state)
        logger.debug(f"Cycle state -> {state.value}")

    async def on_new_block(self, block_number: int) -> CycleReport:
        """Run one cycle for a block, or drop the trigger if a cycle is running."""
        if self._lock.locked():
            self.cycles_dropped += 1
            logger.warning(
                f"Block {block_number}: cycle still {self.state.value}, trigger dropped"
            )
            report = CycleReport(
                block_number=block_number, final_state=self.state, dropped=True
            )
            self.bus.publish(CycleReportEvent(report=report))
            return report

        async with self._lock:
            report = await self._run_cycle(block_number)

        self.cycles_run += 1
        self.bus.publish(CycleReportEvent(report=report))
        return report

    async def _run_cycle(self, block_number: int) -> CycleReport:
        start = time.time()
        self._states = []
        report = CycleReport(block_number=block_number)

        try:
            self._set_state(CycleState.FETCHING)
            if self._unreconciled_tx is not None:
                await self._reconcile()

            quote_a, quote_b = await self.oracle.fetch_quotes()
            report.quotes = (quote_a, quote_b)
            logger.info(
                f"Block {block_number}: A={quote_a.price} B={quote_b.price}"
            )

            self._set_state(CycleState.EVALUATING)
            decision = evaluate(quote_a, quote_b, self.token0, self.token1)
            report.decision = decision
            logger.info(
                f"Borrow {decision.borrow_volume} {decision.borrow_token.symbol} "
                f"on {decision.borrow_venue.value}: repay {decision.expected_repayment:.6f}, "
                f"receive {decision.expected_received:.6f}, "
                f"profit {decision.expected_profit:.6f} {decision.return_token.symbol}"
            )

            if not decision.profitable:
                self._set_state(CycleState.SKIPPED)
                return report

            if self._unreconciled_tx is not None:
                report.note = f"holding until {self._unreconciled_tx} is reconciled"
                self._set_state(CycleState.SKIPPED)
                return report

            self._set_state(CycleState.EXECUTING)
            if self.executor.dry_run:
                report.result = await self.executor.simulate(decision)
            else:
                tx_hash = await self.executor.submit(decision)
                self._set_state(CycleState.CONFIRMING)
                report.result = await self.executor.confirm(tx_hash)

        except ExecutionTimeout as e:
            self._unreconciled_tx = e.tx_hash
            report.result = ExecutionResult(tx_hash=e.tx_hash, confirmed=False, error=e.kind)
            self._fail(report, e)
        except ExecutionReverted as e:
            report.result = ExecutionResult(
                tx_hash=e.tx_hash,
                confirmed=False,
                block_number=e.details.get("block_number"),
                gas_used=e.details.get("gas_used"),
                error=e.kind,
            )
            self._fail(report, e)
        except SubmissionError as e:
            report.result = ExecutionResult(tx_hash=None, confirmed=False, error=e.kind)
            self._fail(report, e)
        except PairArbitrageError as e:
            self._fail(report, e)
        except Exception as e:
            logger.error(f"Block {block_number}: unexpected cycle failure: {e}", exc_info=True)
            self._fail(report, e, ErrorKind.UNEXPECTED)
        finally:
            report.final_state = self.state
            report.duration_seconds = time.time() - start
            self._set_state(CycleState.IDLE)
            report.states = list(self._states)

        return report

    def _fail(
        self,
        report: CycleReport,
        error: Exception,
        kind: Optional[ErrorKind] = None,
    ) -> None:
        self._set_state(CycleState.ERROR)
        report.error = kind or getattr(error, "kind", None) or ErrorKind.UNEXPECTED
        report.error_message = str(error)
        if kind is None:
            logger.error(
                f"Block {report.block_number}: {type(error).__name__}: {error}"
            )

    async def _reconcile(self) -> None:
        tx_hash = self._unreconciled_tx
        try:
            result = await self.executor.reconcile(tx_hash)
        except Exception as e:
            logger.warning(f"Could not reconcile {tx_hash}: {e}")
            return
        if result is not None:
            self._unreconciled_tx = None

    async def run(self, blocks: AsyncIterator[int]) -> None:
        """
        Consume a block feed, one cycle task per block.

        Triggers are never awaited in order, so blocks that arrive during a
        cycle reach on_new_block while it is busy and are dropped there.
        """
        try:
            async for block_number in blocks:
                task = asyncio.create_task(self.on_new_block(block_number))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
        except asyncio.CancelledError:
            for task in list(self._tasks):
                task.cancel()
            raise

        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
