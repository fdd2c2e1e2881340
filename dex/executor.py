"""
Flash swap execution.

Handles:
- Building, signing and submitting flashSwap transactions
- Bounded confirmation wait and reconciliation of timed-out transactions
- Dry-run simulation through eth_call
- Executor contract balance checks
"""

import asyncio
import functools
import time
from typing import Any, Dict, Optional

from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.contract import Contract
from web3.exceptions import ContractLogicError, TimeExhausted, TransactionNotFound

from pair_arbitrage.events import EventBus, TxHashEvent
from pair_arbitrage.exceptions import (
    ErrorKind,
    ExecutionReverted,
    ExecutionTimeout,
    PairArbitrageError,
    SubmissionError,
)
from pair_arbitrage.utils import format_duration, get_logger, to_wei

from .types import ArbitrageDecision, ExecutionResult

logger = get_logger(__name__)


class FlashSwapExecutor:
    """
    Submits decided opportunities to the flash swap contract.

    The web3 connection, contract handle and signing account are owned by the
    caller and injected here.
    """

    def __init__(
        self,
        web3: Web3,
        contract: Contract,
        account: Optional[LocalAccount],
        bus: EventBus,
        confirmation_timeout: float = 120.0,
        rpc_timeout: float = 10.0,
        dry_run: bool = False,
    ):
        """
        Initialize executor.

        Args:
            web3: Web3 instance
            contract: Flash swap contract bound to FLASH_SWAP_ABI
            account: Signing account; None allows dry runs only
            bus: Channel receiving tx-hash events
            confirmation_timeout: Seconds to wait for a receipt
            rpc_timeout: Seconds allowed for read-only calls
            dry_run: Simulate with eth_call instead of submitting
        """
        self.web3 = web3
        self.contract = contract
        self.account = account
        self.bus = bus
        self.confirmation_timeout = confirmation_timeout
        self.rpc_timeout = rpc_timeout
        self.dry_run = dry_run

        # Execution statistics
        self.executions_attempted = 0
        self.executions_confirmed = 0
        self.executions_reverted = 0
        self.executions_timed_out = 0
        self.simulations = 0

    async def submit(self, decision: ArbitrageDecision) -> str:
        """
        Build, sign and send the flashSwap transaction.

        Returns:
            0x-prefixed transaction hash
        """
        if self.account is None:
            raise SubmissionError("No signing key configured; only dry runs are possible")

        self.executions_attempted += 1
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._build_and_send, decision)
        except ContractLogicError as e:
            # Gas estimation already hit the contract's revert
            self.executions_reverted += 1
            raise ExecutionReverted(f"flashSwap reverted during estimation: {e}") from e
        except Exception as e:
            raise SubmissionError(f"Failed to submit flashSwap: {e}") from e

    def _flash_swap_call(self, decision: ArbitrageDecision):
        return self.contract.functions.flashSwap(
            decision.sell_pair_address,
            decision.borrow_token.address,
            to_wei(decision.borrow_volume),
        )

    def _build_and_send(self, decision: ArbitrageDecision) -> str:
        tx_params = self._flash_swap_call(decision).build_transaction(
            {
                "from": self.account.address,
                "nonce": self.web3.eth.get_transaction_count(
                    self.account.address, "pending"
                ),
                "chainId": self.web3.eth.chain_id,
            }
        )
        signed_tx = self.account.sign_transaction(tx_params)
        tx_hash = self.web3.eth.send_raw_transaction(signed_tx.raw_transaction)
        tx_hex = self.web3.to_hex(tx_hash)
        logger.info(
            f"Submitted flashSwap {tx_hex}: borrow {decision.borrow_volume} "
            f"{decision.borrow_token.symbol} via {decision.sell_pair_address}"
        )
        return tx_hex

    async def confirm(self, tx_hash: str) -> ExecutionResult:
        """
        Wait for a receipt, bounded by the confirmation timeout.

        A receipt polling failure leaves the outcome unknown and is reported
        as a timeout so the transaction gets reconciled.
        """
        start = time.time()
        loop = asyncio.get_running_loop()
        wait = functools.partial(
            self.web3.eth.wait_for_transaction_receipt,
            tx_hash,
            timeout=self.confirmation_timeout,
        )
        try:
            receipt = await loop.run_in_executor(None, wait)
        except TimeExhausted as e:
            self.executions_timed_out += 1
            raise ExecutionTimeout(
                f"No receipt for {tx_hash} after {self.confirmation_timeout}s",
                tx_hash=tx_hash,
                timeout_sec=self.confirmation_timeout,
            ) from e
        except Exception as e:
            self.executions_timed_out += 1
            raise ExecutionTimeout(
                f"Lost track of {tx_hash} while waiting for its receipt: {e}",
                tx_hash=tx_hash,
                timeout_sec=self.confirmation_timeout,
            ) from e

        result = self._result_from_receipt(tx_hash, receipt)
        if result.error is ErrorKind.EXECUTION_REVERTED:
            raise ExecutionReverted(
                f"flashSwap {tx_hash} reverted in block {result.block_number}",
                tx_hash=tx_hash,
                details={"block_number": result.block_number, "gas_used": result.gas_used},
            )

        logger.info(
            f"Flash swap {tx_hash} mined in block {result.block_number} "
            f"after {format_duration(time.time() - start)} (gas used {result.gas_used})"
        )
        return result

    def _result_from_receipt(self, tx_hash: str, receipt: Any) -> ExecutionResult:
        if receipt.get("status") == 1:
            self.executions_confirmed += 1
            self.bus.publish(TxHashEvent(hash=tx_hash))
            return ExecutionResult(
                tx_hash=tx_hash,
                confirmed=True,
                block_number=receipt.get("blockNumber"),
                gas_used=receipt.get("gasUsed"),
            )

        self.executions_reverted += 1
        return ExecutionResult(
            tx_hash=tx_hash,
            confirmed=False,
            error=ErrorKind.EXECUTION_REVERTED,
            block_number=receipt.get("blockNumber"),
            gas_used=receipt.get("gasUsed"),
        )

    async def reconcile(self, tx_hash: str) -> Optional[ExecutionResult]:
        """
        Re-query the chain for a transaction whose confirmation timed out.

        Returns:
            The final result once mined (confirmed or reverted), a timeout
            result when the node no longer knows the transaction, or None
            while it is still pending
        """
        loop = asyncio.get_running_loop()
        try:
            receipt = await asyncio.wait_for(
                loop.run_in_executor(
                    None, self.web3.eth.get_transaction_receipt, tx_hash
                ),
                timeout=self.rpc_timeout,
            )
        except TransactionNotFound:
            receipt = None

        if receipt is not None:
            result = self._result_from_receipt(tx_hash, receipt)
            logger.info(
                f"Reconciled {tx_hash}: "
                f"{'confirmed' if result.confirmed else 'reverted'} "
                f"in block {result.block_number}"
            )
            return result

        try:
            await asyncio.wait_for(
                loop.run_in_executor(None, self.web3.eth.get_transaction, tx_hash),
                timeout=self.rpc_timeout,
            )
        except TransactionNotFound:
            logger.warning(f"Reconciled {tx_hash}: dropped by the node")
            return ExecutionResult(
                tx_hash=tx_hash, confirmed=False, error=ErrorKind.EXECUTION_TIMEOUT
            )

        logger.info(f"Transaction {tx_hash} is still pending")
        return None

    async def simulate(self, decision: ArbitrageDecision) -> ExecutionResult:
        """Dry-run the flashSwap with eth_call; nothing is signed or sent."""
        loop = asyncio.get_running_loop()
        call_params = {"from": self.account.address} if self.account else {}
        call = functools.partial(self._flash_swap_call(decision).call, call_params)
        self.simulations += 1
        try:
            await asyncio.wait_for(
                loop.run_in_executor(None, call), timeout=self.rpc_timeout
            )
        except ContractLogicError as e:
            raise ExecutionReverted(f"flashSwap simulation reverted: {e}") from e
        except asyncio.TimeoutError as e:
            raise SubmissionError(
                f"flashSwap simulation timed out after {self.rpc_timeout}s"
            ) from e
        except Exception as e:
            raise SubmissionError(f"flashSwap simulation failed: {e}") from e

        logger.info(
            f"[DRY RUN] flashSwap would borrow {decision.borrow_volume} "
            f"{decision.borrow_token.symbol} via {decision.sell_pair_address}"
        )
        return ExecutionResult(tx_hash=None, confirmed=False, simulated=True)

    async def check_gas(self) -> int:
        """
        Native coin balance held by the flash swap contract, in wei.

        Raises:
            PairArbitrageError: If the call fails
        """
        loop = asyncio.get_running_loop()
        try:
            balance = await asyncio.wait_for(
                loop.run_in_executor(None, self.contract.functions.checkGas().call),
                timeout=self.rpc_timeout,
            )
        except Exception as e:
            raise PairArbitrageError(f"checkGas failed: {e}") from e
        return int(balance)

    def get_stats(self) -> Dict:
        """Get execution statistics."""
        success_rate = (
            self.executions_confirmed / self.executions_attempted * 100
            if self.executions_attempted > 0
            else 0.0
        )

        return {
            "executions_attempted": self.executions_attempted,
            "executions_confirmed": self.executions_confirmed,
            "executions_reverted": self.executions_reverted,
            "executions_timed_out": self.executions_timed_out,
            "simulations": self.simulations,
            "success_rate_pct": success_rate,
        }
