"""
Batch transfer orchestration.

Runs one delegated batch submission end to end on a single sequential
control flow:

    build intent -> confirm authorization -> sign authorization
    -> confirm transaction -> plan gas -> check balance -> dispatch / retry

Every terminal failure is emitted as an ``error`` progress event and raised
as a typed ``BatchTransferError`` with the originating cause chained.
"""

from typing import Iterable, Optional

from ..adapters.evm.adapter import EVMChainClient
from ..adapters.evm.constants import GasTuning, get_chain_config
from ..adapters.evm.dispatchers import STRATEGY_LABELS, DispatchStrategySelector
from ..adapters.evm.estimators import GasBudgetEstimator
from ..adapters.evm.signatures import AuthorizationSigner, LocalAccountSigner, capabilities_from_user_agent
from ..adapters.evm.verifies import BalanceGuard, describe_shortfall
from ..schemas.transfers import BatchIntent
from ..utils import error_context, format_address, logger, prepare_for_display, wei_to_ether
from .builders import TransferLike, TransferSetBuilder
from .events import (
    AutoApproveGate,
    ConfirmationGate,
    ConfirmationResult,
    LoggingProgressSink,
    ProgressSink,
    SubmissionContext,
)
from .exceptions import BatchTransferError, InsufficientBalanceError, UnknownSubmissionError, UserRejectedError
from .retry import SubmissionRetryController, SubmissionState


class BatchTransferOrchestrator:
    """
    Submits batched native-asset transfers as one EIP-7702 transaction.

    The orchestrator holds no per-submission state besides the controller of
    the most recent submission, kept for inspection. It does not serialize
    submissions; callers sending concurrently from one account must do so
    themselves to avoid nonce races.

    Example:
        orchestrator = BatchTransferOrchestrator(SubmissionContext(client, signer, chain))
        tx_hash = await orchestrator.submit([
            {"recipient": "0x...", "amount": 10**15},
        ])
    """

    def __init__(self, context: SubmissionContext, builder: Optional[TransferSetBuilder] = None):
        self.context = context
        self.builder = builder or TransferSetBuilder()
        self.tuning = context.gas_tuning or GasTuning.from_env()
        self.last_controller: Optional[SubmissionRetryController] = None

    @classmethod
    def from_env(
        cls,
        network: Optional[str] = None,
        gate: Optional[ConfirmationGate] = None,
        sink: Optional[ProgressSink] = None,
        user_agent: Optional[str] = None,
    ) -> "BatchTransferOrchestrator":
        """
        Build an orchestrator from ``EVM_PRIVATE_KEY``, ``EVM_RPC_KEY`` and
        ``BATCH_NETWORK``.

        Raises:
            ConfigurationError: On a missing key or unsupported network.
        """
        chain = get_chain_config(network)
        signer = LocalAccountSigner.from_env(
            capabilities_from_user_agent(user_agent) if user_agent else None
        )
        context = SubmissionContext(
            client=EVMChainClient(chain),
            signer=signer,
            chain=chain,
            gate=gate or AutoApproveGate(),
            sink=sink or LoggingProgressSink(),
        )
        return cls(context)

    @property
    def state(self) -> Optional[SubmissionState]:
        if self.last_controller is None:
            return None
        return self.last_controller.state

    def _report(self, stage: str, message: str) -> None:
        logger.debug(f"[{stage}] {message}")
        try:
            self.context.sink.emit(stage, message)
        except Exception as e:
            logger.warning(f"Progress sink failed on [{stage}]: {e}")

    async def submit(self, transfers: Iterable[TransferLike]) -> str:
        """
        Submit the transfers as one delegated batch transaction.

        Args:
            transfers: Non-empty ordered transfers (``TransferRequest`` or
                mappings with ``recipient``, ``amount``, optional ``extraData``).

        Returns:
            Transaction hash.

        Raises:
            BatchTransferError: Typed terminal failure.
        """
        ctx = self.context
        authorizer = AuthorizationSigner(ctx.signer, ctx.chain, ctx.gate)
        controller = SubmissionRetryController(
            DispatchStrategySelector(ctx.client, ctx.signer),
            ctx.client,
            authorizer,
            report=self._report,
        )
        self.last_controller = controller

        try:
            return await self._run(transfers, authorizer, controller)
        except BatchTransferError as e:
            controller.abort()
            self._report("error", self._describe(e))
            raise
        except Exception as e:
            controller.abort()
            self._report("error", str(e))
            raise UnknownSubmissionError(str(e)) from e

    @staticmethod
    def _describe(error: BatchTransferError) -> str:
        if isinstance(error, InsufficientBalanceError):
            shortfall = describe_shortfall(error)
            if shortfall is not None:
                return f"{error} (shortfall {shortfall})"
        return str(error)

    async def _run(
        self,
        transfers: Iterable[TransferLike],
        authorizer: AuthorizationSigner,
        controller: SubmissionRetryController,
    ) -> str:
        ctx = self.context
        account = ctx.account
        capabilities = ctx.signer.capabilities

        intent = self.builder.build(transfers)
        self._report("preparing", f"Preparing batch transfer to {intent.call_count} recipient(s)")
        self._report("preparing", f"Total amount: {wei_to_ether(intent.aggregate_value)} ETH")
        self._report("preparing", f"Network: {ctx.chain.name} (chain {ctx.chain.chain_id})")
        self._report(
            "preparing",
            f"Signing mode: {capabilities.label}, {STRATEGY_LABELS[capabilities.preferred_strategy]} first",
        )

        await authorizer.confirm()

        with error_context("Transaction count query"):
            try:
                nonce = await ctx.client.get_transaction_count(account, "latest")
            except Exception as e:
                raise UnknownSubmissionError(f"Transaction count query failed: {e}") from e

        authorization = await authorizer.sign_for_transaction(nonce)
        self._report(
            "authorization",
            f"Delegation to {format_address(authorization.delegate_contract)} authorized "
            f"(authorization nonce {authorization.account_nonce})",
        )

        await self._confirm_transaction(intent, authorization)

        estimator = GasBudgetEstimator(ctx.client, self.tuning, report=self._report)
        plan = await estimator.plan(account, intent, capabilities, authorization)

        await BalanceGuard(ctx.client).verify(account, intent, plan)

        self._report(
            "transaction",
            f"Sending batch transaction of {intent.call_count} call(s) with nonce {nonce}",
        )
        tx_hash = await controller.run(intent, authorization, nonce, plan)

        self._report("transaction_complete", f"Transaction sent: {tx_hash}")
        self._report("transaction_complete", f"View on explorer: {ctx.chain.tx_url(tx_hash)}")
        return tx_hash

    async def _confirm_transaction(self, intent: BatchIntent, authorization) -> None:
        ctx = self.context
        payload = {
            "contractAddress": ctx.chain.batch_call_delegation_address,
            "functionName": "execute",
            "calls": intent.to_display(),
            "totalValue": intent.aggregate_value,
            "chainId": ctx.chain.chain_id,
            "from": ctx.account,
            "authorization": authorization.to_display(),
        }
        result = await ctx.gate.request(
            "Confirm Batch Transaction",
            f"Send {wei_to_ether(intent.aggregate_value)} ETH to {intent.call_count} recipient(s) "
            f"in one transaction on {ctx.chain.name}.",
            prepare_for_display(payload),
        )
        if result != ConfirmationResult.APPROVED:
            raise UserRejectedError("User rejected the batch transaction")


async def execute_batch_transfer(
    transfers: Iterable[TransferLike],
    network: Optional[str] = None,
    gate: Optional[ConfirmationGate] = None,
    sink: Optional[ProgressSink] = None,
) -> str:
    """
    One-call helper: build an orchestrator from the environment and submit.

    Returns:
        Transaction hash.
    """
    orchestrator = BatchTransferOrchestrator.from_env(network=network, gate=gate, sink=sink)
    return await orchestrator.submit(transfers)
