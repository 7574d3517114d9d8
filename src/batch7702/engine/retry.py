"""
Submission retry state machine.

One logical submission moves through explicit states::

    PLANNING -> DISPATCHING -> SUCCESS
                            -> RETRYING_NONCE    -> DISPATCHING
                            -> RETRYING_STRATEGY -> DISPATCHING
                            -> FAILED

Each recoverable error class is retried at most once per submission: a nonce
conflict re-dispatches with the pending-inclusive nonce, a delegation /
authorization / revert error re-dispatches in the alternate encoding. Every
other error is classified and terminal.
"""

import re
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Optional, TYPE_CHECKING

from ..adapters.evm.schemas import DelegationAuthorization, DispatchStrategy, GasPlan, SubmissionAttempt
from ..schemas.transfers import BatchIntent
from ..utils import logger
from .exceptions import (
    BatchTransferError,
    DispatchIncompatibilityError,
    GasEstimationFailure,
    InsufficientBalanceError,
    InvalidTransition,
    NonceConflictError,
    UnknownSubmissionError,
    UserRejectedError,
)

if TYPE_CHECKING:
    from ..adapters.evm.adapter import EVMChainClient
    from ..adapters.evm.dispatchers import DispatchStrategySelector
    from ..adapters.evm.signatures import AuthorizationSigner


ReportFunc = Callable[[str, str], None]


class SubmissionState(str, Enum):
    PLANNING = "planning"
    DISPATCHING = "dispatching"
    SUCCESS = "success"
    RETRYING_NONCE = "retrying_nonce"
    RETRYING_STRATEGY = "retrying_strategy"
    FAILED = "failed"


_TRANSITIONS: Dict[SubmissionState, FrozenSet[SubmissionState]] = {
    SubmissionState.PLANNING: frozenset({SubmissionState.DISPATCHING, SubmissionState.FAILED}),
    SubmissionState.DISPATCHING: frozenset({
        SubmissionState.SUCCESS,
        SubmissionState.RETRYING_NONCE,
        SubmissionState.RETRYING_STRATEGY,
        SubmissionState.FAILED,
    }),
    SubmissionState.RETRYING_NONCE: frozenset({SubmissionState.DISPATCHING, SubmissionState.FAILED}),
    SubmissionState.RETRYING_STRATEGY: frozenset({SubmissionState.DISPATCHING, SubmissionState.FAILED}),
    SubmissionState.SUCCESS: frozenset(),
    SubmissionState.FAILED: frozenset(),
}


# ==================== Error Classification ====================

class ErrorKind(str, Enum):
    NONCE_CONFLICT = "nonce_conflict"
    DISPATCH_INCOMPATIBLE = "dispatch_incompatible"
    USER_REJECTED = "user_rejected"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    OUT_OF_GAS = "out_of_gas"
    UNKNOWN = "unknown"


# "already known" / "replacement transaction underpriced" mean a transaction
# with this nonce is pending; re-sending would double-submit.
_NONCE_PATTERN = re.compile(
    r"nonce (is )?too (low|high)|invalid nonce|nonce has already been used"
)
_USER_REJECTED_PATTERN = re.compile(r"user (rejected|denied)")
_INSUFFICIENT_FUNDS_PATTERN = re.compile(r"insufficient funds")
_GAS_PATTERN = re.compile(r"out of gas|intrinsic gas too low|gas required exceeds")
_DISPATCH_PATTERN = re.compile(r"delegat|authoriz|execution reverted")

# Checked in order; the first match wins.
_CLASSIFIERS = (
    (ErrorKind.USER_REJECTED, _USER_REJECTED_PATTERN),
    (ErrorKind.INSUFFICIENT_FUNDS, _INSUFFICIENT_FUNDS_PATTERN),
    (ErrorKind.NONCE_CONFLICT, _NONCE_PATTERN),
    (ErrorKind.OUT_OF_GAS, _GAS_PATTERN),
    (ErrorKind.DISPATCH_INCOMPATIBLE, _DISPATCH_PATTERN),
)


def error_text(error: BaseException) -> str:
    """Lower-cased messages of ``error`` and its cause/context chain."""
    parts: List[str] = []
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        parts.append(str(current))
        current = current.__cause__ or current.__context__
    return " | ".join(parts).lower()


def classify_error(error: BaseException) -> ErrorKind:
    """
    Classify a dispatch failure by its message chain.

    Example:
        classify_error(ValueError("nonce too low")) is ErrorKind.NONCE_CONFLICT
    """
    text = error_text(error)
    for kind, pattern in _CLASSIFIERS:
        if pattern.search(text):
            return kind
    return ErrorKind.UNKNOWN


def terminal_error(kind: ErrorKind, error: BaseException, nonce: Optional[int] = None) -> BatchTransferError:
    """Typed terminal exception for a classified failure. The caller chains the cause."""
    message = str(error)
    if kind is ErrorKind.NONCE_CONFLICT:
        return NonceConflictError(f"Nonce conflict persisted after refresh: {message}", nonce=nonce)
    if kind is ErrorKind.DISPATCH_INCOMPATIBLE:
        return DispatchIncompatibilityError(f"Transaction rejected in both encodings: {message}")
    if kind is ErrorKind.USER_REJECTED:
        return UserRejectedError(f"User rejected the transaction: {message}")
    if kind is ErrorKind.INSUFFICIENT_FUNDS:
        return InsufficientBalanceError(f"Insufficient funds reported by node: {message}")
    if kind is ErrorKind.OUT_OF_GAS:
        return GasEstimationFailure(f"Transaction gas rejected by node: {message}")
    return UnknownSubmissionError(message)


# ==================== Retry Controller ====================

class SubmissionRetryController:
    """
    Drives dispatch attempts for one logical submission.

    At most one attempt is in flight. Attempts are recorded in ``attempts``
    in order. A nonce retry re-signs the authorization for the refreshed
    nonce; a strategy switch keeps nonce, authorization and gas plan.

    Attributes:
        state: Current ``SubmissionState``.
        attempts: Finished attempts, oldest first.
    """

    def __init__(
        self,
        selector: "DispatchStrategySelector",
        client: "EVMChainClient",
        authorizer: "AuthorizationSigner",
        report: Optional[ReportFunc] = None,
    ):
        self.selector = selector
        self.client = client
        self.authorizer = authorizer
        self._report = report or (lambda stage, message: None)
        self.state = SubmissionState.PLANNING
        self.attempts: List[SubmissionAttempt] = []

    def transition(self, target: SubmissionState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise InvalidTransition(self.state.value, target.value)
        logger.debug(f"Submission state {self.state.value} -> {target.value}")
        self.state = target

    def abort(self) -> None:
        """Mark the submission failed if it has not finished yet."""
        if self.state not in (SubmissionState.SUCCESS, SubmissionState.FAILED):
            self.transition(SubmissionState.FAILED)

    async def run(
        self,
        intent: BatchIntent,
        authorization: DelegationAuthorization,
        nonce: int,
        plan: GasPlan,
        strategy: Optional[DispatchStrategy] = None,
    ) -> str:
        """
        Dispatch until success or a terminal error.

        Returns:
            Transaction hash.

        Raises:
            BatchTransferError: Typed terminal error with the dispatch
                failure as ``__cause__``.
        """
        strategy = strategy or self.selector.initial_strategy()
        nonce_retried = False
        strategy_switched = False
        self.transition(SubmissionState.DISPATCHING)

        while True:
            attempt = SubmissionAttempt(nonce=nonce, plan=plan, strategy=strategy)
            try:
                tx_hash = await self.selector.dispatch(strategy, intent, authorization, nonce, plan)
            except BatchTransferError as e:
                self.attempts.append(attempt.failed(type(e).__name__, str(e)))
                self.transition(SubmissionState.FAILED)
                raise
            except Exception as e:
                kind = classify_error(e)
                self.attempts.append(attempt.failed(kind.value, str(e)))
                logger.warning(f"Dispatch attempt {len(self.attempts)} failed ({kind.value}): {e}")

                if kind is ErrorKind.NONCE_CONFLICT and not nonce_retried:
                    nonce_retried = True
                    self.transition(SubmissionState.RETRYING_NONCE)
                    nonce, authorization = await self._refresh_nonce(nonce, e)
                    self.transition(SubmissionState.DISPATCHING)
                    continue

                if kind is ErrorKind.DISPATCH_INCOMPATIBLE and not strategy_switched:
                    strategy_switched = True
                    self.transition(SubmissionState.RETRYING_STRATEGY)
                    previous, strategy = strategy, strategy.alternate()
                    self._report(
                        "fallback",
                        f"{previous.value} dispatch rejected ({e}); retrying as {strategy.value}",
                    )
                    self.transition(SubmissionState.DISPATCHING)
                    continue

                self.transition(SubmissionState.FAILED)
                raise terminal_error(kind, e, nonce=nonce) from e

            self.attempts.append(attempt.succeeded(tx_hash))
            self.transition(SubmissionState.SUCCESS)
            return tx_hash

    async def _refresh_nonce(self, stale_nonce: int, cause: Exception):
        try:
            nonce = await self.client.get_transaction_count(self.authorizer.signer.address, "pending")
            self._report(
                "transaction_retry",
                f"Nonce {stale_nonce} rejected ({cause}); retrying with pending nonce {nonce}",
            )
            authorization = await self.authorizer.sign_for_transaction(nonce)
        except BatchTransferError:
            self.transition(SubmissionState.FAILED)
            raise
        except Exception as e:
            self.transition(SubmissionState.FAILED)
            raise UnknownSubmissionError(f"Nonce refresh failed: {e}") from e
        return nonce, authorization
