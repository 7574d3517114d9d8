"""
Progress events and confirmation collaborators.

Progress flows one way: the orchestrator emits ``ProgressEvent`` values to a
sink and never reads them back. Confirmation is an explicit request/response:
the gate returns a ``ConfirmationResult`` and the orchestrator suspends on it
inside its own control flow.
"""

import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, TYPE_CHECKING, Union, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from ..utils import logger

if TYPE_CHECKING:
    from ..adapters.evm.adapter import EVMChainClient
    from ..adapters.evm.constants import EvmChainConfig, GasTuning
    from ..adapters.evm.signatures import Signer


# ==================== Progress ====================

class ProgressStage(str, Enum):
    """Stage tags emitted over one submission, in pipeline order."""
    PREPARING = "preparing"
    AUTHORIZATION = "authorization"
    GAS_ESTIMATION = "gas_estimation"
    WARNING = "warning"
    TRANSACTION = "transaction"
    FALLBACK = "fallback"
    TRANSACTION_RETRY = "transaction_retry"
    TRANSACTION_COMPLETE = "transaction_complete"
    ERROR = "error"


class ProgressEvent(BaseModel):
    """One lifecycle notification. Informational only."""
    stage: str
    message: str

    model_config = ConfigDict(frozen=True)

    def __repr__(self) -> str:
        return f"ProgressEvent(stage={self.stage!r}, message={self.message!r})"


@runtime_checkable
class ProgressSink(Protocol):
    """Receiver of progress events. ``emit`` is fire-and-forget."""

    def emit(self, stage: str, message: str) -> None:
        ...


class LoggingProgressSink:
    """Default sink: writes every event to the package logger."""

    _LEVELS = {
        ProgressStage.WARNING.value: "warning",
        ProgressStage.ERROR.value: "error",
    }

    def emit(self, stage: str, message: str) -> None:
        log = getattr(logger, self._LEVELS.get(stage, "info"))
        log(f"[{stage}] {message}")


class ProgressRecorder:
    """Sink that keeps events in order, for tests and UIs that render a log."""

    def __init__(self) -> None:
        self.events: List[ProgressEvent] = []

    def emit(self, stage: str, message: str) -> None:
        self.events.append(ProgressEvent(stage=stage, message=message))

    @property
    def stages(self) -> List[str]:
        return [event.stage for event in self.events]

    def messages(self, stage: str) -> List[str]:
        return [event.message for event in self.events if event.stage == stage]


class ProgressBus:
    """
    Fan-out sink forwarding each event to every subscribed sink in
    subscription order.

    A failing subscriber is logged and skipped; the remaining subscribers
    still receive the event.
    """

    def __init__(self, *sinks: ProgressSink) -> None:
        self._sinks: List[ProgressSink] = list(sinks)

    def subscribe(self, sink: ProgressSink) -> None:
        if not callable(getattr(sink, "emit", None)):
            raise TypeError(f"Sink must provide emit(stage, message), got {type(sink).__name__}")
        self._sinks.append(sink)

    def emit(self, stage: str, message: str) -> None:
        for sink in self._sinks:
            try:
                sink.emit(stage, message)
            except Exception as e:
                logger.warning(f"Progress sink {type(sink).__name__} failed on [{stage}]: {e}")


# ==================== Confirmation ====================

class ConfirmationResult(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


class ConfirmationRequest(BaseModel):
    """What the user is asked to approve before a signature is requested."""
    title: str
    message: str
    payload: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


@runtime_checkable
class ConfirmationGate(Protocol):
    """Pauses the pipeline until the user approves or rejects."""

    async def request(self, title: str, message: str, payload: Dict[str, Any]) -> ConfirmationResult:
        ...


class AutoApproveGate:
    """No-op gate: approves every request without user interaction."""

    async def request(self, title: str, message: str, payload: Dict[str, Any]) -> ConfirmationResult:
        logger.debug(f"Auto-approved confirmation: {title}")
        return ConfirmationResult.APPROVED


DecisionFunc = Callable[[ConfirmationRequest], Union[bool, ConfirmationResult, Awaitable[Union[bool, ConfirmationResult]]]]


class CallbackConfirmationGate:
    """
    Gate backed by a user-supplied decision function.

    The function receives a ``ConfirmationRequest`` and returns (or resolves
    to) a bool or a ``ConfirmationResult``. Every request is kept in
    ``requests`` in the order it was made.

    Example::

        gate = CallbackConfirmationGate(lambda req: input(req.message + " [y/N] ") == "y")
    """

    def __init__(self, decide: DecisionFunc) -> None:
        self._decide = decide
        self.requests: List[ConfirmationRequest] = []

    async def request(self, title: str, message: str, payload: Dict[str, Any]) -> ConfirmationResult:
        confirmation = ConfirmationRequest(title=title, message=message, payload=payload)
        self.requests.append(confirmation)

        decision = self._decide(confirmation)
        if inspect.isawaitable(decision):
            decision = await decision

        if isinstance(decision, ConfirmationResult):
            return decision
        return ConfirmationResult.APPROVED if decision else ConfirmationResult.REJECTED


# ==================== Submission Context ====================

@dataclass(frozen=True)
class SubmissionContext:
    """
    Explicit session value for one orchestrator (read-only).

    Carries the active account (through ``signer``), the active chain, and
    the user-facing collaborators. Nothing is read from ambient state.
    """
    client: "EVMChainClient"
    signer: "Signer"
    chain: "EvmChainConfig"
    gate: ConfirmationGate = field(default_factory=AutoApproveGate)
    sink: ProgressSink = field(default_factory=LoggingProgressSink)
    gas_tuning: Optional["GasTuning"] = None

    @property
    def account(self) -> str:
        return self.signer.address
