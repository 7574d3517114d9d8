"""
EVM Adapter Schema Models

Pydantic models for delegated batch submission on EVM chains.

Authorization classes:
    - DelegationAuthorization: Signed EIP-7702 authorization tuple
      ``(chain_id, address, nonce, y_parity, r, s)`` binding one account to
      one delegate contract on one chain.

Planning classes:
    - GasPlan: Gas limit and EIP-1559 fee parameters for one submission.
    - EstimationMode: How the gas limit was derived.

Dispatch classes:
    - DispatchStrategy: ContractCall vs RawDispatch encoding.
    - AttemptOutcome / SubmissionAttempt: One disposable dispatch attempt.
    - SignerCapabilities: What the active signer accepts, resolved once at
      signer construction.
"""

from enum import Enum
from typing import Any, Dict, Optional

from eth_utils import is_address, to_checksum_address
from pydantic import ConfigDict, Field, field_validator, model_validator

from ...schemas.bases import CanonicalModel


class DelegationAuthorization(CanonicalModel):
    """
    Signed EIP-7702 delegation authorization.

    Valid for exactly one ``(account, delegate_contract, chain_id)`` triple
    and one account nonce. A new one is signed for every submission; it is
    never reused across chains or delegate addresses.

    ``r`` and ``s`` are excluded from ``repr`` and from
    :meth:`to_display`; they only leave the process inside the submitted
    transaction.

    Attributes:
        account: Authorizing (delegating) account.
        delegate_contract: Contract whose code the account will run.
        chain_id: Chain the authorization is valid on.
        account_nonce: Account nonce the authorization commits to.
        y_parity: Signature recovery bit (0 or 1).
        r: Signature r component.
        s: Signature s component.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    account: str
    delegate_contract: str = Field(..., alias="delegateContract")
    chain_id: int = Field(..., ge=0, alias="chainId")
    account_nonce: int = Field(..., ge=0, alias="nonce")
    y_parity: int = Field(..., ge=0, le=1, repr=False, alias="yParity")
    r: int = Field(..., ge=0, repr=False)
    s: int = Field(..., ge=0, repr=False)

    @field_validator("account", "delegate_contract", mode="before")
    @classmethod
    def _checksum(cls, value: Any) -> str:
        if not isinstance(value, str) or not is_address(value):
            raise ValueError(f"Invalid EVM address: {value!r}")
        return to_checksum_address(value)

    def is_bound_to(self, account: str, delegate_contract: str, chain_id: int) -> bool:
        return (
            self.account.lower() == account.lower()
            and self.delegate_contract.lower() == delegate_contract.lower()
            and self.chain_id == chain_id
        )

    def to_transaction_entry(self) -> Dict[str, Any]:
        """Entry for a transaction's ``authorizationList``."""
        return {
            "chainId": self.chain_id,
            "address": self.delegate_contract,
            "nonce": self.account_nonce,
            "yParity": self.y_parity,
            "r": self.r,
            "s": self.s,
        }

    def to_display(self) -> Dict[str, Any]:
        """Authorization fields safe to show or log (no signature components)."""
        return {
            "contractAddress": self.delegate_contract,
            "chainId": self.chain_id,
            "nonce": self.account_nonce,
            "account": self.account,
        }


class EstimationMode(str, Enum):
    """
    How a gas limit was derived.

    Attributes:
        SIMULATED: ``eth_estimateGas`` on the exact delegated call plus buffer
        HEURISTIC: Fixed per-call formula with a safety multiplier
    """
    SIMULATED = "simulated"
    HEURISTIC = "heuristic"


class GasPlan(CanonicalModel):
    """
    Gas limit and EIP-1559 fee parameters for one submission.

    Invariants:
        - ``gas_limit <= block_gas_ceiling`` when the ceiling is known
        - ``max_fee_per_gas >= max_priority_fee_per_gas``
    """

    model_config = ConfigDict(frozen=True)

    gas_limit: int = Field(..., gt=0)
    max_fee_per_gas: int = Field(..., ge=0)
    max_priority_fee_per_gas: int = Field(..., ge=0)
    mode: EstimationMode = EstimationMode.HEURISTIC
    block_gas_ceiling: Optional[int] = Field(None, gt=0)
    clamped: bool = False

    @model_validator(mode="after")
    def _check_invariants(self) -> "GasPlan":
        if self.max_fee_per_gas < self.max_priority_fee_per_gas:
            raise ValueError(
                f"max_fee_per_gas ({self.max_fee_per_gas}) must be >= "
                f"max_priority_fee_per_gas ({self.max_priority_fee_per_gas})"
            )
        if self.block_gas_ceiling is not None and self.gas_limit > self.block_gas_ceiling:
            raise ValueError(
                f"gas_limit ({self.gas_limit}) exceeds block gas ceiling ({self.block_gas_ceiling})"
            )
        return self

    @property
    def max_fee_cost(self) -> int:
        """Worst-case fee in wei: ``gas_limit * max_fee_per_gas``."""
        return self.gas_limit * self.max_fee_per_gas

    def to_transaction_fields(self) -> Dict[str, int]:
        return {
            "gas": self.gas_limit,
            "maxFeePerGas": self.max_fee_per_gas,
            "maxPriorityFeePerGas": self.max_priority_fee_per_gas,
        }


class DispatchStrategy(str, Enum):
    """
    Equivalent encodings of the same delegated batch transaction.

    Attributes:
        CONTRACT_CALL: Built through the contract's ``execute`` function
        RAW_DISPATCH: Pre-encoded calldata sent as a value transfer to self
    """
    CONTRACT_CALL = "contract_call"
    RAW_DISPATCH = "raw_dispatch"

    def alternate(self) -> "DispatchStrategy":
        if self is DispatchStrategy.CONTRACT_CALL:
            return DispatchStrategy.RAW_DISPATCH
        return DispatchStrategy.CONTRACT_CALL


class AttemptOutcome(str, Enum):
    PENDING = "pending"
    HASH = "hash"
    FAILED = "failed"


class SubmissionAttempt(CanonicalModel):
    """
    One dispatch attempt of a logical submission.

    Attempts are disposable values: the retry controller creates a new one
    for every dispatch and records how it ended.
    """

    model_config = ConfigDict(frozen=True)

    nonce: int = Field(..., ge=0)
    plan: GasPlan
    strategy: DispatchStrategy
    outcome: AttemptOutcome = AttemptOutcome.PENDING
    tx_hash: Optional[str] = None
    error_kind: Optional[str] = None
    error_message: Optional[str] = None

    def succeeded(self, tx_hash: str) -> "SubmissionAttempt":
        return self.model_copy(update={"outcome": AttemptOutcome.HASH, "tx_hash": tx_hash})

    def failed(self, error_kind: str, error_message: str) -> "SubmissionAttempt":
        return self.model_copy(update={
            "outcome": AttemptOutcome.FAILED,
            "error_kind": error_kind,
            "error_message": error_message,
        })


class SignerCapabilities(CanonicalModel):
    """
    Capability descriptor supplied by the signer integration layer.

    Attributes:
        supports_contract_call: Signer accepts the ContractCall form for
            delegated transactions. False selects RawDispatch first.
        supports_gas_simulation: ``eth_estimateGas`` on the delegated call
            is worth trying before falling back to the heuristic.
        strict_environment: Signing environment known to need extra gas
            headroom; selects the strict safety multiplier.
        label: Human-readable environment name for progress messages.
    """

    model_config = ConfigDict(frozen=True)

    supports_contract_call: bool = True
    supports_gas_simulation: bool = True
    strict_environment: bool = False
    label: str = "default"

    @property
    def preferred_strategy(self) -> DispatchStrategy:
        if self.supports_contract_call:
            return DispatchStrategy.CONTRACT_CALL
        return DispatchStrategy.RAW_DISPATCH
