"""
Transfer Schema Models

Pydantic models describing what the caller wants to move and the normalized
on-chain call sequence derived from it.

Classes:
    - TransferRequest: One requested native-asset transfer (caller input).
    - CallDescriptor: Normalized ``{target, amount, payload}`` call unit, the
      element type of the batch-execute entry point's ``calls`` argument.
    - BatchIntent: Ordered call sequence plus its derived aggregate value.
"""

from typing import Any, List, Optional, Tuple

from eth_utils import is_address, to_bytes, to_checksum_address
from pydantic import ConfigDict, Field, field_validator

from .bases import CanonicalModel


def _checksum(value: Any) -> str:
    if not isinstance(value, str) or not is_address(value):
        raise ValueError(f"Invalid EVM address: {value!r}")
    return to_checksum_address(value)


def _as_bytes(value: Any) -> bytes:
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        try:
            return to_bytes(hexstr=value)
        except ValueError as e:
            raise ValueError(f"Invalid hex payload: {value!r}") from e
    raise ValueError(f"Payload must be bytes or a hex string, got {type(value).__name__}")


class TransferRequest(CanonicalModel):
    """
    A single requested transfer of the native asset.

    Immutable once accepted. ``amount`` is in wei; it must be non-negative.
    Fixed-width overflow is checked by ``TransferSetBuilder`` so that it
    surfaces as ``ValueOverflowError`` rather than a validation error.

    Attributes:
        recipient: Destination address (checksummed on validation).
        amount: Amount in wei.
        extra_data: Optional calldata forwarded to the recipient.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    recipient: str = Field(..., description="Recipient address")
    amount: int = Field(..., ge=0, description="Amount in wei")
    extra_data: Optional[bytes] = Field(None, alias="extraData", description="Optional call payload")

    @field_validator("recipient", mode="before")
    @classmethod
    def _validate_recipient(cls, value: Any) -> str:
        return _checksum(value)

    @field_validator("extra_data", mode="before")
    @classmethod
    def _validate_extra_data(cls, value: Any) -> Optional[bytes]:
        if value is None:
            return None
        return _as_bytes(value)


class CallDescriptor(CanonicalModel):
    """
    Normalized on-chain call unit.

    Attributes:
        target: Call target address.
        amount: Value forwarded with the call, in wei.
        payload: Calldata; empty bytes for plain value transfers.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    target: str
    amount: int = Field(..., ge=0)
    payload: bytes = b""

    @field_validator("target", mode="before")
    @classmethod
    def _validate_target(cls, value: Any) -> str:
        return _checksum(value)

    @field_validator("payload", mode="before")
    @classmethod
    def _validate_payload(cls, value: Any) -> bytes:
        return _as_bytes(value)

    def to_abi_tuple(self) -> Tuple[bytes, str, int]:
        """Return the ``(data, to, value)`` tuple in the delegate ABI's field order."""
        return (self.payload, self.target, self.amount)


class BatchIntent(CanonicalModel):
    """
    Ordered call sequence for one batched submission.

    ``calls`` order is the execution order. ``aggregate_value`` is always
    computed from ``calls``; there is no separately stored total to drift.
    """

    model_config = ConfigDict(frozen=True)

    calls: Tuple[CallDescriptor, ...] = Field(..., min_length=1)

    @property
    def aggregate_value(self) -> int:
        return sum(call.amount for call in self.calls)

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def to_abi_args(self) -> List[Tuple[bytes, str, int]]:
        return [call.to_abi_tuple() for call in self.calls]

    def to_display(self) -> List[dict]:
        """Calls as display dicts with ``to``, ``value`` (decimal string) and ``data`` keys."""
        return [
            {"to": call.target, "value": str(call.amount), "data": "0x" + call.payload.hex()}
            for call in self.calls
        ]
