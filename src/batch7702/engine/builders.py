"""
Transfer set normalization.

Turns caller-supplied transfers into the ordered call sequence of a
``BatchIntent``. Pure and deterministic; no network access.
"""

from typing import Any, Iterable, List, Mapping, Union

from pydantic import ValidationError

from ..schemas.bases import MAX_UINT256
from ..schemas.transfers import BatchIntent, CallDescriptor, TransferRequest
from .exceptions import EmptyBatchError, ValueOverflowError


TransferLike = Union[TransferRequest, Mapping[str, Any]]


class TransferSetBuilder:
    """
    Validates transfers and builds the batch intent.

    Amounts are summed with Python integers and checked against the uint256
    range, both per transfer and in aggregate, so nothing wraps silently.

    Example:
        intent = TransferSetBuilder().build([
            {"recipient": "0xabc...", "amount": 10**15},
            TransferRequest(recipient="0xdef...", amount=2 * 10**15),
        ])
    """

    def __init__(self, max_value: int = MAX_UINT256):
        self.max_value = max_value

    def _coerce(self, index: int, transfer: TransferLike) -> TransferRequest:
        if isinstance(transfer, TransferRequest):
            return transfer
        if isinstance(transfer, Mapping):
            amount = transfer.get("amount")
            if isinstance(amount, int) and not isinstance(amount, bool) and amount > self.max_value:
                raise ValueOverflowError(
                    f"Transfer #{index} amount {amount} exceeds uint256",
                    value=amount,
                )
            try:
                return TransferRequest.model_validate(transfer)
            except ValidationError as e:
                raise ValueError(f"Invalid transfer #{index}: {e}") from e
        raise TypeError(f"Transfer #{index} must be a TransferRequest or mapping, got {type(transfer).__name__}")

    def normalize(self, transfers: Iterable[TransferLike]) -> List[TransferRequest]:
        """
        Validate every transfer.

        Raises:
            EmptyBatchError: If there are no transfers.
            ValueOverflowError: If any amount exceeds uint256.
        """
        requests = [self._coerce(i, t) for i, t in enumerate(transfers)]
        if not requests:
            raise EmptyBatchError("At least one transfer is required")
        for i, request in enumerate(requests):
            if request.amount > self.max_value:
                raise ValueOverflowError(
                    f"Transfer #{i} amount {request.amount} exceeds uint256",
                    value=request.amount,
                )
        return requests

    def build(self, transfers: Iterable[TransferLike]) -> BatchIntent:
        """
        Build the ``BatchIntent`` for a list of transfers, preserving order.

        Raises:
            EmptyBatchError: If there are no transfers.
            ValueOverflowError: If an amount or the total exceeds uint256.
        """
        requests = self.normalize(transfers)

        total = sum(request.amount for request in requests)
        if total > self.max_value:
            raise ValueOverflowError(f"Aggregate value {total} exceeds uint256", value=total)

        calls = tuple(
            CallDescriptor(
                target=request.recipient,
                amount=request.amount,
                payload=request.extra_data or b"",
            )
            for request in requests
        )
        return BatchIntent(calls=calls)
