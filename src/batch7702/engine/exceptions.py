"""
Exception and Error Definitions Module

Defines the exception hierarchy for batched delegated submissions. All
exceptions inherit from BatchTransferError for unified exception handling.

Exception Hierarchy:
    BatchTransferError (root)
    ├── EmptyBatchError
    ├── ValueOverflowError
    ├── UserRejectedError
    ├── GasEstimationFailure
    ├── InsufficientBalanceError
    ├── NonceConflictError
    ├── DispatchIncompatibilityError
    ├── UnknownSubmissionError
    ├── ConfigurationError
    └── InvalidTransition

Recoverable classes (NonceConflictError, DispatchIncompatibilityError) are
retried at most once inside the retry controller. Every other class is
terminal and reaches the caller with the originating cause chained.
"""

from typing import Optional


class BatchTransferError(Exception):
    """
    Root exception class for all project-specific exceptions.

    All custom exceptions inherit from this class so callers can catch any
    terminal submission failure with a single ``except`` clause.
    """
    pass


class EmptyBatchError(BatchTransferError):
    """
    Raised when a submission is requested with no transfers.
    """
    pass


class ValueOverflowError(BatchTransferError):
    """
    Raised when an amount or the aggregate value does not fit in a uint256.

    Attributes:
        value: The offending value
    """

    def __init__(self, message: str, value: Optional[int] = None):
        self.value = value
        super().__init__(message)


class UserRejectedError(BatchTransferError):
    """
    Raised when the user declines a confirmation request or the signer
    reports that the user rejected the signature.
    """
    pass


class GasEstimationFailure(BatchTransferError):
    """
    Raised when no gas plan can be produced.

    This includes scenarios such as:
    - Gas price query failure
    - Block gas ceiling query failure
    - Node rejecting the transaction for insufficient gas
    """
    pass


class InsufficientBalanceError(BatchTransferError):
    """
    Raised when account balance cannot cover transfer value plus worst-case fee.

    Attributes:
        required: Amount required in wei (None when reported by the node)
        available: Amount available in wei (None when reported by the node)
    """

    def __init__(self, message: str, required: Optional[int] = None, available: Optional[int] = None):
        self.required = required
        self.available = available
        super().__init__(message)

    @property
    def shortfall(self) -> Optional[int]:
        if self.required is None or self.available is None:
            return None
        return max(self.required - self.available, 0)


class NonceConflictError(BatchTransferError):
    """
    Raised when the node keeps rejecting the transaction nonce after the
    single refreshed-nonce retry.

    Attributes:
        nonce: Nonce of the last rejected attempt
    """

    def __init__(self, message: str, nonce: Optional[int] = None):
        self.nonce = nonce
        super().__init__(message)


class DispatchIncompatibilityError(BatchTransferError):
    """
    Raised when both transaction encodings were rejected with
    delegation/authorization/revert errors.
    """
    pass


class UnknownSubmissionError(BatchTransferError):
    """
    Raised for any failure that does not match a known class.

    The underlying error message is preserved verbatim.
    """
    pass


class ConfigurationError(BatchTransferError):
    """
    Raised when configuration is missing or invalid.

    This includes scenarios such as:
    - Unknown network name
    - Malformed private key
    - Invalid gas tuning override in the environment
    """
    pass


class InvalidTransition(BatchTransferError):
    """
    Raised when the submission state machine is asked to make a transition
    that is not defined for its current state.

    Attributes:
        current_state: State the machine was in
        target_state: State that was requested
    """

    def __init__(self, current_state: str, target_state: str):
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(f"Invalid transition {current_state} -> {target_state}")
