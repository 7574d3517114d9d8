from .bases import CanonicalModel, MAX_UINT256
from .transfers import TransferRequest, CallDescriptor, BatchIntent

__all__ = [
    "CanonicalModel",
    "MAX_UINT256",
    "TransferRequest",
    "CallDescriptor",
    "BatchIntent",
]
