"""
BatchCallDelegation Smart Contract ABI Module

ABI for the delegate contract an account points its code at via EIP-7702.
Its single entry point ``execute((bytes data, address to, uint256 value)[])``
runs the calls in order inside the account's own context.

Usage:
    from .BatchCallDelegation_ABI import get_batch_call_delegation_abi

    abi = get_batch_call_delegation_abi()
    contract = web3.eth.contract(address=account_address, abi=abi)
"""

from typing import Any, Dict, List


#: Name of the batch-execute entry point.
EXECUTE_FUNCTION: str = "execute"


def get_batch_call_delegation_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ``BatchCallDelegation.execute``.

    Tuple component order (``data``, ``to``, ``value``) is part of the
    on-chain encoding and must not be changed.

    Returns:
        List[Dict[str, Any]]: ABI for the payable ``execute`` function.
    """
    return [
        {
            "inputs": [
                {
                    "components": [
                        {"name": "data", "type": "bytes"},
                        {"name": "to", "type": "address"},
                        {"name": "value", "type": "uint256"},
                    ],
                    "name": "calls",
                    "type": "tuple[]",
                }
            ],
            "name": EXECUTE_FUNCTION,
            "outputs": [],
            "stateMutability": "payable",
            "type": "function",
        }
    ]
