"""
EVM Chain Client Adapter

Async wrapper over ``web3.AsyncWeb3`` exposing exactly the chain operations a
delegated batch submission needs: balance, block gas ceiling, gas price,
transaction count, gas estimation, and the two dispatch encodings of the
batch-execute call.

Key Features:
    - One RPC handle per client, reusable across submissions
    - ContractCall dispatch via the delegate ABI's ``execute`` function
    - RawDispatch of pre-encoded calldata as a value transfer to self
    - Local signing through the active ``Signer``; only the signed raw
      transaction is broadcast

Dependencies:
    - web3.py: For blockchain RPC interaction and ABI encoding
"""

from typing import Any, Dict, Optional, TYPE_CHECKING

from web3 import AsyncWeb3

from ...schemas.transfers import BatchIntent
from ...utils import logger
from .BatchCallDelegation_ABI import EXECUTE_FUNCTION, get_batch_call_delegation_abi
from .constants import EvmChainConfig, get_rpc_url
from .schemas import DelegationAuthorization, GasPlan

if TYPE_CHECKING:
    from .signatures import Signer


#: EIP-2718 type of set-code (EIP-7702) transactions.
SET_CODE_TX_TYPE: int = 4


class EVMChainClient:
    """
    Chain client for one EVM network.

    The client is read-mostly: it holds no per-submission state, so a single
    instance may serve any number of sequential or concurrent submissions.
    Serializing submissions from the same account is the caller's concern.

    Attributes:
        chain: Network configuration.
        web3: Underlying ``AsyncWeb3`` instance.

    Example:
        client = EVMChainClient(get_chain_config("sepolia"))
        balance = await client.get_balance("0x...")
    """

    def __init__(
        self,
        chain: EvmChainConfig,
        rpc_url: Optional[str] = None,
        request_timeout: int = 60,
        web3: Optional[AsyncWeb3] = None,
    ):
        """
        Initialize the chain client.

        Args:
            chain: Network configuration.
            rpc_url: Explicit RPC endpoint; defaults to the provider template
                (with ``EVM_RPC_KEY``) or the network's public endpoint.
            request_timeout: HTTP timeout for RPC requests in seconds.
            web3: Pre-built ``AsyncWeb3`` instance (tests, custom providers).
        """
        self.chain = chain
        self.rpc_url = rpc_url or get_rpc_url(chain)
        self.web3 = web3 or AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
            self.rpc_url,
            request_kwargs={"timeout": request_timeout}
        ))
        # Address-less contract, used only for calldata encoding.
        self._encoder = self.web3.eth.contract(abi=get_batch_call_delegation_abi())

    @property
    def chain_id(self) -> int:
        return self.chain.chain_id

    def _delegated_contract(self, account: str):
        # After delegation the account itself exposes the delegate's ABI.
        return self.web3.eth.contract(
            address=AsyncWeb3.to_checksum_address(account),
            abi=get_batch_call_delegation_abi(),
        )

    def encode_batch_call(self, intent: BatchIntent) -> str:
        """
        ABI-encode ``execute(calls)`` for the intent.

        Returns:
            0x-prefixed calldata hex string.
        """
        return self._encoder.encode_abi(EXECUTE_FUNCTION, args=[intent.to_abi_args()])

    async def get_balance(self, account: str) -> int:
        return int(await self.web3.eth.get_balance(AsyncWeb3.to_checksum_address(account)))

    async def get_block_gas_ceiling(self) -> int:
        """Gas limit of the latest block, the ceiling for any single transaction."""
        block = await self.web3.eth.get_block("latest")
        return int(block["gasLimit"])

    async def get_gas_price(self) -> int:
        return int(await self.web3.eth.gas_price)

    async def get_transaction_count(self, account: str, block_identifier: str = "latest") -> int:
        """
        Account nonce.

        Args:
            account: Account address.
            block_identifier: ``"latest"`` for mined state, ``"pending"`` to
                include transactions still in the mempool.
        """
        return int(await self.web3.eth.get_transaction_count(
            AsyncWeb3.to_checksum_address(account),
            block_identifier,
        ))

    async def estimate_gas(self, transaction: Dict[str, Any]) -> int:
        return int(await self.web3.eth.estimate_gas(transaction))

    def build_simulation_call(
        self,
        account: str,
        intent: BatchIntent,
        authorization: Optional[DelegationAuthorization] = None,
    ) -> Dict[str, Any]:
        """Call object for simulating the delegated batch against the account itself."""
        account = AsyncWeb3.to_checksum_address(account)
        call: Dict[str, Any] = {
            "from": account,
            "to": account,
            "value": intent.aggregate_value,
            "data": self.encode_batch_call(intent),
        }
        if authorization is not None:
            call["authorizationList"] = [authorization.to_transaction_entry()]
        return call

    def _base_params(
        self,
        account: str,
        value: int,
        authorization: DelegationAuthorization,
        nonce: int,
        plan: GasPlan,
    ) -> Dict[str, Any]:
        return {
            "type": SET_CODE_TX_TYPE,
            "chainId": self.chain_id,
            "from": AsyncWeb3.to_checksum_address(account),
            "value": value,
            "nonce": nonce,
            "accessList": [],
            "authorizationList": [authorization.to_transaction_entry()],
            **plan.to_transaction_fields(),
        }

    async def send_contract_call(
        self,
        signer: "Signer",
        intent: BatchIntent,
        authorization: DelegationAuthorization,
        nonce: int,
        plan: GasPlan,
    ) -> str:
        """
        Dispatch in ContractCall form.

        The transaction is assembled by web3's contract machinery from the
        ``execute`` function and its arguments, then signed and broadcast.

        Returns:
            Transaction hash as a 0x-prefixed hex string.
        """
        params = self._base_params(signer.address, intent.aggregate_value, authorization, nonce, plan)
        fn = self._delegated_contract(signer.address).functions.execute(intent.to_abi_args())
        transaction = await fn.build_transaction(params)
        return await self._sign_and_send(signer, transaction)

    async def send_raw_transaction(
        self,
        signer: "Signer",
        data: str,
        value: int,
        authorization: DelegationAuthorization,
        nonce: int,
        plan: GasPlan,
    ) -> str:
        """
        Dispatch in RawDispatch form.

        Pre-encoded ``data`` is sent to the account's own address as a plain
        value-transfer-with-data transaction.

        Returns:
            Transaction hash as a 0x-prefixed hex string.
        """
        transaction = self._base_params(signer.address, value, authorization, nonce, plan)
        transaction["to"] = AsyncWeb3.to_checksum_address(signer.address)
        transaction["data"] = data
        return await self._sign_and_send(signer, transaction)

    async def _sign_and_send(self, signer: "Signer", transaction: Dict[str, Any]) -> str:
        raw_transaction = await signer.sign_transaction(transaction)
        tx_hash = await self.web3.eth.send_raw_transaction(raw_transaction)
        tx_hash_hex = AsyncWeb3.to_hex(tx_hash)
        logger.debug(f"Broadcast transaction {tx_hash_hex} (nonce {transaction.get('nonce')})")
        return tx_hash_hex
