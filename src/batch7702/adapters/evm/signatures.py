"""
EVM Delegation Signing

Signer abstraction plus the confirmation-gated EIP-7702 authorization step.
All cryptographic operations of the local signer are performed in-process
using ``eth_account``; no RPC calls are made here.

Exported helpers
----------------
Signer
    Protocol implemented by every signer integration (local key, browser
    wallet bridge, remote signer). Capabilities are fixed at construction.

LocalAccountSigner
    Private-key-backed signer using ``eth_account.Account``.

capabilities_from_user_agent
    Compatibility shim mapping a browser identifier to ``SignerCapabilities``.

AuthorizationSigner
    Presents the authorization payload to the ``ConfirmationGate`` and, once
    approved, signs the delegation for the transaction's nonce.
"""

from typing import Any, Dict, Optional, Protocol, runtime_checkable

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_utils import is_hexstr

from ...engine.events import ConfirmationGate, ConfirmationResult
from ...engine.exceptions import ConfigurationError, UserRejectedError
from ...utils import logger
from .constants import EvmChainConfig, SELF_EXECUTION_NONCE_OFFSET, get_private_key_from_env
from .schemas import DelegationAuthorization, SignerCapabilities


@runtime_checkable
class Signer(Protocol):
    """
    Protocol for delegation-capable signers.

    Implementations own the key material; the rest of the pipeline only
    sees signed artifacts.
    """

    @property
    def address(self) -> str:
        ...

    @property
    def capabilities(self) -> SignerCapabilities:
        ...

    async def sign_authorization(
        self,
        delegate_contract: str,
        chain_id: int,
        nonce: int,
    ) -> DelegationAuthorization:
        ...

    async def sign_transaction(self, transaction: Dict[str, Any]) -> bytes:
        ...


# ---------------------------------------------------------------------------
# Capability shim
# ---------------------------------------------------------------------------

def capabilities_from_user_agent(user_agent: Optional[str]) -> SignerCapabilities:
    """
    Derive signer capabilities from a browser user-agent string.

    Chrome-hosted wallets (Brave excluded) mishandle the ContractCall form of
    delegated transactions and under-provision gas, so they get RawDispatch
    first and the strict gas multiplier. Everything else gets defaults.

    Args:
        user_agent: Browser identifier, or None outside a browser.

    Returns:
        SignerCapabilities for the environment.
    """
    ua = (user_agent or "").lower()
    if "chrome" in ua and "brave" not in ua:
        return SignerCapabilities(
            supports_contract_call=False,
            strict_environment=True,
            label="chrome",
        )
    return SignerCapabilities()


# ---------------------------------------------------------------------------
# Local signer
# ---------------------------------------------------------------------------

class LocalAccountSigner:
    """
    Signer backed by a local private key.

    Example::

        signer = LocalAccountSigner.from_private_key(os.environ["EVM_PRIVATE_KEY"])
        auth = await signer.sign_authorization(delegate, 11155111, nonce=8)
    """

    def __init__(self, account: LocalAccount, capabilities: Optional[SignerCapabilities] = None):
        self._account = account
        self._capabilities = capabilities or SignerCapabilities(label="local")

    @classmethod
    def from_private_key(
        cls,
        private_key: str,
        capabilities: Optional[SignerCapabilities] = None,
    ) -> "LocalAccountSigner":
        """
        Build a signer from a hex private key.

        Raises:
            ConfigurationError: If the key is not 32 bytes of hex.
        """
        key = (private_key or "").strip()
        if not key.startswith("0x"):
            key = "0x" + key
        if len(key) != 66 or not is_hexstr(key):
            raise ConfigurationError("Private key must be 32 bytes of hex (64 characters, optional 0x prefix)")
        return cls(Account.from_key(key), capabilities)

    @classmethod
    def from_env(cls, capabilities: Optional[SignerCapabilities] = None) -> "LocalAccountSigner":
        """
        Build a signer from ``EVM_PRIVATE_KEY``.

        Raises:
            ConfigurationError: If the variable is unset or malformed.
        """
        private_key = get_private_key_from_env()
        if not private_key:
            raise ConfigurationError("EVM_PRIVATE_KEY is not set")
        return cls.from_private_key(private_key, capabilities)

    @property
    def address(self) -> str:
        return self._account.address

    @property
    def capabilities(self) -> SignerCapabilities:
        return self._capabilities

    async def sign_authorization(
        self,
        delegate_contract: str,
        chain_id: int,
        nonce: int,
    ) -> DelegationAuthorization:
        signed = self._account.sign_authorization({
            "chainId": chain_id,
            "address": delegate_contract,
            "nonce": nonce,
        })
        return DelegationAuthorization(
            account=self.address,
            delegate_contract=delegate_contract,
            chain_id=signed.chain_id,
            account_nonce=signed.nonce,
            y_parity=signed.y_parity,
            r=signed.r,
            s=signed.s,
        )

    async def sign_transaction(self, transaction: Dict[str, Any]) -> bytes:
        signed = self._account.sign_transaction(transaction)
        return bytes(signed.raw_transaction)

    def __repr__(self) -> str:
        return f"LocalAccountSigner(address={self.address}, capabilities={self._capabilities.label})"


# ---------------------------------------------------------------------------
# Confirmation-gated authorization
# ---------------------------------------------------------------------------

class AuthorizationSigner:
    """
    Produces the delegation authorization for one submission.

    The user confirms the binding (account, delegate contract, chain) once.
    Signing for a different transaction nonce afterwards, as a nonce retry
    requires, does not ask again because the confirmed binding is unchanged.

    Attributes:
        signer: Active signer.
        chain: Chain whose delegate contract is authorized.
        gate: Confirmation gate consulted before the first signature.
    """

    def __init__(self, signer: Signer, chain: EvmChainConfig, gate: ConfirmationGate):
        self.signer = signer
        self.chain = chain
        self.gate = gate
        self._confirmed = False

    @property
    def delegate_contract(self) -> str:
        return self.chain.batch_call_delegation_address

    def confirmation_payload(self) -> Dict[str, Any]:
        return {
            "contractAddress": self.delegate_contract,
            "chainName": self.chain.name,
            "chainId": self.chain.chain_id,
            "account": self.signer.address,
        }

    async def confirm(self) -> None:
        """
        Ask the gate to approve the authorization.

        Raises:
            UserRejectedError: If the gate rejects.
        """
        if self._confirmed:
            return
        result = await self.gate.request(
            "Confirm EIP-7702 Authorization",
            f"Authorize {self.signer.address} to run the batch delegation contract "
            f"{self.delegate_contract} on {self.chain.name}.",
            self.confirmation_payload(),
        )
        if result != ConfirmationResult.APPROVED:
            raise UserRejectedError("User rejected the delegation authorization")
        self._confirmed = True

    async def sign_for_transaction(self, transaction_nonce: int) -> DelegationAuthorization:
        """
        Sign the authorization for a transaction sent with ``transaction_nonce``.

        The sender's nonce is incremented before the authorization list is
        processed, so the authorization commits to the next nonce.

        Raises:
            UserRejectedError: If confirmation was rejected or the signer
                reports the user declined.
        """
        await self.confirm()
        nonce = transaction_nonce + SELF_EXECUTION_NONCE_OFFSET
        try:
            authorization = await self.signer.sign_authorization(
                self.delegate_contract,
                self.chain.chain_id,
                nonce,
            )
        except UserRejectedError:
            raise
        except Exception as e:
            text = str(e).lower()
            if "user rejected" in text or "user denied" in text:
                raise UserRejectedError(f"User rejected the authorization signature: {e}") from e
            raise

        if not authorization.is_bound_to(self.signer.address, self.delegate_contract, self.chain.chain_id):
            raise ConfigurationError(
                f"Signer returned an authorization for a different binding: {authorization.to_display()}"
            )
        logger.debug(f"Signed delegation authorization (nonce {nonce}) for {self.signer.address}")
        return authorization
