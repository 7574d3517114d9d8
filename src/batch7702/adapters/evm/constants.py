"""
EVM Chain Configuration Management

Provides the supported networks with their batch-delegation contract
deployments, environment-aware RPC URL construction, and the tunable gas
heuristic constants.
"""

import os
from typing import Dict, Optional

from eth_utils import is_hex_address, to_checksum_address
from pydantic import BaseModel, Field, ValidationError, field_validator
import dotenv

from ...engine.exceptions import ConfigurationError

dotenv.load_dotenv()


class EvmChainConfig(BaseModel):
    """EVM network configuration for delegated batch transfers."""
    network: str = Field(..., description="Short network key (e.g. 'sepolia')")
    name: str = Field(..., description="Human-readable network name")
    chain_id: int = Field(..., gt=0)
    rpc_url: Optional[str] = Field(..., description="Provider RPC template with {RPC_KEYS} placeholder")
    public_rpc_url: str = Field(..., description="Public RPC endpoint (fallback when no provider key)")
    explorer_url: str = Field(..., description="Block explorer URL")
    batch_call_delegation_address: str = Field(..., description="Deployed BatchCallDelegation contract")

    @field_validator("batch_call_delegation_address")
    @classmethod
    def _checksum_delegate(cls, value: str) -> str:
        if not is_hex_address(value):
            raise ValueError(f"Invalid delegate address: {value!r}")
        return to_checksum_address(value)

    def tx_url(self, tx_hash: str) -> str:
        return f"{self.explorer_url.rstrip('/')}/tx/{tx_hash}"


class GasTuning(BaseModel):
    """
    Constants of the gas heuristic and fee derivation.

    The multipliers encode compatibility workarounds observed against
    specific signer implementations; they are configurable rather than
    derived and have not been re-verified against current signer versions.

    Attributes:
        base_gas: Execution overhead of the delegated call including one transfer.
        per_call_gas: Marginal gas per call in the batch.
        safety_multiplier: Over-provisioning factor for ordinary signers.
        strict_safety_multiplier: Factor for signers flagged as strict.
        priority_fee_divisor: Priority fee = gas price // divisor (5 -> 20 %).
        max_fee_percent: Max fee = gas price * percent // 100 (120 -> +20 %).
        simulation_buffer_percent: Headroom added to simulated estimates.
    """
    base_gas: int = Field(500_000, gt=0)
    per_call_gas: int = Field(100_000, ge=0)
    safety_multiplier: int = Field(3, ge=1)
    strict_safety_multiplier: int = Field(4, ge=1)
    priority_fee_divisor: int = Field(5, ge=1)
    max_fee_percent: int = Field(120, ge=100)
    simulation_buffer_percent: int = Field(110, ge=100)

    @classmethod
    def from_env(cls) -> "GasTuning":
        """
        Build tuning from defaults overridden by ``BATCH_*`` environment variables.

        Raises:
            ConfigurationError: If an override is not a valid integer or
                violates the field constraints.
        """
        overrides: Dict[str, int] = {}
        for field_name, env_name in _GAS_TUNING_ENV.items():
            raw = os.getenv(env_name)
            if raw is None or not raw.strip():
                continue
            try:
                overrides[field_name] = int(raw.strip())
            except ValueError as e:
                raise ConfigurationError(f"{env_name} must be an integer, got {raw!r}") from e
        try:
            return cls(**overrides)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid gas tuning override: {e}") from e


_GAS_TUNING_ENV: Dict[str, str] = {
    "base_gas": "BATCH_BASE_GAS",
    "per_call_gas": "BATCH_PER_CALL_GAS",
    "safety_multiplier": "BATCH_SAFETY_MULTIPLIER",
    "strict_safety_multiplier": "BATCH_STRICT_SAFETY_MULTIPLIER",
}

#: Network used when neither an argument nor ``BATCH_NETWORK`` selects one.
DEFAULT_NETWORK: str = "holesky"

#: The account executes its own delegated transaction, so its nonce is
#: bumped before the authorization list is processed.
SELF_EXECUTION_NONCE_OFFSET: int = 1


_EVM_CHAINS_DATA: Dict[str, Dict] = {
    "sepolia": {
        "name": "Sepolia",
        "chain_id": 11155111,
        "rpc_url": "https://eth-sepolia.g.alchemy.com/v2/{RPC_KEYS}",
        "public_rpc_url": "https://rpc.sepolia.org",
        "explorer_url": "https://sepolia.etherscan.io",
        "batch_call_delegation_address": "0x6987E30398b2896B5118ad1076fb9f58825a6f1a",
    },
    "holesky": {
        "name": "Holesky",
        "chain_id": 17000,
        "rpc_url": "https://eth-holesky.g.alchemy.com/v2/{RPC_KEYS}",
        "public_rpc_url": "https://ethereum-holesky-rpc.publicnode.com",
        "explorer_url": "https://holesky.etherscan.io",
        "batch_call_delegation_address": "0x979dd1ab4a7e3b3370b1daceec8b4198f97e0d6f",
    },
}


def supported_networks() -> list:
    return sorted(_EVM_CHAINS_DATA)


def get_chain_config(network: Optional[str] = None) -> EvmChainConfig:
    """
    Look up a supported network.

    Args:
        network: Network key; defaults to ``BATCH_NETWORK`` or ``holesky``.

    Returns:
        EvmChainConfig for the network.

    Raises:
        ConfigurationError: If the network is not supported.
    """
    key = (network or os.getenv("BATCH_NETWORK") or DEFAULT_NETWORK).strip().lower()
    data = _EVM_CHAINS_DATA.get(key)
    if data is None:
        raise ConfigurationError(
            f"Unsupported network: {key!r}. Supported networks: {', '.join(supported_networks())}"
        )
    return EvmChainConfig(network=key, **data)


def get_chain_config_by_id(chain_id: int) -> EvmChainConfig:
    for key, data in _EVM_CHAINS_DATA.items():
        if data["chain_id"] == chain_id:
            return EvmChainConfig(network=key, **data)
    raise ConfigurationError(f"Unsupported chain_id: {chain_id}")


def get_rpc_url(chain: EvmChainConfig, rpc_key: Optional[str] = None) -> str:
    """
    Resolve the RPC endpoint for a network.

    Uses the provider template when a key is available (argument or
    ``EVM_RPC_KEY``), otherwise the public endpoint.
    """
    key = rpc_key if rpc_key is not None else get_rpc_key_from_env()
    if key and chain.rpc_url:
        return chain.rpc_url.replace("{RPC_KEYS}", key)
    return chain.public_rpc_url


def get_private_key_from_env() -> Optional[str]:
    """
    Load the local signer's private key from ``EVM_PRIVATE_KEY``.

    The key should be stored in the environment or a ``.env`` file and
    never committed to version control.
    """
    return os.getenv("EVM_PRIVATE_KEY")


def get_rpc_key_from_env() -> Optional[str]:
    """
    Load the RPC provider API key from ``EVM_RPC_KEY``.

    If not set or empty, public RPC endpoints are used; they may be rate
    limited.
    """
    return os.getenv("EVM_RPC_KEY") or None
