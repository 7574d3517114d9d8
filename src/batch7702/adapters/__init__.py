from .evm import (
    EVMChainClient,
    EvmChainConfig,
    GasTuning,
    LocalAccountSigner,
    SignerCapabilities,
    get_chain_config,
)

__all__ = [
    "EVMChainClient",
    "EvmChainConfig",
    "GasTuning",
    "LocalAccountSigner",
    "SignerCapabilities",
    "get_chain_config",
]
