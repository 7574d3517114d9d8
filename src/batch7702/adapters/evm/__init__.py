from .adapter import EVMChainClient
from .constants import (
    EvmChainConfig,
    GasTuning,
    get_chain_config,
    get_chain_config_by_id,
    get_rpc_url,
    supported_networks,
)
from .schemas import (
    DelegationAuthorization,
    EstimationMode,
    GasPlan,
    DispatchStrategy,
    AttemptOutcome,
    SubmissionAttempt,
    SignerCapabilities,
)
from .signatures import (
    Signer,
    LocalAccountSigner,
    AuthorizationSigner,
    capabilities_from_user_agent,
)
from .estimators import GasBudgetEstimator, derive_fees, heuristic_gas_limit
from .verifies import BalanceGuard, BalanceCheck, check_balance_sufficient
from .dispatchers import DispatchStrategySelector

__all__ = [
    "EVMChainClient",
    "EvmChainConfig",
    "GasTuning",
    "get_chain_config",
    "get_chain_config_by_id",
    "get_rpc_url",
    "supported_networks",
    "DelegationAuthorization",
    "EstimationMode",
    "GasPlan",
    "DispatchStrategy",
    "AttemptOutcome",
    "SubmissionAttempt",
    "SignerCapabilities",
    "Signer",
    "LocalAccountSigner",
    "AuthorizationSigner",
    "capabilities_from_user_agent",
    "GasBudgetEstimator",
    "derive_fees",
    "heuristic_gas_limit",
    "BalanceGuard",
    "BalanceCheck",
    "check_balance_sufficient",
    "DispatchStrategySelector",
]
