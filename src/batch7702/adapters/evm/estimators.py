"""
Gas budget estimation for delegated batch calls.

Two modes produce the gas limit:
    - SIMULATED: ``eth_estimateGas`` on the exact delegated call, plus a
      fixed headroom percentage.
    - HEURISTIC: ``(base_gas + per_call_gas * call_count) * multiplier``.
      A deliberate over-provision, because simulation of delegated calls is
      unreliable across signer implementations.

Either result is clamped down to the latest block's gas limit. Fees come from
one gas price query using integer floor division:

    max_priority_fee_per_gas = gas_price // priority_fee_divisor
    max_fee_per_gas          = gas_price * max_fee_percent // 100
"""

from typing import Callable, Optional, Tuple

from ...engine.exceptions import GasEstimationFailure
from ...schemas.transfers import BatchIntent
from ...utils import logger, wei_to_gwei
from .adapter import EVMChainClient
from .constants import GasTuning
from .schemas import DelegationAuthorization, EstimationMode, GasPlan, SignerCapabilities


ReportFunc = Callable[[str, str], None]


def derive_fees(gas_price: int, tuning: Optional[GasTuning] = None) -> Tuple[int, int]:
    """
    Derive EIP-1559 fee caps from a legacy gas price.

    Args:
        gas_price: Current network gas price in wei.
        tuning: Fee constants; defaults to ``GasTuning()``.

    Returns:
        ``(max_fee_per_gas, max_priority_fee_per_gas)``.

    Example:
        derive_fees(10) == (12, 2)
    """
    tuning = tuning or GasTuning()
    if gas_price < 0:
        raise GasEstimationFailure(f"Gas price must be non-negative, got {gas_price}")
    max_priority_fee_per_gas = gas_price // tuning.priority_fee_divisor
    max_fee_per_gas = gas_price * tuning.max_fee_percent // 100
    return max_fee_per_gas, max_priority_fee_per_gas


def heuristic_gas_limit(call_count: int, strict: bool = False, tuning: Optional[GasTuning] = None) -> int:
    """Unclamped heuristic gas limit for a batch of ``call_count`` calls."""
    tuning = tuning or GasTuning()
    multiplier = tuning.strict_safety_multiplier if strict else tuning.safety_multiplier
    return (tuning.base_gas + tuning.per_call_gas * call_count) * multiplier


class GasBudgetEstimator:
    """
    Produces the ``GasPlan`` for one submission.

    Queries the gas price and the block gas ceiling exactly once per plan.
    Failure of either query is fatal (``GasEstimationFailure``); failure of
    the simulation is not and falls back to the heuristic.

    Attributes:
        client: Chain client used for the three queries.
        tuning: Heuristic and fee constants.
    """

    def __init__(
        self,
        client: EVMChainClient,
        tuning: Optional[GasTuning] = None,
        report: Optional[ReportFunc] = None,
    ):
        self.client = client
        self.tuning = tuning or GasTuning()
        self._report = report or (lambda stage, message: None)

    async def simulate(
        self,
        account: str,
        intent: BatchIntent,
        authorization: Optional[DelegationAuthorization] = None,
    ) -> int:
        """
        Simulated gas limit including headroom.

        Raises:
            Exception: Whatever the node or client raised; callers fall back.
        """
        call = self.client.build_simulation_call(account, intent, authorization)
        estimate = await self.client.estimate_gas(call)
        return estimate * self.tuning.simulation_buffer_percent // 100

    async def plan(
        self,
        account: str,
        intent: BatchIntent,
        capabilities: SignerCapabilities,
        authorization: Optional[DelegationAuthorization] = None,
    ) -> GasPlan:
        """
        Build the gas plan.

        Args:
            account: Sending (and delegating) account.
            intent: Batch being submitted.
            capabilities: Signer capabilities; select simulation and the
                multiplier.
            authorization: Signed authorization included in the simulation.

        Returns:
            GasPlan with ``gas_limit`` no greater than the block gas ceiling.

        Raises:
            GasEstimationFailure: If the gas price or block query fails.
        """
        try:
            gas_price = await self.client.get_gas_price()
        except Exception as e:
            raise GasEstimationFailure(f"Gas price query failed: {e}") from e

        try:
            ceiling = await self.client.get_block_gas_ceiling()
        except Exception as e:
            raise GasEstimationFailure(f"Block gas limit query failed: {e}") from e

        max_fee_per_gas, max_priority_fee_per_gas = derive_fees(gas_price, self.tuning)

        gas_limit = None
        mode = EstimationMode.HEURISTIC
        if capabilities.supports_gas_simulation:
            try:
                gas_limit = await self.simulate(account, intent, authorization)
                mode = EstimationMode.SIMULATED
            except Exception as e:
                logger.info(f"Gas simulation unavailable, using heuristic: {e}")

        if gas_limit is None or gas_limit <= 0:
            gas_limit = heuristic_gas_limit(intent.call_count, capabilities.strict_environment, self.tuning)
            mode = EstimationMode.HEURISTIC

        clamped = gas_limit > ceiling
        if clamped:
            self._report(
                "warning",
                f"Gas limit {gas_limit:,} exceeds block gas limit {ceiling:,}; clamping to block limit",
            )
            gas_limit = ceiling

        plan = GasPlan(
            gas_limit=gas_limit,
            max_fee_per_gas=max_fee_per_gas,
            max_priority_fee_per_gas=max_priority_fee_per_gas,
            mode=mode,
            block_gas_ceiling=ceiling,
            clamped=clamped,
        )
        self._report(
            "gas_estimation",
            f"Gas limit {plan.gas_limit:,} ({mode.value}); max fee {wei_to_gwei(max_fee_per_gas)} gwei, "
            f"priority fee {wei_to_gwei(max_priority_fee_per_gas)} gwei",
        )
        return plan
