"""
EVM Balance Verification

Pre-dispatch check that the sending account can cover the batch value plus
the worst-case fee of its gas plan:

    balance >= aggregate_value + gas_limit * max_fee_per_gas

The check runs after gas planning, so it uses the final fee numbers, and
before any transaction is sent.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict

from ...engine.exceptions import InsufficientBalanceError, UnknownSubmissionError
from ...schemas.transfers import BatchIntent
from ...utils import logger, wei_to_ether
from .adapter import EVMChainClient
from .schemas import GasPlan


class BalanceCheck(BaseModel):
    """Outcome of a balance check; all amounts in wei."""
    available: int
    transfer_value: int
    max_fee_cost: int

    model_config = ConfigDict(frozen=True)

    @property
    def required(self) -> int:
        return self.transfer_value + self.max_fee_cost

    @property
    def sufficient(self) -> bool:
        return self.available >= self.required

    @property
    def shortfall(self) -> int:
        return max(self.required - self.available, 0)


def check_balance_sufficient(available: int, intent: BatchIntent, plan: GasPlan) -> BalanceCheck:
    """Compare an already-known balance against the intent and plan. No I/O."""
    return BalanceCheck(
        available=available,
        transfer_value=intent.aggregate_value,
        max_fee_cost=plan.max_fee_cost,
    )


class BalanceGuard:
    """
    Mandatory funds check before dispatch.

    Example:
        guard = BalanceGuard(client)
        await guard.verify(account, intent, plan)   # raises if short
    """

    def __init__(self, client: EVMChainClient):
        self.client = client

    async def verify(self, account: str, intent: BatchIntent, plan: GasPlan) -> BalanceCheck:
        """
        Query the balance and verify it covers value plus worst-case fee.

        Returns:
            BalanceCheck of a sufficient balance.

        Raises:
            InsufficientBalanceError: With ``required`` and ``available`` set.
            UnknownSubmissionError: If the balance query fails.
        """
        try:
            available = await self.client.get_balance(account)
        except Exception as e:
            raise UnknownSubmissionError(f"Balance query failed: {e}") from e

        check = check_balance_sufficient(available, intent, plan)
        if not check.sufficient:
            raise InsufficientBalanceError(
                f"Insufficient balance: need {wei_to_ether(check.required)} ETH "
                f"(transfers {wei_to_ether(check.transfer_value)} + max fee {wei_to_ether(check.max_fee_cost)}), "
                f"have {wei_to_ether(check.available)} ETH; short {wei_to_ether(check.shortfall)} ETH",
                required=check.required,
                available=check.available,
            )
        logger.debug(f"Balance check passed for {account}: {available} >= {check.required}")
        return check


def describe_shortfall(error: InsufficientBalanceError) -> Optional[str]:
    shortfall = error.shortfall
    if shortfall is None:
        return None
    return f"{wei_to_ether(shortfall)} ETH"
