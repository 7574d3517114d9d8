"""
Tests for BalanceGuard.
"""
import pytest
from unittest.mock import AsyncMock

from batch7702.adapters.evm.schemas import GasPlan
from batch7702.adapters.evm.verifies import BalanceGuard, check_balance_sufficient
from batch7702.engine.builders import TransferSetBuilder
from batch7702.engine.exceptions import InsufficientBalanceError, UnknownSubmissionError

from test_mocks import MOCK_ACCOUNT_ADDRESS, create_mock_chain_client, create_transfers


PLAN = GasPlan(gas_limit=2_400_000, max_fee_per_gas=12, max_priority_fee_per_gas=2)
REQUIRED = 6 + 2_400_000 * 12


@pytest.fixture
def intent():
    return TransferSetBuilder().build(create_transfers(1, 2, 3))


class TestCheckBalanceSufficient:

    def test_required_includes_worst_case_fee(self, intent):
        check = check_balance_sufficient(REQUIRED, intent, PLAN)
        assert check.required == REQUIRED
        assert check.sufficient
        assert check.shortfall == 0

    def test_short_by_one(self, intent):
        check = check_balance_sufficient(REQUIRED - 1, intent, PLAN)
        assert not check.sufficient
        assert check.shortfall == 1


class TestBalanceGuard:

    @pytest.mark.asyncio
    async def test_passes(self, intent):
        client = create_mock_chain_client(balance=REQUIRED)
        check = await BalanceGuard(client).verify(MOCK_ACCOUNT_ADDRESS, intent, PLAN)
        assert check.available == REQUIRED
        client.get_balance.assert_awaited_once_with(MOCK_ACCOUNT_ADDRESS)

    @pytest.mark.asyncio
    async def test_insufficient(self, intent):
        client = create_mock_chain_client(balance=100)

        with pytest.raises(InsufficientBalanceError) as exc_info:
            await BalanceGuard(client).verify(MOCK_ACCOUNT_ADDRESS, intent, PLAN)

        error = exc_info.value
        assert error.required == REQUIRED
        assert error.available == 100
        assert error.shortfall == REQUIRED - 100

    @pytest.mark.asyncio
    async def test_balance_query_failure(self, intent):
        client = create_mock_chain_client()
        client.get_balance = AsyncMock(side_effect=ConnectionError("down"))

        with pytest.raises(UnknownSubmissionError):
            await BalanceGuard(client).verify(MOCK_ACCOUNT_ADDRESS, intent, PLAN)
