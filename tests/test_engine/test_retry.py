"""
Tests for error classification and the SubmissionRetryController state machine.
"""
import pytest
from unittest.mock import AsyncMock

from batch7702.adapters.evm.dispatchers import DispatchStrategySelector
from batch7702.adapters.evm.schemas import (
    AttemptOutcome,
    DispatchStrategy,
    GasPlan,
    SignerCapabilities,
)
from batch7702.adapters.evm.signatures import AuthorizationSigner
from batch7702.engine.builders import TransferSetBuilder
from batch7702.engine.events import ProgressRecorder
from batch7702.engine.exceptions import (
    DispatchIncompatibilityError,
    GasEstimationFailure,
    InsufficientBalanceError,
    InvalidTransition,
    NonceConflictError,
    UnknownSubmissionError,
    UserRejectedError,
)
from batch7702.engine.retry import (
    ErrorKind,
    SubmissionRetryController,
    SubmissionState,
    classify_error,
)

from test_mocks import (
    MOCK_CHAIN,
    MOCK_NONCE,
    MOCK_TX_HASH,
    RecordingGate,
    create_mock_chain_client,
    create_signer,
    create_transfers,
)


PLAN = GasPlan(gas_limit=2_400_000, max_fee_per_gas=12, max_priority_fee_per_gas=2)


class TestClassifyError:

    @pytest.mark.parametrize("message", [
        "nonce too low",
        "Nonce too high",
        "invalid nonce; got 4, expected 5",
        "nonce has already been used",
    ])
    def test_nonce_conflict(self, message):
        assert classify_error(ValueError(message)) is ErrorKind.NONCE_CONFLICT

    @pytest.mark.parametrize("message", [
        "execution reverted",
        "Invalid delegation designation",
        "authorization list not supported",
    ])
    def test_dispatch_incompatible(self, message):
        assert classify_error(ValueError(message)) is ErrorKind.DISPATCH_INCOMPATIBLE

    def test_pending_duplicate_is_not_a_nonce_conflict(self):
        assert classify_error(ValueError("already known")) is ErrorKind.UNKNOWN
        assert classify_error(ValueError("replacement transaction underpriced")) is ErrorKind.UNKNOWN

    def test_user_rejection_wins_over_authorization(self):
        assert classify_error(ValueError("User rejected the authorization request")) is ErrorKind.USER_REJECTED

    def test_other_kinds(self):
        assert classify_error(ValueError("insufficient funds for gas * price + value")) is ErrorKind.INSUFFICIENT_FUNDS
        assert classify_error(ValueError("intrinsic gas too low")) is ErrorKind.OUT_OF_GAS
        assert classify_error(ValueError("connection reset")) is ErrorKind.UNKNOWN

    def test_cause_chain_is_inspected(self):
        try:
            try:
                raise ValueError("nonce too low")
            except ValueError as inner:
                raise RuntimeError("RPC error") from inner
        except RuntimeError as outer:
            assert classify_error(outer) is ErrorKind.NONCE_CONFLICT


@pytest.fixture
def intent():
    return TransferSetBuilder().build(create_transfers(1, 2, 3))


@pytest.fixture
def signer():
    return create_signer()


def make_controller(client, signer, sink=None):
    authorizer = AuthorizationSigner(signer, MOCK_CHAIN, RecordingGate())
    selector = DispatchStrategySelector(client, signer)
    return SubmissionRetryController(selector, client, authorizer, report=(sink or ProgressRecorder()).emit)


async def signed_authorization(signer, nonce=MOCK_NONCE):
    authorizer = AuthorizationSigner(signer, MOCK_CHAIN, RecordingGate())
    return await authorizer.sign_for_transaction(nonce)


class TestStateMachine:

    def test_initial_state(self, signer):
        controller = make_controller(create_mock_chain_client(), signer)
        assert controller.state is SubmissionState.PLANNING

    def test_invalid_transition_raises(self, signer):
        controller = make_controller(create_mock_chain_client(), signer)
        with pytest.raises(InvalidTransition) as exc_info:
            controller.transition(SubmissionState.SUCCESS)
        assert "planning -> success" in str(exc_info.value)

    def test_abort_is_idempotent(self, signer):
        controller = make_controller(create_mock_chain_client(), signer)
        controller.abort()
        controller.abort()
        assert controller.state is SubmissionState.FAILED


class TestNonceRetry:

    @pytest.mark.asyncio
    async def test_single_retry_uses_pending_nonce(self, signer, intent):
        client = create_mock_chain_client(pending_nonce=MOCK_NONCE + 3)
        client.send_contract_call = AsyncMock(side_effect=[ValueError("nonce too low"), MOCK_TX_HASH])
        controller = make_controller(client, signer)
        authorization = await signed_authorization(signer)

        tx_hash = await controller.run(intent, authorization, MOCK_NONCE, PLAN)

        assert tx_hash == MOCK_TX_HASH
        assert client.send_contract_call.await_count == 2
        client.get_transaction_count.assert_awaited_once_with(signer.address, "pending")

        first, second = client.send_contract_call.await_args_list
        assert first.args[3] == MOCK_NONCE
        assert second.args[3] == MOCK_NONCE + 3
        # Authorization is re-signed for the new transaction nonce.
        assert second.args[2].account_nonce == MOCK_NONCE + 4
        # Same plan and strategy on the retry.
        assert second.args[4] == PLAN
        assert [a.strategy for a in controller.attempts] == [DispatchStrategy.CONTRACT_CALL] * 2
        assert controller.state is SubmissionState.SUCCESS

    @pytest.mark.asyncio
    async def test_second_conflict_is_terminal(self, signer, intent):
        client = create_mock_chain_client()
        client.send_contract_call = AsyncMock(side_effect=ValueError("nonce too low"))
        controller = make_controller(client, signer)
        authorization = await signed_authorization(signer)

        with pytest.raises(NonceConflictError) as exc_info:
            await controller.run(intent, authorization, MOCK_NONCE, PLAN)

        assert client.send_contract_call.await_count == 2
        assert exc_info.value.nonce == MOCK_NONCE + 1
        assert isinstance(exc_info.value.__cause__, ValueError)
        assert controller.state is SubmissionState.FAILED
        assert all(a.outcome is AttemptOutcome.FAILED for a in controller.attempts)

    @pytest.mark.asyncio
    async def test_nonce_refresh_failure_is_terminal(self, signer, intent):
        client = create_mock_chain_client()
        client.send_contract_call = AsyncMock(side_effect=ValueError("nonce too low"))
        client.get_transaction_count = AsyncMock(side_effect=ConnectionError("rpc down"))
        controller = make_controller(client, signer)
        authorization = await signed_authorization(signer)

        with pytest.raises(UnknownSubmissionError):
            await controller.run(intent, authorization, MOCK_NONCE, PLAN)
        assert client.send_contract_call.await_count == 1
        assert controller.state is SubmissionState.FAILED


class TestStrategySwitch:

    @pytest.mark.asyncio
    async def test_revert_switches_strategy_once(self, signer, intent):
        client = create_mock_chain_client()
        client.send_contract_call = AsyncMock(side_effect=ValueError("execution reverted"))
        sink = ProgressRecorder()
        controller = make_controller(client, signer, sink)
        authorization = await signed_authorization(signer)

        tx_hash = await controller.run(intent, authorization, MOCK_NONCE, PLAN)

        assert tx_hash == MOCK_TX_HASH
        client.send_contract_call.assert_awaited_once()
        client.send_raw_transaction.assert_awaited_once()
        raw_args = client.send_raw_transaction.await_args.args
        assert raw_args[4] == MOCK_NONCE
        assert raw_args[5] == PLAN
        assert sink.stages == ["fallback"]

    @pytest.mark.asyncio
    async def test_second_revert_is_terminal(self, signer, intent):
        client = create_mock_chain_client()
        client.send_contract_call = AsyncMock(side_effect=ValueError("execution reverted"))
        client.send_raw_transaction = AsyncMock(side_effect=ValueError("execution reverted"))
        controller = make_controller(client, signer)
        authorization = await signed_authorization(signer)

        with pytest.raises(DispatchIncompatibilityError):
            await controller.run(intent, authorization, MOCK_NONCE, PLAN)

        assert client.send_contract_call.await_count == 1
        assert client.send_raw_transaction.await_count == 1
        assert [a.strategy for a in controller.attempts] == [
            DispatchStrategy.CONTRACT_CALL,
            DispatchStrategy.RAW_DISPATCH,
        ]

    @pytest.mark.asyncio
    async def test_raw_first_for_restricted_signer(self, intent):
        signer = create_signer(SignerCapabilities(supports_contract_call=False))
        client = create_mock_chain_client()
        client.send_raw_transaction = AsyncMock(side_effect=ValueError("invalid delegation"))
        controller = make_controller(client, signer)
        authorization = await signed_authorization(signer)

        await controller.run(intent, authorization, MOCK_NONCE, PLAN)

        assert [a.strategy for a in controller.attempts] == [
            DispatchStrategy.RAW_DISPATCH,
            DispatchStrategy.CONTRACT_CALL,
        ]

    @pytest.mark.asyncio
    async def test_nonce_then_strategy_bounded_to_three_attempts(self, signer, intent):
        client = create_mock_chain_client()
        client.send_contract_call = AsyncMock(side_effect=[
            ValueError("nonce too low"),
            ValueError("execution reverted"),
        ])
        client.send_raw_transaction = AsyncMock(side_effect=ValueError("nonce too low"))
        controller = make_controller(client, signer)
        authorization = await signed_authorization(signer)

        with pytest.raises(NonceConflictError):
            await controller.run(intent, authorization, MOCK_NONCE, PLAN)
        assert len(controller.attempts) == 3


class TestTerminalClassification:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message, error_class", [
        ("User denied transaction signature", UserRejectedError),
        ("insufficient funds for gas * price + value", InsufficientBalanceError),
        ("out of gas", GasEstimationFailure),
        ("502 Bad Gateway", UnknownSubmissionError),
    ])
    async def test_no_retry(self, signer, intent, message, error_class):
        client = create_mock_chain_client()
        client.send_contract_call = AsyncMock(side_effect=RuntimeError(message))
        controller = make_controller(client, signer)
        authorization = await signed_authorization(signer)

        with pytest.raises(error_class) as exc_info:
            await controller.run(intent, authorization, MOCK_NONCE, PLAN)

        assert client.send_contract_call.await_count == 1
        assert message in str(exc_info.value)
        assert exc_info.value.__cause__ is not None
