"""
Tests for TransferSetBuilder: ordering, aggregate value, empty and overflow input.
"""
import random

import pytest

from batch7702.engine.builders import TransferSetBuilder
from batch7702.engine.exceptions import EmptyBatchError, ValueOverflowError
from batch7702.schemas.bases import MAX_UINT256
from batch7702.schemas.transfers import TransferRequest

from test_mocks import MOCK_RECIPIENT_1, MOCK_RECIPIENT_2, create_transfers


@pytest.fixture
def builder():
    return TransferSetBuilder()


class TestAggregateValue:
    """aggregate_value is the exact sum of the transfer amounts."""

    def test_three_transfers(self, builder):
        intent = builder.build(create_transfers(1, 2, 3))
        assert intent.aggregate_value == 6
        assert intent.call_count == 3

    def test_single_transfer(self, builder):
        intent = builder.build(create_transfers(10 ** 18))
        assert intent.aggregate_value == 10 ** 18

    def test_large_count_any_order(self, builder):
        rng = random.Random(7702)
        amounts = [rng.randrange(0, 10 ** 24) for _ in range(500)]
        shuffled = amounts[:]
        rng.shuffle(shuffled)

        assert builder.build(create_transfers(*amounts)).aggregate_value == sum(amounts)
        assert builder.build(create_transfers(*shuffled)).aggregate_value == sum(amounts)

    def test_zero_amount_allowed(self, builder):
        intent = builder.build(create_transfers(0, 5))
        assert intent.aggregate_value == 5


class TestNormalization:

    def test_order_preserved(self, builder):
        intent = builder.build([
            {"recipient": MOCK_RECIPIENT_2, "amount": 2},
            {"recipient": MOCK_RECIPIENT_1, "amount": 1},
        ])
        assert [c.amount for c in intent.calls] == [2, 1]
        assert intent.calls[0].target.lower() == MOCK_RECIPIENT_2

    def test_missing_payload_defaults_to_empty_bytes(self, builder):
        intent = builder.build(create_transfers(1))
        assert intent.calls[0].payload == b""

    def test_extra_data_forwarded(self, builder):
        intent = builder.build([
            {"recipient": MOCK_RECIPIENT_1, "amount": 1, "extraData": "0xdeadbeef"},
        ])
        assert intent.calls[0].payload == bytes.fromhex("deadbeef")

    def test_accepts_transfer_request_models(self, builder):
        request = TransferRequest(recipient=MOCK_RECIPIENT_1, amount=3)
        intent = builder.build([request])
        assert intent.to_abi_args() == [(b"", intent.calls[0].target, 3)]

    def test_invalid_recipient_rejected(self, builder):
        with pytest.raises(ValueError):
            builder.build([{"recipient": "0xnot-an-address", "amount": 1}])


class TestInvalidInput:

    def test_empty_list(self, builder):
        with pytest.raises(EmptyBatchError):
            builder.build([])

    def test_amount_over_uint256(self, builder):
        with pytest.raises(ValueOverflowError) as exc_info:
            builder.build(create_transfers(MAX_UINT256 + 1))
        assert exc_info.value.value == MAX_UINT256 + 1

    def test_amount_at_uint256_max_accepted(self, builder):
        intent = builder.build(create_transfers(MAX_UINT256))
        assert intent.aggregate_value == MAX_UINT256

    def test_aggregate_over_uint256(self, builder):
        with pytest.raises(ValueOverflowError) as exc_info:
            builder.build(create_transfers(MAX_UINT256, 1))
        assert exc_info.value.value == MAX_UINT256 + 1
