"""
Tests for logging setup, error_context and display helpers.
"""
import logging

import pytest

from batch7702.utils import (
    error_context,
    format_address,
    logger,
    prepare_for_display,
    setup_logger,
    wei_to_ether,
    wei_to_gwei,
)


class TestLogging:

    def test_setup_logger_does_not_stack_handlers(self):
        setup_logger("DEBUG")
        setup_logger("info")
        tagged = [h for h in logger.handlers if getattr(h, "_batch7702_handler", False)]
        assert len(tagged) == 1
        assert logger.level == logging.INFO

    def test_error_context_logs_and_reraises(self, caplog):
        with caplog.at_level(logging.ERROR, logger="batch7702"):
            with pytest.raises(KeyError):
                with error_context("lookup"):
                    raise KeyError("missing")
        assert "lookup failed: KeyError" in caplog.text


class TestFormatting:

    def test_wei_to_ether(self):
        assert wei_to_ether(6 * 10 ** 17) == "0.600000"
        assert wei_to_ether(1, places=18) == "0.000000000000000001"

    def test_wei_to_ether_invalid(self):
        with pytest.raises(ValueError):
            wei_to_ether("abc")

    def test_wei_to_gwei(self):
        assert wei_to_gwei(1_500_000_000) == "1.50"

    def test_format_address(self):
        assert format_address("0x1234567890abcdef1234567890abcdef12345678") == "0x1234...5678"
        assert format_address(None) == ""

    def test_prepare_for_display(self):
        data = {"value": 10 ** 30, "ok": True, "data": b"\xde\xad", "items": [(1, "x")]}
        assert prepare_for_display(data) == {
            "value": str(10 ** 30),
            "ok": True,
            "data": "0xdead",
            "items": [["1", "x"]],
        }
