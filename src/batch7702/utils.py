"""
Shared utilities: package logger, logger setup, error context and display
formatting used by progress messages.
"""

import logging
import sys
from contextlib import contextmanager
from decimal import Decimal, InvalidOperation
from typing import Any, Iterator, Optional, Union


logger = logging.getLogger("batch7702")

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logger(level: Union[int, str] = "INFO", fmt: str = _LOG_FORMAT) -> logging.Logger:
    """
    Attach a stream handler to the package logger.

    Calling this more than once replaces the previously attached handler
    instead of stacking duplicates.

    Args:
        level: Logging level name or number (e.g. ``"DEBUG"``).
        fmt: Log record format string.

    Returns:
        The configured package logger.
    """
    if isinstance(level, str):
        level = level.upper()

    for handler in list(logger.handlers):
        if getattr(handler, "_batch7702_handler", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(fmt))
    handler._batch7702_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


@contextmanager
def error_context(operation: str, log: Optional[logging.Logger] = None) -> Iterator[None]:
    """
    Log any exception raised inside the block with the operation name, then re-raise.

    Example::

        with error_context("gas price query"):
            price = await client.get_gas_price()
    """
    log = log or logger
    try:
        yield
    except Exception as e:
        log.error(f"{operation} failed: {type(e).__name__}: {e}")
        raise


def wei_to_ether(value: Union[int, str, Decimal], places: int = 6) -> str:
    """Format a wei amount as an ether string with a fixed number of decimals."""
    try:
        dec_value = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValueError(f"Invalid wei value: {value!r}") from e

    ether = dec_value / (Decimal(10) ** 18)
    return f"{ether:.{places}f}"


def wei_to_gwei(value: int, places: int = 2) -> str:
    """Format a wei amount as a gwei string."""
    gwei = Decimal(value) / (Decimal(10) ** 9)
    return f"{gwei:.{places}f}"


def format_address(address: Optional[str]) -> str:
    """Shorten an address for display: ``0x1234...abcd``."""
    if not address:
        return ""
    return f"{address[:6]}...{address[-4:]}"


def prepare_for_display(data: Any) -> Any:
    """
    Convert a nested structure into JSON-friendly values.

    Integers become decimal strings (wei amounts exceed JSON's safe integer
    range) and bytes become 0x-prefixed hex.
    """
    if isinstance(data, bool):
        return data
    if isinstance(data, int):
        return str(data)
    if isinstance(data, (bytes, bytearray)):
        return "0x" + bytes(data).hex()
    if isinstance(data, (list, tuple)):
        return [prepare_for_display(item) for item in data]
    if isinstance(data, dict):
        return {key: prepare_for_display(value) for key, value in data.items()}
    return data
