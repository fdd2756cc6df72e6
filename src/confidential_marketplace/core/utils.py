"""
Utility functions for the marketplace.

Includes:
- Ledger integer coercion (hex quantities, decimal strings)
- Ether <-> wei conversion without floats
- Display formatting (addresses, amounts)
- Parsing of comma-separated data points
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Any, Iterable

from .errors import ValueOutOfRange


WEI_PER_ETHER = 10**18

_DATA_SEPARATOR_PATTERN = re.compile(r"[,\s]+")


# =============================================================================
# Ledger quantities
# =============================================================================


def to_int(value: Any) -> int:
    """
    Coerce a ledger quantity into an int.

    Examples:
        "0x1f" -> 31
        "42" -> 42
        7 -> 7
    """
    if isinstance(value, bool):
        raise ValueError("bool is not a ledger quantity")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.lower().startswith("0x"):
            return int(text, 16)
        return int(text)
    raise ValueError(f"Cannot interpret {value!r} as an integer quantity")


def to_hex_quantity(value: int) -> str:
    """Encode a non-negative int as a hex quantity ("0x..")."""
    if value < 0:
        raise ValueError("Quantities must be non-negative")
    return hex(value)


# =============================================================================
# Ether amounts
# =============================================================================


def parse_ether(amount: str | int | Decimal) -> int:
    """
    Convert an ether amount to wei.

    Examples:
        "0.001" -> 1000000000000000
        "1" -> 1000000000000000000
    """
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        raise ValueError(f"Invalid ether amount: {amount!r}")
    if value < 0:
        raise ValueError("Ether amounts must be non-negative")
    wei = value * WEI_PER_ETHER
    if wei != wei.to_integral_value():
        raise ValueError(f"Ether amount {amount} has more than 18 decimals")
    return int(wei)


def format_ether(wei: int | None, places: int = 4) -> str:
    """Format a wei amount as ether, truncated to ``places`` decimals."""
    if not wei:
        return "0"
    quantum = Decimal(1).scaleb(-places)
    value = (Decimal(wei) / WEI_PER_ETHER).quantize(quantum, rounding=ROUND_DOWN)
    return f"{value:.{places}f}"


# =============================================================================
# Display helpers
# =============================================================================


def format_address(address: str | None) -> str:
    """Shorten an account address for display (0x1234...abcd)."""
    if not address:
        return ""
    if len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


def parse_data_points(raw: str | Iterable[Any]) -> list[int]:
    """
    Parse data points from a comma/whitespace separated string or an iterable.

    Raises:
        ValueOutOfRange: If an item is not a whole number
    """
    if isinstance(raw, str):
        items: list[Any] = [item for item in _DATA_SEPARATOR_PATTERN.split(raw.strip()) if item]
    else:
        items = list(raw)

    values: list[int] = []
    for index, item in enumerate(items):
        if isinstance(item, bool):
            raise ValueOutOfRange(index, item)
        if isinstance(item, int):
            values.append(item)
            continue
        try:
            values.append(int(str(item).strip()))
        except ValueError:
            raise ValueOutOfRange(index, item)
    return values
