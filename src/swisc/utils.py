from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Union

from eth_utils import from_wei, is_hex_address, to_checksum_address, to_wei

from .errors import EncodingError

ETHER_DECIMALS = 18
GWEI_DECIMALS = 9

Number = Union[int, str, Decimal]


def ether_to_wei(amount: Number) -> int:
    """``"0.01"`` -> ``10_000_000_000_000_000``.  Uses Decimal, never float."""
    try:
        return int(to_wei(Decimal(str(amount)), "ether"))
    except (ArithmeticError, ValueError, TypeError) as exc:
        raise EncodingError(f"Invalid ether amount {amount!r}: {exc}") from exc


def gwei_to_wei(amount: Number) -> int:
    try:
        return int(to_wei(Decimal(str(amount)), "gwei"))
    except (ArithmeticError, ValueError, TypeError) as exc:
        raise EncodingError(f"Invalid gwei amount {amount!r}: {exc}") from exc


def wei_to_ether(amount: int) -> Decimal:
    return from_wei(amount, "ether")


def format_units(amount: int, decimals: int = ETHER_DECIMALS) -> str:
    """Render an integer token amount with ``decimals`` places, trailing zeros trimmed."""
    value = Decimal(amount).scaleb(-decimals)
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_timestamp(seconds: int) -> str:
    return datetime.fromtimestamp(int(seconds), tz=timezone.utc).isoformat()


def normalize_address(address: str) -> str:
    """Return the EIP-55 checksummed form or raise EncodingError."""
    if not isinstance(address, str) or not is_hex_address(address):
        raise EncodingError(f"Not a 20-byte hex address: {address!r}")
    return to_checksum_address(address)
