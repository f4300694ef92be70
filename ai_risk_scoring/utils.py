"""
Value normalization helpers shared by the decoder and feature builder.

Chain data arrives as int, decimal string or 0x-hex string. All
amounts are handled as Python ints (arbitrary precision) and
rendered as decimal strings.
"""

from typing import Any, Optional


def to_int(value: Any) -> Optional[int]:
    """Parse int / decimal string / 0x-hex string; None when unparsable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            if text.lower().startswith("0x"):
                return int(text, 16)
            return int(text)
        except ValueError:
            return None
    return None


def to_decimal_string(value: Any) -> Optional[str]:
    """Render a numeric-like value as a decimal string, or None."""
    parsed = to_int(value)
    return str(parsed) if parsed is not None else None


def to_hex_quantity(value: Any) -> Optional[str]:
    """Render a numeric-like value as a 0x-prefixed lower-case hex quantity."""
    parsed = to_int(value)
    if parsed is None or parsed < 0:
        return None
    return hex(parsed)


def lower_or_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.lower()


def shorten_address(address: str) -> str:
    """0x1234567890abcdef... -> 0x1234...cdef"""
    if not address or len(address) < 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


_HEX_DIGITS = set("0123456789abcdef")


def normalize_tx_hash(value: Optional[str]) -> Optional[str]:
    """
    Validate a 32-byte transaction hash, with or without 0x.

    Returns the lower-case 0x-prefixed hash, or None if invalid.
    """
    if not value:
        return None
    text = value.strip().lower()
    if text.startswith("0x"):
        text = text[2:]
    if len(text) != 64 or not set(text) <= _HEX_DIGITS:
        return None
    return f"0x{text}"
