"""
Type converters — shared value conversion utilities.
Version: 1.0.0
"""
import math
from typing import Any, Optional


def is_numeric(value: Any) -> bool:
    """True for finite ints/floats and strings that parse as one. Booleans are not numeric."""
    if value is None or isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return math.isfinite(value)
    if isinstance(value, str):
        try:
            return math.isfinite(float(value.strip()))
        except ValueError:
            return False
    return False


def to_price(value: Any) -> Any:
    """
    Price as float when numeric.

    Empty values become None; anything non-numeric is returned unchanged so
    record validation can report it.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if is_numeric(value):
        return float(value)
    return value


def to_float(value: Any) -> Optional[float]:
    """Convert value to float, returning None if invalid or zero."""
    if value is None:
        return None
    try:
        val = float(value)
        return val if val != 0 else None
    except (ValueError, TypeError):
        return None
