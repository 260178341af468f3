"""Small numeric helpers shared by the scoring modules."""

import math


def round_half_up(value: float) -> int:
    """Round halves upward (``2.5 -> 3``), unlike Python's banker's ``round``."""
    return int(math.floor(value + 0.5))


def finite(value, default: float = 0.0) -> float:
    """Coerce *value* to a finite float, falling back to *default*."""
    if value is None:
        return default
    try:
        value = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(value) or math.isinf(value):
        return default
    return value


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(value, high))


def percentage(part: float, whole: float) -> int:
    """``part / whole`` as a rounded 0-100 integer; 0 when *whole* is empty."""
    whole = finite(whole)
    if whole <= 0:
        return 0
    return int(clamp(round_half_up(finite(part) / whole * 100), 0, 100))
