"""
Numeric helpers shared by derivation, scoring and analytics
"""

import math


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]; NaN collapses to low"""
    if value is None or math.isnan(value):
        return low
    return max(low, min(high, value))


def round_half_up(value: float, ndigits: int = 0) -> float:
    """
    Round with halves going toward +infinity

    Python's round() uses banker's rounding, which would score 62.5 as 62.
    Scores here follow the conventional rule (62.5 -> 63).

    Args:
        value: Number to round
        ndigits: Decimal places to keep

    Returns:
        float: Rounded value (int-valued when ndigits == 0)
    """
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def round_int(value: float) -> int:
    """Half-up rounding to an int"""
    return int(round_half_up(value))

