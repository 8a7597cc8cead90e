import math
from typing import Union

Number = Union[int, float]

# Absorbs float noise such as 77.49999999999999 from weighted sums
_HALF_UP_EPSILON = 1e-9


def round_half_up(value: Number) -> int:
    """
    Rounds to the nearest integer with halves going up (78.5 -> 79, -2.5 -> -2).
    The built-in round() rounds halves to even and would give 78.
    """
    return int(math.floor(value + 0.5 + _HALF_UP_EPSILON))


def clamp(value: Number, low: Number, high: Number) -> Number:
    return max(low, min(high, value))


def safe_ratio(numerator: Number, denominator: Number) -> float:
    """numerator / denominator, or 0.0 when the denominator is not positive."""
    if denominator <= 0:
        return 0.0
    return numerator / denominator
