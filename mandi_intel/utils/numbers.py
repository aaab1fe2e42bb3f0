"""
Numeric helpers shared by the analysis and scoring modules.
"""

from __future__ import annotations

import math


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from negative infinity.

    Python's built-in ``round`` uses banker's rounding (``round(2.5) == 2``);
    prices and scores here round ``.5`` upwards (``2.5 → 3``, ``-2.5 → -2``).
    """
    return math.floor(value + 0.5)


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))
