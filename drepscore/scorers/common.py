"""Shared numeric helpers for the pillar scorers.

All pillar values are integers in [0, 100]. Rounding is half-up (x.5 goes
up) so scores match what the dashboard has always shown; Python's built-in
round() would send 10.5 to 10.
"""

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Any


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 away from zero.

    Float noise below 1e-9 is discarded first, so 10.499999999999998
    (0.3 * 0.35 * 100) rounds like 10.5.
    """
    return int(Decimal(str(round(value, 9))).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def finite_or_zero(value: Any) -> float:
    """Coerce a pillar input to a finite float; None, NaN, inf and junk become 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def clamp_score(value: Any, low: int = 0, high: int = 100) -> int:
    """Round half-up and clamp into [low, high]. Non-finite input → low."""
    number = finite_or_zero(value)
    return max(low, min(high, round_half_up(number)))


def interpolate_score(value: float, knots: list) -> float:
    """Piecewise-linear interpolation between (value, score) knots.

    Knots must be sorted by the first element (value). Values outside the
    knot range take the nearest end score.

    Example:
        knots = [(0, 0), (20, 30), (60, 70), (100, 100)]
        interpolate_score(40, knots) → 50.0  (halfway between 30 and 70)
    """
    if value <= knots[0][0]:
        return knots[0][1]
    if value >= knots[-1][0]:
        return knots[-1][1]
    for i in range(len(knots) - 1):
        x0, y0 = knots[i]
        x1, y1 = knots[i + 1]
        if x0 <= value <= x1:
            t = (value - x0) / (x1 - x0)
            return y0 + t * (y1 - y0)
    return knots[-1][1]
