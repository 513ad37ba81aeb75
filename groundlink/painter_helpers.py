"""Small numeric helpers shared by the instrument widgets."""

from __future__ import annotations

import math


def wraphalf(x: float, around: float) -> float:
    """Wrap ``x`` into the range ``[0, around]``; an ``around`` of zero disables wrapping."""
    if around == 0:
        return x
    if x > around:
        x -= math.modf(x / around)[1] * around
    if x < 0:
        x += (math.modf(x / around)[1] + 1) * around
    return x