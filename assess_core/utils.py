"""Rounding and ratio helpers shared by the scoring components."""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (``2.5 -> 3``)."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent(part: float, whole: float) -> int:
    """``round(100 * part / whole)``, guarding ``whole == 0`` -> 0."""
    if not whole:
        return 0
    return round_half_up(100.0 * float(part) / float(whole))


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def mean(values: Iterable[float]) -> float:
    vals = list(values)
    if not vals:
        return 0.0
    return sum(vals) / len(vals)
