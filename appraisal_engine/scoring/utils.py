"""
Decimal Utilities
appraisal_engine/scoring/utils.py

Provides precision-safe decimal math for scoring and calibration.
"""

from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import Dict, Hashable, List, Optional, Sequence, TypeVar, Union

Number = Union[int, float, Decimal]
K = TypeVar("K", bound=Hashable)

TWO_PLACES = Decimal("0.01")
ONE_PLACE = Decimal("0.1")


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal without binary float artefacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(value: Decimal, places: Decimal = TWO_PLACES) -> Decimal:
    """Round half-up to the given exponent (0.01 by default)."""
    return value.quantize(places, rounding=ROUND_HALF_UP)


def clamp(
    value: Decimal,
    min_val: Decimal = Decimal("0"),
    max_val: Decimal = Decimal("100"),
) -> Decimal:
    """Clamp value to range [min_val, max_val]."""
    return max(min_val, min(max_val, value))


def weighted_mean(values: List[Decimal], weights: List[Decimal]) -> Optional[Decimal]:
    """
    Calculate weighted mean (unrounded).

    Formula: Σ(value_i × weight_i) / Σ(weight_i)
    Returns None if all weights are zero (no contributing input).
    """
    if len(values) != len(weights):
        raise ValueError("values and weights must have same length")

    total_weight = sum(weights, Decimal("0"))
    if total_weight == 0:
        return None

    numerator = sum((v * w for v, w in zip(values, weights)), Decimal("0"))
    return numerator / total_weight


def population_std_dev(values: List[Decimal]) -> Decimal:
    """
    Calculate population standard deviation.

    Formula: sqrt(Σ(value_i - mean)² / n)
    """
    if not values:
        return Decimal("0")

    n = Decimal(len(values))
    mean = sum(values, Decimal("0")) / n
    variance = sum(((v - mean) ** 2 for v in values), Decimal("0")) / n
    return variance.sqrt()


def round_to_step(
    value: Decimal,
    step: Decimal,
    origin: Decimal,
    upper: Decimal,
) -> Decimal:
    """
    Round to the nearest point of the grid origin + k × step.

    ``upper`` is always treated as a valid point as well, so a bound that is
    not a whole number of steps from ``origin`` stays reachable. Ties go up.
    """
    steps = ((value - origin) / step).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    snapped = origin + steps * step
    if snapped > upper:
        snapped = origin + (steps - 1) * step
    if abs(upper - value) <= abs(value - snapped):
        return upper
    return snapped


def largest_remainder_percentages(
    counts: Dict[K, int],
    order: Sequence[K],
    places: int = 1,
) -> Dict[K, Decimal]:
    """
    Percentages of ``counts`` that sum to exactly 100 at ``places`` decimals.

    Each share is floored to the target precision; the leftover units go to
    the largest remainders, ties broken by position in ``order``.
    """
    total = sum(counts.values())
    if total == 0:
        return {}

    unit = Decimal(1).scaleb(-places)
    units_total = int(Decimal(100) / unit)

    floors: Dict[K, int] = {}
    remainders: Dict[K, Decimal] = {}
    for key in order:
        exact = Decimal(counts.get(key, 0)) * units_total / Decimal(total)
        floor = int(exact.to_integral_value(rounding=ROUND_FLOOR))
        floors[key] = floor
        remainders[key] = exact - floor

    leftover = units_total - sum(floors.values())
    ranked = sorted(order, key=lambda k: (-remainders[k], order.index(k)))
    for key in ranked[:leftover]:
        floors[key] += 1

    return {key: (Decimal(floors[key]) * unit).quantize(unit) for key in order}
