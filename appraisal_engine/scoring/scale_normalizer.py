"""
scoring/scale_normalizer.py — Scale Normalization

Converts a rating recorded on one numeric scale into another (usually the
canonical 1–5 scale).

Linear formula:
    clamped = clamp(value, S.min, S.max)
    ratio   = (clamped − S.min) / (S.max − S.min)
    mapped  = T.min + ratio × (T.max − T.min)
    result  = clamp(round_to_step(mapped, T.step), T.min, T.max)

Custom mapping:
    exact key → mapped value; otherwise linear interpolation between the two
    nearest keys; outside the mapped range → nearest endpoint's value.
"""

from decimal import Decimal
from typing import Dict, Mapping

import structlog

from appraisal_engine.core.exceptions import InvalidScaleError
from appraisal_engine.models.rating import RatingScale
from appraisal_engine.scoring.utils import Number, clamp, round_to_step, to_decimal

logger = structlog.get_logger(__name__)


def _validate_scales(source: RatingScale, target: RatingScale) -> None:
    if source.max_value < source.min_value:
        raise InvalidScaleError(
            f"Source scale max ({source.max_value}) is below min ({source.min_value})",
            scale=source,
        )
    if target.max_value <= target.min_value:
        raise InvalidScaleError(
            f"Target scale max ({target.max_value}) must be greater than min ({target.min_value})",
            scale=target,
        )


class ScaleNormalizer:
    """Pure scale conversion; holds no state between calls."""

    def normalize_score(
        self,
        value: Number,
        source: RatingScale,
        target: RatingScale,
    ) -> Decimal:
        """
        Map ``value`` from ``source`` onto ``target``.

        Args:
            value: Raw rating on the source scale (clamped if out of range).
            source: Scale the value was recorded on.
            target: Scale to convert into.

        Returns:
            Decimal within [target.min, target.max], snapped to target.step.

        Raises:
            InvalidScaleError: source.max < source.min or target.max <= target.min.

        Examples:
            >>> ScaleNormalizer().normalize_score(
            ...     3, RatingScale(min_value=1, max_value=7),
            ...     RatingScale(min_value=1, max_value=5, step=0.5))
            Decimal('2.5')
        """
        _validate_scales(source, target)

        s_min, s_max = to_decimal(source.min_value), to_decimal(source.max_value)
        t_min, t_max = to_decimal(target.min_value), to_decimal(target.max_value)

        # Degenerate single-point source: nothing to interpolate
        if s_max == s_min:
            return t_min

        clamped = clamp(to_decimal(value), s_min, s_max)
        ratio = (clamped - s_min) / (s_max - s_min)
        mapped = t_min + ratio * (t_max - t_min)

        if target.step is not None:
            mapped = round_to_step(mapped, to_decimal(target.step), t_min, t_max)

        result = clamp(mapped, t_min, t_max)
        logger.debug(
            "score_normalized",
            value=float(value),
            source=(source.min_value, source.max_value),
            target=(target.min_value, target.max_value),
            result=float(result),
        )
        return result

    def apply_custom_mapping(
        self,
        value: Number,
        mapping: Mapping[Number, Number],
    ) -> Decimal:
        """
        Map ``value`` through an explicit key → value table.

        Keys may arrive as strings from JSON configuration; they are parsed
        as numbers.

        Raises:
            InvalidScaleError: mapping is empty.
        """
        if not mapping:
            raise InvalidScaleError("Custom mapping must define at least one point")

        points: Dict[Decimal, Decimal] = {
            to_decimal(k) if not isinstance(k, str) else Decimal(k): to_decimal(v)
            for k, v in mapping.items()
        }
        keys = sorted(points)
        x = to_decimal(value)

        if x in points:
            return points[x]
        if x <= keys[0]:
            return points[keys[0]]
        if x >= keys[-1]:
            return points[keys[-1]]

        for lower, upper in zip(keys, keys[1:]):
            if lower < x < upper:
                fraction = (x - lower) / (upper - lower)
                return points[lower] + fraction * (points[upper] - points[lower])

        # Unreachable: x lies strictly inside [keys[0], keys[-1]]
        raise InvalidScaleError(f"Value {value} could not be placed in custom mapping")


_default = ScaleNormalizer()


def normalize_score(value: Number, source: RatingScale, target: RatingScale) -> Decimal:
    return _default.normalize_score(value, source, target)


def apply_custom_mapping(value: Number, mapping: Mapping[Number, Number]) -> Decimal:
    return _default.apply_custom_mapping(value, mapping)
