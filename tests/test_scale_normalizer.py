"""
Scale Normalizer Tests - Appraisal Calibration Engine
tests/test_scale_normalizer.py

Linear conversion, step rounding, clamping, invalid scales and custom
mapping interpolation.
"""
from decimal import Decimal

import pytest

from appraisal_engine.core.exceptions import InvalidScaleError
from appraisal_engine.models import RatingScale
from appraisal_engine.scoring.scale_normalizer import (
    ScaleNormalizer,
    apply_custom_mapping,
    normalize_score,
)


class TestNormalizeScore:

    def setup_method(self):
        self.normalizer = ScaleNormalizer()

    def test_seven_point_to_half_steps(self, seven_point, five_point):
        """3 on 1–7 maps to 2.33 on 1–5, snapped to 2.5."""
        assert self.normalizer.normalize_score(3, seven_point, five_point) == Decimal("2.5")

    def test_continuous_target_keeps_precision(self, seven_point):
        target = RatingScale(min_value=1, max_value=5)
        result = self.normalizer.normalize_score(4, seven_point, target)
        assert result == Decimal("3")

    def test_boundaries_map_exactly(self, seven_point, five_point):
        assert self.normalizer.normalize_score(1, seven_point, five_point) == Decimal("1")
        assert self.normalizer.normalize_score(7, seven_point, five_point) == Decimal("5")

    def test_out_of_range_is_clamped(self, seven_point, five_point):
        assert self.normalizer.normalize_score(12, seven_point, five_point) == Decimal("5")
        assert self.normalizer.normalize_score(-3, seven_point, five_point) == Decimal("1")

    def test_percent_to_five_point(self, percent_scale, five_point):
        assert self.normalizer.normalize_score(50, percent_scale, five_point) == Decimal("3")
        assert self.normalizer.normalize_score(80, percent_scale, five_point) == Decimal("4")

    def test_upper_bound_off_grid_stays_reachable(self):
        """0–1 in steps of 0.3: 0.95 is as close to 1 as to 0.9; ties go up."""
        source = RatingScale(min_value=0, max_value=1)
        target = RatingScale(min_value=0, max_value=1, step=0.3)
        assert normalize_score(Decimal("0.95"), source, target) == Decimal("1")
        assert normalize_score(Decimal("0.8"), source, target) == Decimal("0.9")

    def test_tie_rounds_up(self, five_point):
        source = RatingScale(min_value=1, max_value=5)
        assert self.normalizer.normalize_score(Decimal("2.25"), source, five_point) == Decimal("2.5")

    def test_degenerate_source_returns_target_min(self, five_point):
        source = RatingScale(min_value=3, max_value=3)
        assert self.normalizer.normalize_score(3, source, five_point) == Decimal("1")

    def test_inverted_source_raises(self, five_point):
        source = RatingScale(min_value=5, max_value=1)
        with pytest.raises(InvalidScaleError) as exc:
            self.normalizer.normalize_score(3, source, five_point)
        assert exc.value.scale == source

    def test_flat_target_raises(self, seven_point):
        target = RatingScale(min_value=2, max_value=2)
        with pytest.raises(InvalidScaleError):
            self.normalizer.normalize_score(3, seven_point, target)


class TestCustomMapping:

    def test_exact_key(self):
        assert apply_custom_mapping(2, {1: 10, 2: 25, 3: 30}) == Decimal("25")

    def test_interpolates_between_keys(self):
        assert apply_custom_mapping(2, {1: 10, 3: 30}) == Decimal("20")

    def test_outside_range_uses_endpoint(self):
        mapping = {1: 10, 3: 30}
        assert apply_custom_mapping(0, mapping) == Decimal("10")
        assert apply_custom_mapping(9, mapping) == Decimal("30")

    def test_string_keys_from_json(self):
        assert apply_custom_mapping(3, {"1": 10, "5": 50}) == Decimal("30")

    def test_empty_mapping_raises(self):
        with pytest.raises(InvalidScaleError):
            apply_custom_mapping(3, {})
