"""
scoring/score_aggregator.py — Component & Overall Score Aggregation

Per-component final score, dispatched on the template's calculation method:

    auto_calculated   rating = band(progress), clamped to max_rating
                      (no progress → no data)
    manager_entered   rating = manager rating, verbatim (may be None)
    weighted_average  Σ(input × w) / Σ w over inputs that are present AND
                      have w > 0 (self, manager, progress-derived, peer)
    calibrated        weighted_average with progress weight forced to 0;
                      result flagged pending calibration

Absent inputs are excluded from numerator and denominator alike, never read
as zero. Zero contributing weight → None (NoData).

Goal roll-up:
    weight_adjusted = final_score / max_rating × goal_weight
    average_rating  = Σ weight_adjusted / Σ goal_weight × max_rating

Overall score:
    overall = Σ(component_score × weight) / Σ weight over components with a
    score and non-zero weight. A template whose weights do not total 100 is
    reported through WeightSumError but still aggregated.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Sequence, Union

import structlog

from appraisal_engine.core.exceptions import WeightSumError
from appraisal_engine.models.calculation import (
    AutoCalculated,
    Calibrated,
    ManagerEntered,
    ProgressBand,
    RatingWeights,
    WeightedAverage,
)
from appraisal_engine.models.enumerations import CalculationMethodType, WeightStatus
from appraisal_engine.models.rating import WeightedComponent
from appraisal_engine.scoring.utils import Number, quantize, to_decimal, weighted_mean
from appraisal_engine.scoring.weight_validator import (
    WeightAllocationSummary,
    WeightAllocationValidator,
)

logger = structlog.get_logger(__name__)

MethodConfig = Union[AutoCalculated, ManagerEntered, WeightedAverage, Calibrated]


@dataclass
class FinalScoreResult:
    """Output of ScoreAggregator.calculate_final_score()."""
    score: Optional[Decimal]          # None → NoData
    method: CalculationMethodType
    contributing_weight: Decimal = Decimal("0")
    progress_rating: Optional[Decimal] = None
    pending_calibration: bool = False

    @property
    def no_data(self) -> bool:
        return self.score is None


@dataclass
class GoalRating:
    """One goal's final score and its weight within the employee's goals."""
    final_score: Optional[Number]
    weight: Number
    goal_id: Optional[str] = None


@dataclass
class TeamRollup:
    weighted_sum: Decimal
    total_weight: Decimal
    average_rating: Decimal
    goal_count: int


@dataclass
class ComponentAggregation:
    """Overall score built from weighted components."""
    overall_score: Optional[Decimal]
    contributing_weight: Decimal
    weight_summary: WeightAllocationSummary
    weight_error: Optional[WeightSumError] = None
    excluded: List[str] = field(default_factory=list)

    @property
    def no_data(self) -> bool:
        return self.overall_score is None


def _opt_decimal(value: Optional[Number]) -> Optional[Decimal]:
    return None if value is None else to_decimal(value)


class ScoreAggregator:
    """Combine rating inputs into component scores and an overall score."""

    def __init__(self, weight_validator: Optional[WeightAllocationValidator] = None):
        self.weight_validator = weight_validator or WeightAllocationValidator()

    # ------------------------------------------------------------------
    # Progress → rating
    # ------------------------------------------------------------------

    def progress_to_rating(
        self,
        progress_percentage: Number,
        bands: Sequence[ProgressBand],
        max_rating: Number,
    ) -> Decimal:
        """Rating of the highest band whose lower bound is <= progress."""
        progress = to_decimal(progress_percentage)
        rating = to_decimal(bands[0].rating)
        for band in bands:
            if progress >= to_decimal(band.min_progress):
                rating = to_decimal(band.rating)
            else:
                break
        return min(rating, to_decimal(max_rating))

    # ------------------------------------------------------------------
    # Weighted average
    # ------------------------------------------------------------------

    def calculate_weighted_average(
        self,
        self_rating: Optional[Number],
        manager_rating: Optional[Number],
        progress_rating: Optional[Number],
        weights: RatingWeights,
        peer_rating: Optional[Number] = None,
    ) -> Optional[Decimal]:
        """
        Weighted mean of the present, positively weighted inputs.

        Returns:
            Decimal rounded to 2 places, or None when no input contributes.

        Examples:
            >>> ScoreAggregator().calculate_weighted_average(
            ...     4, None, 3, RatingWeights(self_weight=30, manager_weight=50,
            ...                               progress_weight=20))
            Decimal('3.60')
        """
        values, contributing = self._contributions(
            self_rating, manager_rating, progress_rating, peer_rating, weights
        )
        mean = weighted_mean(values, contributing)
        return None if mean is None else quantize(mean)

    def _contributions(self, self_rating, manager_rating, progress_rating, peer_rating, weights):
        pairs = [
            (self_rating, weights.self_weight),
            (manager_rating, weights.manager_weight),
            (progress_rating, weights.progress_weight),
            (peer_rating, weights.peer_weight),
        ]
        values: List[Decimal] = []
        contributing: List[Decimal] = []
        for value, weight in pairs:
            if value is None or weight <= 0:
                continue
            values.append(to_decimal(value))
            contributing.append(to_decimal(weight))
        return values, contributing

    # ------------------------------------------------------------------
    # Final component score
    # ------------------------------------------------------------------

    def calculate_final_score(
        self,
        config: MethodConfig,
        self_rating: Optional[Number],
        manager_rating: Optional[Number],
        progress_percentage: Optional[Number],
        max_rating: Number,
        peer_rating: Optional[Number] = None,
    ) -> FinalScoreResult:
        """
        Final score for one component under its calculation method.

        Returns:
            FinalScoreResult; ``score`` is None when the method has no data
            to work with (never an exception).

        Raises:
            TypeError: config is not one of the four calculation variants.
        """
        if isinstance(config, AutoCalculated):
            if progress_percentage is None:
                return FinalScoreResult(score=None, method=CalculationMethodType.AUTO_CALCULATED)
            rating = self.progress_to_rating(progress_percentage, config.progress_bands, max_rating)
            return FinalScoreResult(
                score=rating,
                method=CalculationMethodType.AUTO_CALCULATED,
                contributing_weight=Decimal("100"),
                progress_rating=rating,
            )

        if isinstance(config, ManagerEntered):
            manager = _opt_decimal(manager_rating)
            return FinalScoreResult(
                score=manager,
                method=CalculationMethodType.MANAGER_ENTERED,
                contributing_weight=Decimal("100") if manager is not None else Decimal("0"),
            )

        if isinstance(config, WeightedAverage):
            progress_rating = None
            if progress_percentage is not None:
                progress_rating = self.progress_to_rating(
                    progress_percentage, config.progress_bands, max_rating
                )
            return self._blend(
                CalculationMethodType.WEIGHTED_AVERAGE,
                config.weights,
                self_rating,
                manager_rating,
                progress_rating,
                peer_rating,
                pending=False,
            )

        if isinstance(config, Calibrated):
            weights = config.weights.model_copy(update={"progress_weight": 0})
            return self._blend(
                CalculationMethodType.CALIBRATED,
                weights,
                self_rating,
                manager_rating,
                None,
                peer_rating,
                pending=True,
            )

        raise TypeError(f"Unsupported calculation method: {config!r}")

    def _blend(self, method, weights, self_rating, manager_rating, progress_rating, peer_rating, pending):
        values, contributing = self._contributions(
            self_rating, manager_rating, progress_rating, peer_rating, weights
        )
        mean = weighted_mean(values, contributing)
        return FinalScoreResult(
            score=None if mean is None else quantize(mean),
            method=method,
            contributing_weight=sum(contributing, Decimal("0")),
            progress_rating=progress_rating,
            pending_calibration=pending,
        )

    # ------------------------------------------------------------------
    # Goal roll-up
    # ------------------------------------------------------------------

    def get_weight_adjusted_score(
        self,
        final_score: Number,
        goal_weight: Number,
        max_rating: Number,
    ) -> Decimal:
        """A goal's contribution to the roll-up: final / max_rating × weight."""
        max_d = to_decimal(max_rating)
        if max_d <= 0:
            raise ValueError(f"max_rating must be positive, got {max_rating}")
        return to_decimal(final_score) / max_d * to_decimal(goal_weight)

    def calculate_team_rollup(self, goal_ratings: List[GoalRating], max_rating: Number) -> TeamRollup:
        """
        Weighted roll-up of goal ratings.

        Goals without a final score are skipped. An empty (or fully unrated)
        list yields an average of 0.
        """
        weighted_sum = Decimal("0")
        total_weight = Decimal("0")
        counted = 0
        for goal in goal_ratings:
            if goal.final_score is None:
                continue
            weighted_sum += self.get_weight_adjusted_score(goal.final_score, goal.weight, max_rating)
            total_weight += to_decimal(goal.weight)
            counted += 1

        if total_weight == 0:
            average = Decimal("0")
        else:
            average = weighted_sum / total_weight * to_decimal(max_rating)

        return TeamRollup(
            weighted_sum=quantize(weighted_sum, Decimal("0.0001")),
            total_weight=total_weight,
            average_rating=quantize(average),
            goal_count=counted,
        )

    # ------------------------------------------------------------------
    # Overall score
    # ------------------------------------------------------------------

    def aggregate_components(self, components: List[WeightedComponent]) -> ComponentAggregation:
        """
        Weighted overall score across components.

        Returns:
            ComponentAggregation carrying the overall score (None if nothing
            contributes) and, when configured weights are not 100, the
            WeightSumError describing the exact total.
        """
        summary = self.weight_validator.summarize(c.weight_percent for c in components)
        weight_error = None
        if summary.status != WeightStatus.COMPLETE:
            weight_error = WeightSumError(summary.total_weight)

        values: List[Decimal] = []
        weights: List[Decimal] = []
        excluded: List[str] = []
        for component in components:
            if component.score is None or component.weight_percent <= 0:
                excluded.append(component.component_type.value)
                continue
            values.append(to_decimal(component.score))
            weights.append(to_decimal(component.weight_percent))

        mean = weighted_mean(values, weights)
        overall = None if mean is None else quantize(mean)

        if weight_error is not None:
            logger.warning(
                "component_weights_incomplete",
                total_weight=float(summary.total_weight),
                status=summary.status.value,
            )

        return ComponentAggregation(
            overall_score=overall,
            contributing_weight=sum(weights, Decimal("0")),
            weight_summary=summary,
            weight_error=weight_error,
            excluded=excluded,
        )
