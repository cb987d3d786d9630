"""
scoring/performance_index.py — Per-Employee Performance Index

Pipeline for one employee (a pure function of that employee's inputs):

  RawRatings ──► ScaleNormalizer ──► canonical self / manager / peer ──┐
  Milestones ──► MilestoneProgressCalculator ──► progress % ───────────┤──► ScoreAggregator
                                                                      │    (per component)
  Template component weights ─────────────────────────────────────────┘
        │
        └──► aggregate_components ──► OverallScoreRecord (+ category)

The employee-level self and manager ratings used for gap detection are the
component-weighted means of the normalized component ratings.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

import structlog

from appraisal_engine.core.exceptions import WeightSumError
from appraisal_engine.models.appraisal import (
    AppraisalTemplate,
    ComponentRating,
    EmployeeAppraisal,
    TemplateComponent,
)
from appraisal_engine.models.calibration import CategoryThresholds
from appraisal_engine.models.enumerations import SourceType
from appraisal_engine.models.rating import RatingScale, RawRating, WeightedComponent
from appraisal_engine.models.score import ComponentScore, OverallScoreRecord
from appraisal_engine.scoring.milestone_progress import MilestoneProgressCalculator
from appraisal_engine.scoring.scale_normalizer import ScaleNormalizer
from appraisal_engine.scoring.score_aggregator import ScoreAggregator
from appraisal_engine.scoring.utils import quantize, to_decimal, weighted_mean

logger = structlog.get_logger(__name__)


@dataclass
class EmployeeScoreResult:
    """Output of PerformanceIndexBuilder.score_employee()."""
    record: OverallScoreRecord
    weight_error: Optional[WeightSumError] = None
    excluded_components: List[str] = field(default_factory=list)


def _to_float(value: Optional[Decimal]) -> Optional[float]:
    return None if value is None else float(value)


class PerformanceIndexBuilder:
    """Build an OverallScoreRecord from one employee's raw inputs."""

    def __init__(
        self,
        normalizer: Optional[ScaleNormalizer] = None,
        progress_calculator: Optional[MilestoneProgressCalculator] = None,
        aggregator: Optional[ScoreAggregator] = None,
    ):
        self.normalizer = normalizer or ScaleNormalizer()
        self.progress_calculator = progress_calculator or MilestoneProgressCalculator()
        self.aggregator = aggregator or ScoreAggregator()

    def score_employee(
        self,
        employee: EmployeeAppraisal,
        template: AppraisalTemplate,
        cycle_id: str,
        thresholds: Optional[CategoryThresholds] = None,
    ) -> EmployeeScoreResult:
        """
        Args:
            employee: Recorded ratings and milestones for one employee.
            template: Weighted component configuration.
            cycle_id: Appraisal cycle the record belongs to.
            thresholds: Category thresholds on the canonical scale; defaults
                to the 1–5 thresholds rescaled onto it.

        Returns:
            EmployeeScoreResult with the record and any weight error.

        Raises:
            InvalidScaleError: a rating's scale or the canonical scale is malformed.
        """
        canonical = template.canonical_scale
        thresholds = thresholds or CategoryThresholds.for_scale(canonical)

        component_scores = [
            self._score_component(component, employee.for_component(component.component_type), canonical)
            for component in template.components
        ]

        aggregation = self.aggregator.aggregate_components([
            WeightedComponent(
                component_type=cs.component_type,
                weight_percent=cs.weight_percent,
                score=cs.score,
            )
            for cs in component_scores
        ])

        overall = _to_float(aggregation.overall_score)
        record = OverallScoreRecord(
            record_id=f"{cycle_id}:{employee.employee_id}",
            employee_id=employee.employee_id,
            cycle_id=cycle_id,
            manager_id=employee.manager_id,
            overall_score=overall,
            component_scores=component_scores,
            category=thresholds.categorize(overall),
            self_rating=self._weighted_rating(component_scores, "self_rating"),
            manager_rating=self._weighted_rating(component_scores, "manager_rating"),
            has_justification=employee.has_justification,
        )

        logger.debug(
            "employee_scored",
            employee_id=employee.employee_id,
            overall_score=overall,
            category=record.category.value if record.category else None,
            excluded=aggregation.excluded,
        )

        return EmployeeScoreResult(
            record=record,
            weight_error=aggregation.weight_error,
            excluded_components=aggregation.excluded,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _score_component(
        self,
        component: TemplateComponent,
        rating: Optional[ComponentRating],
        canonical: RatingScale,
    ) -> ComponentScore:
        if rating is None:
            rating = ComponentRating(component_type=component.component_type)

        self_rating = self._normalized_mean(rating.ratings_from(SourceType.SELF), canonical)
        manager_rating = self._normalized_mean(rating.ratings_from(SourceType.MANAGER), canonical)
        peer_rating = self._normalized_mean(rating.ratings_from(SourceType.PEER), canonical)
        progress = self._progress(rating, canonical)

        final = self.aggregator.calculate_final_score(
            component.calculation,
            self_rating,
            manager_rating,
            progress,
            canonical.max_value,
            peer_rating=peer_rating,
        )

        return ComponentScore(
            component_type=component.component_type,
            weight_percent=component.weight_percent,
            score=_to_float(final.score),
            self_rating=_to_float(self_rating),
            manager_rating=_to_float(manager_rating),
            progress_percentage=_to_float(progress),
            pending_calibration=final.pending_calibration,
        )

    def _normalized_mean(self, ratings: List[RawRating], canonical: RatingScale) -> Optional[Decimal]:
        if not ratings:
            return None
        normalized = [
            self.normalizer.normalize_score(r.value, r.scale, canonical) for r in ratings
        ]
        return quantize(sum(normalized, Decimal("0")) / Decimal(len(normalized)))

    def _progress(self, rating: ComponentRating, canonical: RatingScale) -> Optional[Decimal]:
        """Explicit percentage, then milestones, then a progress-sourced rating."""
        if rating.progress_percentage is not None:
            return to_decimal(rating.progress_percentage)
        if rating.milestones:
            return self.progress_calculator.calculate_progress(rating.milestones)
        progress_ratings = rating.ratings_from(SourceType.PROGRESS)
        if progress_ratings:
            percent_scale = RatingScale(min_value=0, max_value=100)
            values = [
                self.normalizer.normalize_score(r.value, r.scale, percent_scale)
                for r in progress_ratings
            ]
            return quantize(sum(values, Decimal("0")) / Decimal(len(values)))
        return None

    def _weighted_rating(self, component_scores: List[ComponentScore], attr: str) -> Optional[float]:
        values: List[Decimal] = []
        weights: List[Decimal] = []
        for cs in component_scores:
            value = getattr(cs, attr)
            if value is None or cs.weight_percent <= 0:
                continue
            values.append(to_decimal(value))
            weights.append(to_decimal(cs.weight_percent))
        mean = weighted_mean(values, weights)
        return None if mean is None else float(quantize(mean))
