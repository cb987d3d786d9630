"""
calibration/analyzer.py — Cohort Calibration Analysis

Map (per employee, concurrent, no shared state):
    PerformanceIndexBuilder → OverallScoreRecord → anomaly findings

Reduce (single-threaded, after every map completes):
    distribution, health score, warnings

Distribution:
    pct[c] = count[c] / total × 100 to 1 dp, largest-remainder rounded so
    Σ pct == 100.0 exactly (ties broken high → low category order).
    ``total`` counts employees that received an overall score.

Anomalies (thresholds on a 5-point scale, scaled to the rating range, which
run_analysis takes from the template canonical scale):
    rating_gap      |self − manager| > gap_threshold (1.5)
                    high if gap ≥ 2 × threshold, else medium
    extreme_rating  score > 0.9 × max_rating or < 0.3 × max_rating, no justification
                    high if |score − midline| ≥ 90% of the half range, else medium

Health score:
    anomaly_penalty   = W_a × min(1, anomalies / cohort_size)
    deviation_penalty = W_d × min(1, Σ |current% − target%| / 100)
    health            = 100 − anomaly_penalty − deviation_penalty   (1 dp)
    W_a = 60, W_d = 40 by default. More anomalies or more deviation never
    raise the score.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

import structlog

from appraisal_engine.core.exceptions import InvalidScaleError, WeightSumError
from appraisal_engine.models.appraisal import CohortSnapshot, EmployeeAppraisal
from appraisal_engine.models.calibration import (
    AnomalyFinding,
    CalibrationAnalysisResult,
    CalibrationConfig,
    DistributionResult,
    TargetDistribution,
)
from appraisal_engine.models.enumerations import AnomalyType, PerformanceCategory, Severity
from appraisal_engine.models.rating import RatingScale
from appraisal_engine.models.score import OverallScoreRecord
from appraisal_engine.scoring.performance_index import PerformanceIndexBuilder
from appraisal_engine.scoring.utils import (
    ONE_PLACE,
    clamp,
    largest_remainder_percentages,
    quantize,
    to_decimal,
)

logger = structlog.get_logger(__name__)

CATEGORY_ORDER: List[PerformanceCategory] = list(PerformanceCategory)

# Span of the 1–5 range reference_gap_threshold is expressed on
_REFERENCE_SPAN = Decimal("4")
_HIGH_EXTREME_DISTANCE = Decimal("0.9")


@dataclass
class EmployeeAnalysis:
    """Map-phase output for one employee."""
    record: OverallScoreRecord
    anomalies: List[AnomalyFinding] = field(default_factory=list)
    weight_error: Optional[WeightSumError] = None


class CalibrationAnalyzer:
    """Compute distribution, anomalies and health score for a cohort."""

    def __init__(
        self,
        config: Optional[CalibrationConfig] = None,
        builder: Optional[PerformanceIndexBuilder] = None,
    ):
        self.config = config or CalibrationConfig()
        self.builder = builder or PerformanceIndexBuilder()

    # ------------------------------------------------------------------
    # Thresholds
    # ------------------------------------------------------------------

    @property
    def gap_threshold(self) -> Decimal:
        if self.config.gap_threshold is not None:
            return to_decimal(self.config.gap_threshold)
        span = to_decimal(self.config.max_rating) - to_decimal(self.config.min_rating)
        return to_decimal(self.config.reference_gap_threshold) * span / _REFERENCE_SPAN

    @property
    def extreme_high_cutoff(self) -> Decimal:
        return to_decimal(self.config.max_rating) * to_decimal(self.config.extreme_high_ratio)

    @property
    def extreme_low_cutoff(self) -> Decimal:
        return to_decimal(self.config.max_rating) * to_decimal(self.config.extreme_low_ratio)

    # ------------------------------------------------------------------
    # Distribution
    # ------------------------------------------------------------------

    def calculate_distribution(self, records: List[OverallScoreRecord]) -> DistributionResult:
        """
        Category counts and percentages over records that have a category.

        Returns:
            DistributionResult; empty counts/percentages for an empty cohort.
        """
        counts: Dict[PerformanceCategory, int] = {c: 0 for c in CATEGORY_ORDER}
        for record in records:
            if record.category is not None:
                counts[record.category] += 1

        total = sum(counts.values())
        if total == 0:
            return DistributionResult()

        percentages = largest_remainder_percentages(counts, CATEGORY_ORDER, places=1)
        return DistributionResult(
            total=total,
            counts=counts,
            percentages={c: float(p) for c, p in percentages.items()},
        )

    # ------------------------------------------------------------------
    # Anomalies
    # ------------------------------------------------------------------

    def detect_anomalies(self, record: OverallScoreRecord) -> List[AnomalyFinding]:
        """Rating-gap then extreme-rating findings for one record."""
        findings: List[AnomalyFinding] = []

        if record.self_rating is not None and record.manager_rating is not None:
            self_d = to_decimal(record.self_rating)
            manager_d = to_decimal(record.manager_rating)
            gap = abs(self_d - manager_d)
            threshold = self.gap_threshold
            if gap > threshold:
                severity = Severity.HIGH if gap >= 2 * threshold else Severity.MEDIUM
                findings.append(AnomalyFinding(
                    type=AnomalyType.RATING_GAP,
                    severity=severity,
                    employee_ref=record.employee_id,
                    detail=(
                        f"Self rating {self_d} and manager rating {manager_d} differ by "
                        f"{gap} (threshold {quantize(threshold)})"
                    ),
                    self_rating=record.self_rating,
                    manager_rating=record.manager_rating,
                    final_score=record.overall_score,
                ))

        if record.overall_score is not None and not record.has_justification:
            score = to_decimal(record.overall_score)
            high_cut, low_cut = self.extreme_high_cutoff, self.extreme_low_cutoff
            if score > high_cut or score < low_cut:
                min_d = to_decimal(self.config.min_rating)
                max_d = to_decimal(self.config.max_rating)
                midline = (min_d + max_d) / 2
                half_range = (max_d - min_d) / 2
                distance = abs(score - midline)
                severity = (
                    Severity.HIGH
                    if distance >= _HIGH_EXTREME_DISTANCE * half_range
                    else Severity.MEDIUM
                )
                bound = f"above {quantize(high_cut)}" if score > high_cut else f"below {quantize(low_cut)}"
                findings.append(AnomalyFinding(
                    type=AnomalyType.EXTREME_RATING,
                    severity=severity,
                    employee_ref=record.employee_id,
                    detail=f"Final score {score} is {bound} with no justification recorded",
                    self_rating=record.self_rating,
                    manager_rating=record.manager_rating,
                    final_score=record.overall_score,
                ))

        return findings

    # ------------------------------------------------------------------
    # Health score
    # ------------------------------------------------------------------

    def calculate_distribution_deviation(
        self,
        distribution: DistributionResult,
        target: Optional[TargetDistribution],
    ) -> Decimal:
        """Σ |current% − target%| over the categories the target names."""
        if not target or distribution.total == 0:
            return Decimal("0")
        deviation = Decimal("0")
        for category, target_pct in target.items():
            current = to_decimal(distribution.percentages.get(category, 0.0))
            deviation += abs(current - to_decimal(target_pct))
        return deviation

    def calculate_health_score(
        self,
        cohort_size: int,
        anomaly_count: int,
        distribution: DistributionResult,
        target: Optional[TargetDistribution] = None,
    ) -> Optional[Decimal]:
        """
        Returns:
            Health score in [0, 100] to 1 dp, or None for an empty cohort.
        """
        if cohort_size == 0:
            return None

        anomaly_ratio = min(Decimal("1"), Decimal(anomaly_count) / Decimal(cohort_size))
        deviation = self.calculate_distribution_deviation(distribution, target)
        deviation_ratio = min(Decimal("1"), deviation / Decimal("100"))

        penalty = (
            to_decimal(self.config.health_anomaly_weight) * anomaly_ratio
            + to_decimal(self.config.health_deviation_weight) * deviation_ratio
        )
        return quantize(clamp(Decimal("100") - penalty), ONE_PLACE)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def analyze_records(self, records: List[OverallScoreRecord]) -> CalibrationAnalysisResult:
        """Analyze an already-scored, category-tagged cohort."""
        analyses = [EmployeeAnalysis(record=r, anomalies=self.detect_anomalies(r)) for r in records]
        return self._reduce(analyses)

    def run_analysis(self, snapshot: CohortSnapshot) -> CalibrationAnalysisResult:
        """
        Score every employee concurrently, then reduce cohort-wide.

        Records are scored on the template's canonical scale, so the rating
        range every threshold is derived from comes from that scale too.

        Raises:
            InvalidScaleError: a scale in the snapshot is malformed.
        """
        analyzer = self.for_scale(snapshot.template.canonical_scale)

        if not snapshot.employees:
            logger.info("analysis_no_data", cycle_id=snapshot.cycle_id)
            return analyzer._reduce([])

        with ThreadPoolExecutor(max_workers=analyzer.config.max_workers) as pool:
            analyses = list(pool.map(
                lambda employee: analyzer._analyze_employee(employee, snapshot),
                snapshot.employees,
            ))

        return analyzer._reduce(analyses)

    def for_scale(self, scale: RatingScale) -> "CalibrationAnalyzer":
        """
        Analyzer whose rating range is ``scale``.

        Raises:
            InvalidScaleError: ``scale`` has no positive span.
        """
        if scale.max_value <= scale.min_value:
            raise InvalidScaleError(
                f"Canonical scale max ({scale.max_value}) must be greater than min ({scale.min_value})",
                scale=scale,
            )
        fields_set = self.config.model_fields_set
        configured = (self.config.min_rating, self.config.max_rating)
        if {"min_rating", "max_rating"} & fields_set and configured != (scale.min_value, scale.max_value):
            logger.warning(
                "rating_range_overridden",
                configured_min=self.config.min_rating,
                configured_max=self.config.max_rating,
                canonical_min=scale.min_value,
                canonical_max=scale.max_value,
            )
        return CalibrationAnalyzer(self.config.for_scale(scale), self.builder)

    def _analyze_employee(self, employee: EmployeeAppraisal, snapshot: CohortSnapshot) -> EmployeeAnalysis:
        result = self.builder.score_employee(
            employee,
            snapshot.template,
            snapshot.cycle_id,
            thresholds=self.config.thresholds,
        )
        return EmployeeAnalysis(
            record=result.record,
            anomalies=self.detect_anomalies(result.record),
            weight_error=result.weight_error,
        )

    def _reduce(self, analyses: List[EmployeeAnalysis]) -> CalibrationAnalysisResult:
        records = [a.record for a in analyses]
        anomalies = [finding for a in analyses for finding in a.anomalies]
        cohort_size = len(records)

        if cohort_size == 0:
            return CalibrationAnalysisResult(
                no_data=True,
                min_rating=self.config.min_rating,
                max_rating=self.config.max_rating,
            )

        distribution = self.calculate_distribution(records)
        health = self.calculate_health_score(
            cohort_size,
            len(anomalies),
            distribution,
            self.config.target_distribution,
        )

        warnings: List[str] = []
        weight_messages = {str(a.weight_error) for a in analyses if a.weight_error is not None}
        warnings.extend(sorted(weight_messages))
        unscored = sum(1 for r in records if r.category is None)
        if unscored:
            warnings.append(
                f"{unscored} employee(s) have no contributing scores and are excluded from the distribution"
            )

        logger.info(
            "analysis_completed",
            cohort_size=cohort_size,
            anomaly_count=len(anomalies),
            health_score=float(health) if health is not None else None,
            warnings=len(warnings),
        )

        return CalibrationAnalysisResult(
            health_score=float(health) if health is not None else None,
            distribution=distribution,
            anomalies=anomalies,
            records=records,
            warnings=warnings,
            cohort_size=cohort_size,
            no_data=distribution.total == 0,
            min_rating=self.config.min_rating,
            max_rating=self.config.max_rating,
        )
