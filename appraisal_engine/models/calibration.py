from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from datetime import datetime, timezone
from typing import Dict, List, Optional

from appraisal_engine.models.enumerations import (
    AdjustmentStatus,
    AnomalyType,
    PerformanceCategory,
    Priority,
    SessionStatus,
    Severity,
)
from appraisal_engine.models.rating import RatingScale
from appraisal_engine.models.score import OverallScoreRecord


TargetDistribution = Dict[PerformanceCategory, float]

DISTRIBUTION_SUM_TOLERANCE = 0.5

# Category thresholds and the gap setting are expressed on this range
REFERENCE_MIN_RATING = 1.0
REFERENCE_MAX_RATING = 5.0


def _check_target_distribution(target: Optional[TargetDistribution]) -> Optional[TargetDistribution]:
    if target is None:
        return None
    for category, pct in target.items():
        if not 0 <= pct <= 100:
            raise ValueError(f"Target percentage for {category.value} must be in [0, 100], got {pct}")
    total = sum(target.values())
    if abs(total - 100.0) > DISTRIBUTION_SUM_TOLERANCE:
        raise ValueError(f"Target distribution must sum to 100%, got {total}")
    return target


# =============================================================================
# CONFIGURATION
# =============================================================================

class CategoryThresholds(BaseModel):
    """Minimum overall score for each category (5-point defaults)."""

    exceptional: float = 4.5
    exceeds: float = 3.5
    meets: float = 2.5
    needs_improvement: float = 1.5

    @model_validator(mode="after")
    def validate_descending(self):
        """Thresholds must strictly decrease from exceptional downwards."""
        ordered = [self.exceptional, self.exceeds, self.meets, self.needs_improvement]
        if any(a <= b for a, b in zip(ordered, ordered[1:])):
            raise ValueError("Category thresholds must strictly decrease")
        return self

    def categorize(self, score: Optional[float]) -> Optional[PerformanceCategory]:
        if score is None:
            return None
        if score >= self.exceptional:
            return PerformanceCategory.EXCEPTIONAL
        if score >= self.exceeds:
            return PerformanceCategory.EXCEEDS
        if score >= self.meets:
            return PerformanceCategory.MEETS
        if score >= self.needs_improvement:
            return PerformanceCategory.NEEDS_IMPROVEMENT
        return PerformanceCategory.UNSATISFACTORY

    def rescaled(self, min_rating: float, max_rating: float) -> "CategoryThresholds":
        """Map thresholds from the 1–5 reference range onto [min_rating, max_rating]."""
        factor = (max_rating - min_rating) / (REFERENCE_MAX_RATING - REFERENCE_MIN_RATING)

        def _map(value: float) -> float:
            return min_rating + (value - REFERENCE_MIN_RATING) * factor

        return CategoryThresholds(
            exceptional=_map(self.exceptional),
            exceeds=_map(self.exceeds),
            meets=_map(self.meets),
            needs_improvement=_map(self.needs_improvement),
        )

    @classmethod
    def for_scale(cls, scale: RatingScale) -> "CategoryThresholds":
        """Default thresholds placed on ``scale``; the reference set if it has no span."""
        if scale.max_value <= scale.min_value:
            return cls()
        return cls().rescaled(scale.min_value, scale.max_value)


class CalibrationConfig(BaseModel):
    """
    Per-run calibration parameters.

    ``min_rating``/``max_rating`` are replaced by the template's canonical
    scale when a snapshot is analyzed (see ``for_scale``).
    """

    min_rating: float = REFERENCE_MIN_RATING
    max_rating: float = REFERENCE_MAX_RATING
    gap_threshold: Optional[float] = Field(
        default=None,
        gt=0,
        description="Self/manager gap threshold on the rating range; None scales reference_gap_threshold"
    )
    reference_gap_threshold: float = Field(
        default=1.5,
        gt=0,
        description="Gap threshold on the 1–5 reference range"
    )
    extreme_high_ratio: float = Field(default=0.9, gt=0.5, le=1.0)
    extreme_low_ratio: float = Field(default=0.3, ge=0.0, lt=0.5)
    thresholds: CategoryThresholds = Field(default_factory=CategoryThresholds)
    target_distribution: Optional[TargetDistribution] = None
    health_anomaly_weight: float = Field(default=60.0, ge=0, le=100)
    health_deviation_weight: float = Field(default=40.0, ge=0, le=100)
    max_workers: int = Field(default=8, ge=1, le=64)

    @field_validator("target_distribution")
    @classmethod
    def validate_target(cls, v: Optional[TargetDistribution]) -> Optional[TargetDistribution]:
        return _check_target_distribution(v)

    @model_validator(mode="after")
    def validate_rating_range(self):
        if self.max_rating <= self.min_rating:
            raise ValueError("max_rating must be greater than min_rating")
        return self

    @classmethod
    def from_settings(cls, settings=None, **overrides) -> "CalibrationConfig":
        """Build a config from environment settings, with per-run overrides."""
        if settings is None:
            from appraisal_engine.config import get_settings
            settings = get_settings()
        values = {
            "reference_gap_threshold": settings.CALIBRATION_GAP_THRESHOLD,
            "extreme_high_ratio": settings.EXTREME_HIGH_RATIO,
            "extreme_low_ratio": settings.EXTREME_LOW_RATIO,
            "health_anomaly_weight": settings.HEALTH_ANOMALY_WEIGHT,
            "health_deviation_weight": settings.HEALTH_DEVIATION_WEIGHT,
            "max_workers": settings.ANALYSIS_MAX_WORKERS,
        }
        values.update(overrides)
        return cls(**values)

    def for_scale(self, scale: RatingScale) -> "CalibrationConfig":
        """
        Copy whose rating range is ``scale``.

        Default category thresholds move with the range; thresholds passed
        in explicitly are taken to be on the canonical scale already.
        """
        update = {"min_rating": scale.min_value, "max_rating": scale.max_value}
        if "thresholds" not in self.model_fields_set:
            update["thresholds"] = CategoryThresholds.for_scale(scale)
        return self.model_copy(update=update)


# =============================================================================
# SESSIONS & ADJUSTMENTS
# =============================================================================

class CalibrationSession(BaseModel):
    """
    A facilitated calibration session.

    ``version`` is the optimistic-concurrency token: every successful write
    increments it, and a write carrying an older version is rejected.
    """

    id: str
    target_distribution: Optional[TargetDistribution] = None
    participants: List[str] = Field(default_factory=list)
    status: SessionStatus = SessionStatus.PENDING
    version: int = Field(default=0, ge=0)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("target_distribution")
    @classmethod
    def validate_target(cls, v: Optional[TargetDistribution]) -> Optional[TargetDistribution]:
        return _check_target_distribution(v)

    @property
    def is_terminal(self) -> bool:
        return self.status in (SessionStatus.COMPLETED, SessionStatus.CANCELLED)


class CalibrationAdjustment(BaseModel):
    """
    A proposed or applied score change. Frozen: every state change is a copy,
    and ``original_score`` is carried over untouched.
    """

    model_config = ConfigDict(frozen=True)

    adjustment_id: str
    session_id: str
    employee_id: str
    original_score: float
    suggested_score: float
    applied_score: Optional[float] = None
    status: AdjustmentStatus = AdjustmentStatus.PENDING
    reason: Optional[str] = None
    applied_at: Optional[datetime] = None
    reverted_at: Optional[datetime] = None

    @property
    def delta(self) -> Optional[float]:
        if self.applied_score is None:
            return None
        return self.applied_score - self.original_score


# =============================================================================
# ANALYSIS OUTPUT
# =============================================================================

class AnomalyFinding(BaseModel):
    """Derived rating anomaly; recomputed on every analysis run."""

    type: AnomalyType
    severity: Severity
    employee_ref: str
    detail: str
    self_rating: Optional[float] = None
    manager_rating: Optional[float] = None
    final_score: Optional[float] = None


class DistributionResult(BaseModel):
    total: int = 0
    counts: Dict[PerformanceCategory, int] = Field(default_factory=dict)
    percentages: Dict[PerformanceCategory, float] = Field(default_factory=dict)


class CalibrationAnalysisResult(BaseModel):
    """Output of run_analysis; ``no_data`` marks an empty cohort."""

    health_score: Optional[float] = None
    distribution: DistributionResult = Field(default_factory=DistributionResult)
    anomalies: List[AnomalyFinding] = Field(default_factory=list)
    records: List[OverallScoreRecord] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    cohort_size: int = 0
    no_data: bool = False
    min_rating: float = 1.0
    max_rating: float = 5.0


# =============================================================================
# SUGGESTIONS
# =============================================================================

class CategorySuggestion(BaseModel):
    suggestion_id: str
    category: PerformanceCategory
    target_category: Optional[PerformanceCategory] = None
    current_percentage: float
    target_percentage: float
    delta: float
    employee_count: int = 0
    priority: Priority
    message: str
    narrative: Optional[str] = None


class IndividualSuggestion(BaseModel):
    suggestion_id: str
    employee_id: str
    anomaly_type: AnomalyType
    current_score: Optional[float] = None
    suggested_score: float
    priority: Priority
    reasoning: str
    narrative: Optional[str] = None


class CalibrationSuggestionSet(BaseModel):
    category_suggestions: List[CategorySuggestion] = Field(default_factory=list)
    individual_suggestions: List[IndividualSuggestion] = Field(default_factory=list)
    narrative_available: bool = False
