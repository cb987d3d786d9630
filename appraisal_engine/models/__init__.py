"""
Models Package - Appraisal Calibration Engine
appraisal_engine/models/__init__.py

Serializable value objects crossing the engine boundary.
"""

from appraisal_engine.models.appraisal import (
    AppraisalTemplate,
    CohortSnapshot,
    ComponentRating,
    EmployeeAppraisal,
    TemplateComponent,
)
from appraisal_engine.models.calculation import (
    DEFAULT_PROGRESS_BANDS,
    AutoCalculated,
    Calibrated,
    CalculationMethod,
    ManagerEntered,
    ProgressBand,
    RatingWeights,
    WeightedAverage,
)
from appraisal_engine.models.calibration import (
    AnomalyFinding,
    CalibrationAdjustment,
    CalibrationAnalysisResult,
    CalibrationConfig,
    CalibrationSession,
    CalibrationSuggestionSet,
    CategorySuggestion,
    CategoryThresholds,
    DistributionResult,
    IndividualSuggestion,
    TargetDistribution,
)
from appraisal_engine.models.enumerations import (
    AdjustmentStatus,
    AnomalyType,
    ComponentType,
    DriftPattern,
    ManagerFlagType,
    MilestoneStatus,
    PerformanceCategory,
    Priority,
    SessionStatus,
    Severity,
    SourceType,
    WeightStatus,
)
from appraisal_engine.models.rating import (
    FIVE_POINT_SCALE,
    Milestone,
    RatingScale,
    RawRating,
    WeightedComponent,
)
from appraisal_engine.models.score import ComponentScore, OverallScoreRecord

__all__ = [
    # Appraisal inputs
    "AppraisalTemplate",
    "CohortSnapshot",
    "ComponentRating",
    "EmployeeAppraisal",
    "TemplateComponent",
    # Calculation methods
    "DEFAULT_PROGRESS_BANDS",
    "AutoCalculated",
    "Calibrated",
    "CalculationMethod",
    "ManagerEntered",
    "ProgressBand",
    "RatingWeights",
    "WeightedAverage",
    # Calibration
    "AnomalyFinding",
    "CalibrationAdjustment",
    "CalibrationAnalysisResult",
    "CalibrationConfig",
    "CalibrationSession",
    "CalibrationSuggestionSet",
    "CategorySuggestion",
    "CategoryThresholds",
    "DistributionResult",
    "IndividualSuggestion",
    "TargetDistribution",
    # Enumerations
    "AdjustmentStatus",
    "AnomalyType",
    "ComponentType",
    "DriftPattern",
    "ManagerFlagType",
    "MilestoneStatus",
    "PerformanceCategory",
    "Priority",
    "SessionStatus",
    "Severity",
    "SourceType",
    "WeightStatus",
    # Ratings
    "FIVE_POINT_SCALE",
    "Milestone",
    "RatingScale",
    "RawRating",
    "WeightedComponent",
    # Scores
    "ComponentScore",
    "OverallScoreRecord",
]
