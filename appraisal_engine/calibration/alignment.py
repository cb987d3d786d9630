"""
calibration/alignment.py — Manager Calibration Alignment & Differentiation

Alignment (over the adjustments touching one manager's employees):
    diff            = effective_score − original_score
                      (effective = applied_score while applied, else original)
    adjustment_rate = (increased + decreased) / reviewed × 100
    alignment_score = 100 − adjustment_rate

    Drift pattern, first match wins:
        increased > 2 × decreased   → consistently_low
        decreased > 2 × increased   → consistently_high
        adjustment_rate > 30        → variable
        otherwise                   → aligned

Differentiation (spread of the ratings one manager gave):
    σ                    = population std dev of ratings
    differentiation      = max(0, 100 − |σ − 0.8| × 50)
    No ratings           → differentiation 50

Rating-pattern flags (for HR review):
    extreme_leniency     avg > 4.5 and σ < 0.3       medium
    extreme_severity     avg < 2.5 and σ < 0.3       high
    calibration_drift    adjustment_rate > 30        medium
    Leniency and severity need at least one rating; drift needs at least
    one reviewed adjustment.
"""

from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Set

import structlog

from appraisal_engine.models.calibration import CalibrationAdjustment
from appraisal_engine.models.enumerations import (
    AdjustmentStatus,
    DriftPattern,
    ManagerFlagType,
    Severity,
)
from appraisal_engine.scoring.utils import Number, population_std_dev, quantize, to_decimal

logger = structlog.get_logger(__name__)

IDEAL_STD_DEV = Decimal("0.8")
STD_DEV_PENALTY = Decimal("50")
VARIABLE_RATE_THRESHOLD = Decimal("30")
NEUTRAL_DIFFERENTIATION = Decimal("50")

# Flag thresholds; averages are on the 1–5 reference range
LENIENCY_AVG_THRESHOLD = Decimal("4.5")
SEVERITY_AVG_THRESHOLD = Decimal("2.5")
LOW_SPREAD_STD_DEV = Decimal("0.3")
DRIFT_RATE_THRESHOLD = Decimal("30")


@dataclass
class CalibrationAlignmentResult:
    manager_id: Optional[str]
    employees_reviewed: int
    scores_unchanged: int
    scores_increased: int
    scores_decreased: int
    avg_adjustment: Decimal
    max_adjustment: Decimal
    adjustment_rate: Decimal
    alignment_score: Decimal
    drift_pattern: DriftPattern


@dataclass
class DifferentiationResult:
    avg_score: Decimal
    std_deviation: Decimal
    differentiation_score: Decimal
    total_scores: int
    distribution: Dict[int, int] = field(default_factory=dict)


@dataclass
class RatingPatternFlag:
    flag_type: ManagerFlagType
    severity: Severity
    title: str
    description: str
    affected_employees: int


def _effective_score(adjustment: CalibrationAdjustment) -> Decimal:
    if adjustment.status == AdjustmentStatus.APPLIED and adjustment.applied_score is not None:
        return to_decimal(adjustment.applied_score)
    return to_decimal(adjustment.original_score)


class ManagerAlignmentCalculator:
    """Per-manager calibration alignment and rating differentiation."""

    def calculate_alignment(
        self,
        adjustments: Iterable[CalibrationAdjustment],
        employee_ids: Optional[Set[str]] = None,
        manager_id: Optional[str] = None,
    ) -> CalibrationAlignmentResult:
        """
        Args:
            adjustments: Adjustments recorded in a calibration session.
            employee_ids: The manager's employees; None keeps every adjustment.
            manager_id: Carried into the result for reporting.
        """
        relevant = [
            a for a in adjustments
            if employee_ids is None or a.employee_id in employee_ids
        ]

        unchanged = increased = decreased = 0
        total_adjustment = Decimal("0")
        max_adjustment = Decimal("0")
        for adjustment in relevant:
            diff = _effective_score(adjustment) - to_decimal(adjustment.original_score)
            if diff == 0:
                unchanged += 1
            elif diff > 0:
                increased += 1
            else:
                decreased += 1
            total_adjustment += abs(diff)
            max_adjustment = max(max_adjustment, abs(diff))

        reviewed = len(relevant)
        if reviewed:
            avg_adjustment = total_adjustment / reviewed
            rate = Decimal(increased + decreased) / Decimal(reviewed) * 100
        else:
            avg_adjustment = Decimal("0")
            rate = Decimal("0")

        if increased > decreased * 2:
            drift = DriftPattern.CONSISTENTLY_LOW
        elif decreased > increased * 2:
            drift = DriftPattern.CONSISTENTLY_HIGH
        elif rate > VARIABLE_RATE_THRESHOLD:
            drift = DriftPattern.VARIABLE
        else:
            drift = DriftPattern.ALIGNED

        result = CalibrationAlignmentResult(
            manager_id=manager_id,
            employees_reviewed=reviewed,
            scores_unchanged=unchanged,
            scores_increased=increased,
            scores_decreased=decreased,
            avg_adjustment=quantize(avg_adjustment),
            max_adjustment=quantize(max_adjustment),
            adjustment_rate=quantize(rate),
            alignment_score=quantize(Decimal("100") - rate),
            drift_pattern=drift,
        )

        logger.info(
            "alignment_calculated",
            manager_id=manager_id,
            employees_reviewed=reviewed,
            alignment_score=float(result.alignment_score),
            drift_pattern=drift.value,
        )
        return result

    def calculate_differentiation(self, ratings: List[Number]) -> DifferentiationResult:
        """Spread of one manager's ratings against an ideal σ of 0.8."""
        if not ratings:
            return DifferentiationResult(
                avg_score=Decimal("0"),
                std_deviation=Decimal("0"),
                differentiation_score=NEUTRAL_DIFFERENTIATION,
                total_scores=0,
            )

        values = [to_decimal(r) for r in ratings]
        mean = sum(values, Decimal("0")) / Decimal(len(values))
        std_dev = population_std_dev(values)
        score = max(Decimal("0"), Decimal("100") - abs(std_dev - IDEAL_STD_DEV) * STD_DEV_PENALTY)

        histogram = Counter(
            int(v.to_integral_value(rounding=ROUND_HALF_UP)) for v in values
        )

        return DifferentiationResult(
            avg_score=quantize(mean),
            std_deviation=quantize(std_dev),
            differentiation_score=quantize(score),
            total_scores=len(values),
            distribution=dict(sorted(histogram.items())),
        )

    def generate_flags(
        self,
        differentiation: DifferentiationResult,
        alignment: Optional[CalibrationAlignmentResult] = None,
    ) -> List[RatingPatternFlag]:
        """
        Rating-pattern flags for one manager.

        Args:
            differentiation: Spread of the ratings the manager gave.
            alignment: Calibration outcome for the manager's employees, if any.

        Returns:
            Flags in leniency, severity, drift order; empty when nothing trips.
        """
        flags: List[RatingPatternFlag] = []
        avg = differentiation.avg_score
        std_dev = differentiation.std_deviation
        low_spread = differentiation.total_scores > 0 and std_dev < LOW_SPREAD_STD_DEV

        if low_spread and avg > LENIENCY_AVG_THRESHOLD:
            flags.append(RatingPatternFlag(
                flag_type=ManagerFlagType.EXTREME_LENIENCY,
                severity=Severity.MEDIUM,
                title="Potential Leniency Bias Detected",
                description=(
                    f"Average score is {avg} with low variance ({std_dev}). "
                    f"Ratings may be inflated without differentiation."
                ),
                affected_employees=differentiation.total_scores,
            ))

        if low_spread and avg < SEVERITY_AVG_THRESHOLD:
            flags.append(RatingPatternFlag(
                flag_type=ManagerFlagType.EXTREME_SEVERITY,
                severity=Severity.HIGH,
                title="Potential Severity Bias Detected",
                description=(
                    f"Average score is {avg} with low variance ({std_dev}). "
                    f"Ratings may be overly harsh."
                ),
                affected_employees=differentiation.total_scores,
            ))

        if (
            alignment is not None
            and alignment.employees_reviewed > 0
            and alignment.adjustment_rate > DRIFT_RATE_THRESHOLD
        ):
            flags.append(RatingPatternFlag(
                flag_type=ManagerFlagType.CALIBRATION_DRIFT,
                severity=Severity.MEDIUM,
                title="Calibration Drift Detected",
                description=(
                    f"{alignment.adjustment_rate}% of reviewed scores were changed in calibration "
                    f"(pattern: {alignment.drift_pattern.value})."
                ),
                affected_employees=alignment.scores_increased + alignment.scores_decreased,
            ))

        if flags:
            logger.info(
                "manager_flags_generated",
                manager_id=alignment.manager_id if alignment is not None else None,
                flags=[f.flag_type.value for f in flags],
            )
        return flags
