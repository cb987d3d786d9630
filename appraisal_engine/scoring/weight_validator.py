"""
scoring/weight_validator.py — Weight Allocation Validation

Checks that a set of percentage weights totals exactly 100. Used both for a
template's component weights and for one employee's individual goal weights.

    total == 100 → complete
    total <  100 → under   ("18% weight remaining to allocate")
    total >  100 → over    ("5% over-allocated; reduce weights to total 100%")

Weights are reported, never silently rescaled.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from appraisal_engine.core.exceptions import WeightSumError, format_percent
from appraisal_engine.models.enumerations import WeightStatus
from appraisal_engine.scoring.utils import Number, to_decimal

HUNDRED = Decimal("100")


@dataclass
class WeightAllocationSummary:
    total_weight: Decimal
    status: WeightStatus
    remaining: Decimal   # > 0 only when under-allocated
    excess: Decimal      # > 0 only when over-allocated
    component_count: int


@dataclass
class WeightValidationResult:
    valid: bool
    message: str
    summary: WeightAllocationSummary


class WeightAllocationValidator:
    """Validate that weights sum to 100."""

    def calculate_status(self, total_weight: Number) -> WeightStatus:
        total = to_decimal(total_weight)
        if total == HUNDRED:
            return WeightStatus.COMPLETE
        if total < HUNDRED:
            return WeightStatus.UNDER
        return WeightStatus.OVER

    def summarize(self, weights: Iterable[Number]) -> WeightAllocationSummary:
        values = [to_decimal(w) for w in weights]
        total = sum(values, Decimal("0"))
        status = self.calculate_status(total)
        return WeightAllocationSummary(
            total_weight=total,
            status=status,
            remaining=HUNDRED - total if status == WeightStatus.UNDER else Decimal("0"),
            excess=total - HUNDRED if status == WeightStatus.OVER else Decimal("0"),
            component_count=sum(1 for v in values if v > 0),
        )

    def validate(self, weights: Iterable[Number]) -> WeightValidationResult:
        """
        Args:
            weights: Percentage weights (zero weights are allowed and ignored).

        Returns:
            WeightValidationResult whose message states the exact missing
            or excess percentage.
        """
        summary = self.summarize(weights)

        if summary.status == WeightStatus.COMPLETE:
            message = "All weight allocated (100%)"
        elif summary.status == WeightStatus.UNDER:
            message = f"{format_percent(summary.remaining)}% weight remaining to allocate"
        else:
            message = (
                f"{format_percent(summary.excess)}% over-allocated; "
                f"reduce weights to total 100%"
            )

        return WeightValidationResult(
            valid=summary.status == WeightStatus.COMPLETE,
            message=message,
            summary=summary,
        )

    def ensure_complete(self, weights: Iterable[Number]) -> WeightAllocationSummary:
        """
        Raise WeightSumError unless the weights total exactly 100.

        Raises:
            WeightSumError: carrying the exact current total.
        """
        summary = self.summarize(weights)
        if summary.status != WeightStatus.COMPLETE:
            raise WeightSumError(summary.total_weight)
        return summary
