"""
scoring/milestone_progress.py — Milestone Progress Roll-up

Formula:
    Σ weight == 0 :  progress = completed_count / total_count × 100   (equal weighting)
    otherwise     :  progress = Σ weight(completed) / Σ weight × 100

Empty milestone list → 0. Result rounded half-up to 1 decimal place
(2 of 3 equally weighted → 66.7).
"""

from decimal import Decimal
from typing import List

from appraisal_engine.models.rating import Milestone
from appraisal_engine.scoring.utils import ONE_PLACE, quantize, to_decimal


class MilestoneProgressCalculator:
    """Roll up milestone completion into a 0–100 progress percentage."""

    def calculate_progress(self, milestones: List[Milestone]) -> Decimal:
        """
        Args:
            milestones: Milestones of one goal; ``weight=None`` counts as 0.

        Returns:
            Progress percentage in [0, 100], quantized to 0.1.

        Examples:
            >>> from appraisal_engine.models.enumerations import MilestoneStatus as S
            >>> MilestoneProgressCalculator().calculate_progress([
            ...     Milestone(status=S.COMPLETED), Milestone(status=S.COMPLETED),
            ...     Milestone(status=S.IN_PROGRESS)])
            Decimal('66.7')
        """
        if not milestones:
            return Decimal("0.0")

        weights = [to_decimal(m.weight or 0) for m in milestones]
        total_weight = sum(weights, Decimal("0"))

        if total_weight == 0:
            completed = sum(1 for m in milestones if m.is_completed)
            progress = Decimal(completed) / Decimal(len(milestones)) * Decimal("100")
        else:
            completed_weight = sum(
                (w for m, w in zip(milestones, weights) if m.is_completed),
                Decimal("0"),
            )
            progress = completed_weight / total_weight * Decimal("100")

        return quantize(progress, ONE_PLACE)
