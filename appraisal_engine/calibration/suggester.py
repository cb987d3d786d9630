"""
calibration/suggester.py — Calibration Suggestions

Category suggestions (per category named in the target distribution):
    delta = current% − target%
    delta >  2    → move ceil(delta × total / 100) employees to the adjacent
                    lower category (adjacent higher for the lowest one)
                    priority high if delta > 5, else medium
    delta < −10   → increase representation, priority medium
    otherwise     → nothing (tolerance band)

Individual suggestions (one per anomaly):
    rating_gap      suggested = (self + manager) / 2
    extreme_rating  suggested = score moved one rating unit toward the
                    midpoint, never past it (unit = span / 4, i.e. 1.0 on 1–5)
    priority = anomaly severity

Ordering: stable sort on priority (high < medium < low); equal priorities
keep their input order.

Narrative enrichment is optional: the deterministic set is computed first,
then a NarrativeAssistant may attach prose within a timeout
(NARRATIVE_TIMEOUT_SECONDS unless given). Any failure, including a payload
that is not a mapping, returns the deterministic set unchanged.
"""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal, ROUND_CEILING
from typing import Dict, List, Optional

import structlog

from appraisal_engine.config import get_settings
from appraisal_engine.core.exceptions import NarrativeAssistantError
from appraisal_engine.models.calibration import (
    AnomalyFinding,
    CalibrationAnalysisResult,
    CalibrationSuggestionSet,
    CategorySuggestion,
    IndividualSuggestion,
    TargetDistribution,
)
from appraisal_engine.models.enumerations import (
    CATEGORY_LABELS,
    PRIORITY_RANK,
    AnomalyType,
    PerformanceCategory,
    Priority,
)
from appraisal_engine.scoring.utils import ONE_PLACE, Number, quantize, to_decimal

logger = structlog.get_logger(__name__)

CATEGORY_ORDER: List[PerformanceCategory] = list(PerformanceCategory)

_REFERENCE_SPAN = Decimal("4")


def adjacent_category(category: PerformanceCategory) -> PerformanceCategory:
    """Next lower category; the lowest category maps to the one above it."""
    index = CATEGORY_ORDER.index(category)
    if index == len(CATEGORY_ORDER) - 1:
        return CATEGORY_ORDER[index - 1]
    return CATEGORY_ORDER[index + 1]


def sort_by_priority(items: list) -> list:
    """Stable sort on ``priority``; ties keep input order."""
    return sorted(items, key=lambda item: PRIORITY_RANK[item.priority])


class CalibrationSuggester:
    """Turn an analysis result into category and individual suggestions."""

    def __init__(
        self,
        tolerance_pct: Number = 2,
        high_priority_delta_pct: Number = 5,
        under_represented_delta_pct: Number = -10,
        assistant=None,
        narrative_timeout: Optional[float] = None,
    ):
        self.tolerance = to_decimal(tolerance_pct)
        self.high_priority_delta = to_decimal(high_priority_delta_pct)
        self.under_represented_delta = to_decimal(under_represented_delta_pct)
        self.assistant = assistant
        if narrative_timeout is None:
            narrative_timeout = get_settings().NARRATIVE_TIMEOUT_SECONDS
        self.narrative_timeout = narrative_timeout

    @classmethod
    def from_settings(cls, settings=None, assistant=None) -> "CalibrationSuggester":
        settings = settings or get_settings()
        return cls(
            tolerance_pct=settings.CATEGORY_TOLERANCE_PCT,
            high_priority_delta_pct=settings.HIGH_PRIORITY_DELTA_PCT,
            under_represented_delta_pct=settings.UNDER_REPRESENTED_DELTA_PCT,
            assistant=assistant,
            narrative_timeout=settings.NARRATIVE_TIMEOUT_SECONDS,
        )

    # ------------------------------------------------------------------
    # Category suggestions
    # ------------------------------------------------------------------

    def suggest_categories(
        self,
        analysis: CalibrationAnalysisResult,
        target: Optional[TargetDistribution],
    ) -> List[CategorySuggestion]:
        distribution = analysis.distribution
        total = distribution.total
        if not target or total == 0:
            return []

        suggestions: List[CategorySuggestion] = []
        for category in CATEGORY_ORDER:
            if category not in target:
                continue

            current = to_decimal(distribution.percentages.get(category, 0.0))
            target_pct = to_decimal(target[category])
            delta = quantize(current - target_pct, ONE_PLACE)
            label = CATEGORY_LABELS[category]

            if delta > self.tolerance:
                move = int((delta * total / Decimal("100")).to_integral_value(rounding=ROUND_CEILING))
                move = min(move, distribution.counts.get(category, 0))
                destination = adjacent_category(category)
                priority = Priority.HIGH if delta > self.high_priority_delta else Priority.MEDIUM
                suggestions.append(CategorySuggestion(
                    suggestion_id=f"category:{category.value}",
                    category=category,
                    target_category=destination,
                    current_percentage=float(current),
                    target_percentage=float(target_pct),
                    delta=float(delta),
                    employee_count=move,
                    priority=priority,
                    message=(
                        f"Move {move} employees from {label} to "
                        f"{CATEGORY_LABELS[destination]}"
                    ),
                ))
            elif delta < self.under_represented_delta:
                shortfall = int((-delta * total / Decimal("100")).to_integral_value(rounding=ROUND_CEILING))
                suggestions.append(CategorySuggestion(
                    suggestion_id=f"category:{category.value}",
                    category=category,
                    current_percentage=float(current),
                    target_percentage=float(target_pct),
                    delta=float(delta),
                    employee_count=shortfall,
                    priority=Priority.MEDIUM,
                    message=(
                        f"Increase representation in {label} "
                        f"({current}% vs {target_pct}% target)"
                    ),
                ))

        return suggestions

    # ------------------------------------------------------------------
    # Individual suggestions
    # ------------------------------------------------------------------

    def suggest_individual(self, analysis: CalibrationAnalysisResult) -> List[IndividualSuggestion]:
        suggestions: List[IndividualSuggestion] = []
        for finding in analysis.anomalies:
            suggestion = self._suggest_for_anomaly(finding, analysis.min_rating, analysis.max_rating)
            if suggestion is not None:
                suggestions.append(suggestion)
        return suggestions

    def _suggest_for_anomaly(
        self,
        finding: AnomalyFinding,
        min_rating: float,
        max_rating: float,
    ) -> Optional[IndividualSuggestion]:
        priority = Priority(finding.severity.value)

        if finding.type == AnomalyType.RATING_GAP:
            if finding.self_rating is None or finding.manager_rating is None:
                return None
            self_d = to_decimal(finding.self_rating)
            manager_d = to_decimal(finding.manager_rating)
            suggested = quantize((self_d + manager_d) / 2)
            reasoning = (
                f"Self rating ({self_d}) and manager rating ({manager_d}) differ by "
                f"{abs(self_d - manager_d)}; the midpoint {suggested} reconciles both views"
            )
        else:
            if finding.final_score is None:
                return None
            score = to_decimal(finding.final_score)
            min_d, max_d = to_decimal(min_rating), to_decimal(max_rating)
            midpoint = (min_d + max_d) / 2
            unit = (max_d - min_d) / _REFERENCE_SPAN
            if score > midpoint:
                suggested = quantize(max(score - unit, midpoint))
                direction = "down"
            else:
                suggested = quantize(min(score + unit, midpoint))
                direction = "up"
            reasoning = (
                f"Score {score} is at the edge of the scale with no justification; "
                f"moving {direction} to {suggested} pending supporting evidence"
            )

        return IndividualSuggestion(
            suggestion_id=f"{finding.type.value}:{finding.employee_ref}",
            employee_id=finding.employee_ref,
            anomaly_type=finding.type,
            current_score=finding.final_score,
            suggested_score=float(suggested),
            priority=priority,
            reasoning=reasoning,
        )

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def generate(
        self,
        analysis: CalibrationAnalysisResult,
        target: Optional[TargetDistribution] = None,
    ) -> CalibrationSuggestionSet:
        """
        Build the deterministic suggestion set, then enrich it if an
        assistant is configured.

        Never raises on narrative failure.
        """
        suggestion_set = CalibrationSuggestionSet(
            category_suggestions=sort_by_priority(self.suggest_categories(analysis, target)),
            individual_suggestions=sort_by_priority(self.suggest_individual(analysis)),
        )

        logger.info(
            "suggestions_generated",
            category_count=len(suggestion_set.category_suggestions),
            individual_count=len(suggestion_set.individual_suggestions),
        )

        if self.assistant is None:
            return suggestion_set
        return self.enrich(suggestion_set)

    def enrich(self, suggestion_set: CalibrationSuggestionSet) -> CalibrationSuggestionSet:
        """
        Attach narratives keyed by suggestion_id, bounded by the timeout.

        The assistant call runs on a worker thread; a timeout abandons it
        without waiting for it to finish.
        """
        pool = ThreadPoolExecutor(max_workers=1)
        try:
            future = pool.submit(self.assistant.enrich, suggestion_set)
            narratives: Dict[str, str] = future.result(timeout=self.narrative_timeout)
            if not isinstance(narratives, dict):
                raise NarrativeAssistantError(
                    f"Expected narratives keyed by suggestion_id, got {type(narratives).__name__}"
                )
        except Exception as e:
            logger.warning(
                "narrative_enrichment_failed",
                error=str(e) or type(e).__name__,
                error_type=type(e).__name__,
            )
            return suggestion_set
        finally:
            pool.shutdown(wait=False)

        if not narratives:
            return suggestion_set

        return CalibrationSuggestionSet(
            category_suggestions=[
                s.model_copy(update={"narrative": narratives.get(s.suggestion_id)})
                for s in suggestion_set.category_suggestions
            ],
            individual_suggestions=[
                s.model_copy(update={"narrative": narratives.get(s.suggestion_id)})
                for s in suggestion_set.individual_suggestions
            ],
            narrative_available=True,
        )
