"""
Engine Surface - Appraisal Calibration Engine
appraisal_engine/engine.py

Pure, re-runnable entry points. Each call is a full recomputation over the
snapshot it receives; nothing is retained between calls.

    score_cohort(snapshot)                       → List[OverallScoreRecord]
    run_analysis(snapshot, config)               → CalibrationAnalysisResult
    generate_suggestions(analysis, target, ...)  → CalibrationSuggestionSet
"""

from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

from appraisal_engine.calibration.analyzer import CalibrationAnalyzer
from appraisal_engine.calibration.suggester import CalibrationSuggester
from appraisal_engine.models.appraisal import CohortSnapshot
from appraisal_engine.models.calibration import (
    CalibrationAnalysisResult,
    CalibrationConfig,
    CalibrationSuggestionSet,
    CategoryThresholds,
    TargetDistribution,
)
from appraisal_engine.models.score import OverallScoreRecord
from appraisal_engine.scoring.performance_index import PerformanceIndexBuilder
from appraisal_engine.services.narrative_client import get_narrative_assistant


def score_cohort(
    cohort_snapshot: CohortSnapshot,
    max_workers: Optional[int] = None,
    thresholds: Optional[CategoryThresholds] = None,
) -> List[OverallScoreRecord]:
    """Score every employee concurrently; output follows input order."""
    builder = PerformanceIndexBuilder()
    if not cohort_snapshot.employees:
        return []
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        results = pool.map(
            lambda employee: builder.score_employee(
                employee, cohort_snapshot.template, cohort_snapshot.cycle_id, thresholds
            ),
            cohort_snapshot.employees,
        )
        return [result.record for result in results]


def run_analysis(
    cohort_snapshot: CohortSnapshot,
    config: Optional[CalibrationConfig] = None,
) -> CalibrationAnalysisResult:
    """
    Score, detect anomalies and compute the cohort distribution and health.

    An empty cohort returns ``no_data=True`` with ``health_score=None`` and
    an empty distribution.

    Raises:
        InvalidScaleError: a rating or canonical scale is malformed.
    """
    config = config or CalibrationConfig.from_settings()
    return CalibrationAnalyzer(config).run_analysis(cohort_snapshot)


def generate_suggestions(
    analysis_result: CalibrationAnalysisResult,
    target_distribution: Optional[TargetDistribution] = None,
    assistant=None,
    timeout: Optional[float] = None,
) -> CalibrationSuggestionSet:
    """
    Deterministic suggestions, optionally enriched by ``assistant``.

    Without an explicit ``assistant`` the one configured by
    NARRATIVE_ASSISTANT_URL is used, if any. A slow or failing assistant
    never blocks or breaks the result.
    """
    if assistant is None:
        assistant = get_narrative_assistant()
    suggester = CalibrationSuggester.from_settings(assistant=assistant)
    if timeout is not None:
        suggester.narrative_timeout = timeout
    return suggester.generate(analysis_result, target_distribution)
