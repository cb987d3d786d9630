"""
Engine Surface Tests - Appraisal Calibration Engine
tests/test_engine.py

score_cohort → run_analysis → generate_suggestions end to end.
"""
from unittest.mock import patch

from appraisal_engine.core.exceptions import NarrativeAssistantError
from appraisal_engine.engine import generate_suggestions, run_analysis, score_cohort
from appraisal_engine.models import (
    AnomalyType,
    AppraisalTemplate,
    CalibrationConfig,
    ComponentType,
    PerformanceCategory,
    Priority,
    RatingScale,
    TemplateComponent,
)
from appraisal_engine.services.narrative_client import NarrativeAssistant


class FailingAssistant(NarrativeAssistant):
    def enrich(self, suggestion_set):
        raise NarrativeAssistantError("service down")


class TestScoreCohort:

    def test_output_follows_input_order(self, make_employee, make_snapshot):
        employees = [make_employee(f"emp-{i:03d}", manager_rating=(i % 5) + 1) for i in range(20)]
        records = score_cohort(make_snapshot(employees), max_workers=4)
        assert [r.employee_id for r in records] == [e.employee_id for e in employees]
        assert [r.overall_score for r in records] == [float((i % 5) + 1) for i in range(20)]

    def test_empty_cohort(self, make_snapshot):
        assert score_cohort(make_snapshot([])) == []


class TestRunAnalysis:

    def test_empty_cohort_is_no_data(self, make_snapshot):
        result = run_analysis(make_snapshot([]), CalibrationConfig())
        assert result.no_data
        assert result.health_score is None
        assert result.distribution.percentages == {}

    def test_reruns_are_identical(self, mixed_cohort):
        config = CalibrationConfig(max_workers=3)
        first = run_analysis(mixed_cohort, config)
        second = run_analysis(mixed_cohort, config)
        assert first.model_dump(exclude={"records"}) == second.model_dump(exclude={"records"})
        assert [r.overall_score for r in first.records] == [r.overall_score for r in second.records]


class TestEndToEnd:

    def test_analysis_to_suggestions_without_assistant(self, mixed_cohort):
        target = {
            PerformanceCategory.EXCEPTIONAL: 10,
            PerformanceCategory.EXCEEDS: 20,
            PerformanceCategory.MEETS: 60,
            PerformanceCategory.NEEDS_IMPROVEMENT: 7,
            PerformanceCategory.UNSATISFACTORY: 3,
        }
        analysis = run_analysis(mixed_cohort, CalibrationConfig(target_distribution=target))
        # 2 of 5 anomalous, deviation |20−10| + |20−20| + |40−60| + |20−7| + |0−3| = 46
        assert analysis.health_score == 57.6

        suggestions = generate_suggestions(analysis, target, assistant=FailingAssistant(), timeout=1.0)

        assert not suggestions.narrative_available
        by_employee = {s.employee_id: s for s in suggestions.individual_suggestions}
        assert by_employee["emp-001"].anomaly_type == AnomalyType.RATING_GAP
        assert by_employee["emp-001"].suggested_score == 3.5
        assert by_employee["emp-002"].anomaly_type == AnomalyType.EXTREME_RATING
        assert by_employee["emp-002"].suggested_score == 4.0

        by_category = {s.category: s for s in suggestions.category_suggestions}
        assert by_category[PerformanceCategory.NEEDS_IMPROVEMENT].priority == Priority.HIGH
        assert by_category[PerformanceCategory.MEETS].message.startswith("Increase representation")

    def test_ten_point_template_suggests_on_its_own_range(self, make_employee, make_snapshot):
        ten_point = RatingScale(min_value=0, max_value=10)
        template = AppraisalTemplate(
            template_id="tpl-ten",
            canonical_scale=ten_point,
            components=[TemplateComponent(component_type=ComponentType.GOALS, weight_percent=100)],
        )
        snapshot = make_snapshot(
            [
                make_employee("emp-001", 6, 6, scale=ten_point),
                make_employee("emp-002", 10, 10, scale=ten_point),
            ],
            template=template,
        )
        analysis = run_analysis(snapshot, CalibrationConfig())
        suggestions = generate_suggestions(analysis)

        # one unit is 10 / 4; midpoint 5
        assert [s.employee_id for s in suggestions.individual_suggestions] == ["emp-002"]
        assert suggestions.individual_suggestions[0].suggested_score == 7.5


class StaticAssistant(NarrativeAssistant):
    def enrich(self, suggestion_set):
        return {"rating_gap:emp-001": "Review the evidence together."}


class TestAssistantSelection:

    def test_configured_assistant_used_by_default(self, mixed_cohort):
        analysis = run_analysis(mixed_cohort, CalibrationConfig())
        with patch(
            "appraisal_engine.engine.get_narrative_assistant",
            return_value=StaticAssistant(),
        ) as factory:
            suggestions = generate_suggestions(analysis, timeout=1.0)

        factory.assert_called_once_with()
        assert suggestions.narrative_available
        by_employee = {s.employee_id: s for s in suggestions.individual_suggestions}
        assert by_employee["emp-001"].narrative == "Review the evidence together."

    def test_no_configured_assistant(self, mixed_cohort):
        analysis = run_analysis(mixed_cohort, CalibrationConfig())
        with patch("appraisal_engine.engine.get_narrative_assistant", return_value=None):
            suggestions = generate_suggestions(analysis)
        assert not suggestions.narrative_available

    def test_explicit_assistant_skips_factory(self, mixed_cohort):
        analysis = run_analysis(mixed_cohort, CalibrationConfig())
        with patch("appraisal_engine.engine.get_narrative_assistant") as factory:
            suggestions = generate_suggestions(analysis, assistant=FailingAssistant(), timeout=1.0)
        factory.assert_not_called()
        assert not suggestions.narrative_available
