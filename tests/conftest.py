# tests/conftest.py

"""
Pytest Fixtures - Shared scales, templates and cohort builders

ID REFERENCE:
- Cycle:      cyc-2026-h1
- Template:   tpl-standard (single goals component, manager entered, weight 100)
- Employees:  emp-001 ... ; managers mgr-001 ...
"""

import pytest

from appraisal_engine.models import (
    AppraisalTemplate,
    CohortSnapshot,
    ComponentRating,
    ComponentType,
    EmployeeAppraisal,
    FIVE_POINT_SCALE,
    ManagerEntered,
    OverallScoreRecord,
    RatingScale,
    RawRating,
    SourceType,
    TemplateComponent,
)
from appraisal_engine.models.calibration import CategoryThresholds


CYCLE_ID = "cyc-2026-h1"


# =============================================================================
# SCALE FIXTURES
# =============================================================================

@pytest.fixture
def five_point():
    """Canonical 1–5 scale in half steps."""
    return RatingScale(min_value=1, max_value=5, step=0.5)


@pytest.fixture
def seven_point():
    """Continuous 1–7 scale."""
    return RatingScale(min_value=1, max_value=7)


@pytest.fixture
def percent_scale():
    return RatingScale(min_value=0, max_value=100)


# =============================================================================
# TEMPLATE & COHORT FIXTURES
# =============================================================================

@pytest.fixture
def standard_template():
    """One goals component carrying the full weight; manager rating verbatim."""
    return AppraisalTemplate(
        template_id="tpl-standard",
        components=[
            TemplateComponent(
                component_type=ComponentType.GOALS,
                weight_percent=100,
                calculation=ManagerEntered(),
            ),
        ],
    )


@pytest.fixture
def make_employee():
    """Factory: employee with optional self / manager goal ratings on 1–5."""

    def _make(employee_id, self_rating=None, manager_rating=None, justification=None,
              manager_id="mgr-001", scale=FIVE_POINT_SCALE):
        ratings = []
        if self_rating is not None:
            ratings.append(RawRating(value=self_rating, scale=scale, source_type=SourceType.SELF))
        if manager_rating is not None:
            ratings.append(RawRating(value=manager_rating, scale=scale, source_type=SourceType.MANAGER))
        return EmployeeAppraisal(
            employee_id=employee_id,
            manager_id=manager_id,
            ratings=[ComponentRating(component_type=ComponentType.GOALS, ratings=ratings)],
            justification=justification,
        )

    return _make


@pytest.fixture
def make_snapshot(standard_template):
    """Factory: cohort snapshot over the standard template."""

    def _make(employees, template=None):
        return CohortSnapshot(
            cycle_id=CYCLE_ID,
            template=template or standard_template,
            employees=list(employees),
        )

    return _make


@pytest.fixture
def make_record():
    """Factory: pre-scored OverallScoreRecord with its category derived."""
    thresholds = CategoryThresholds()

    def _make(employee_id, score, self_rating=None, manager_rating=None,
              has_justification=False, manager_id="mgr-001"):
        return OverallScoreRecord(
            record_id=f"{CYCLE_ID}:{employee_id}",
            employee_id=employee_id,
            cycle_id=CYCLE_ID,
            manager_id=manager_id,
            overall_score=score,
            category=thresholds.categorize(score),
            self_rating=self_rating,
            manager_rating=manager_rating,
            has_justification=has_justification,
        )

    return _make


@pytest.fixture
def mixed_cohort(make_employee, make_snapshot):
    """Five employees: one large gap, one unjustified extreme, three steady."""
    return make_snapshot([
        make_employee("emp-001", self_rating=5, manager_rating=2),
        make_employee("emp-002", self_rating=5, manager_rating=5),
        make_employee("emp-003", self_rating=3, manager_rating=3),
        make_employee("emp-004", self_rating=4, manager_rating=3.5),
        make_employee("emp-005", self_rating=3, manager_rating=3, justification="Steady year"),
    ])
