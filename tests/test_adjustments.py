"""
Calibration Adjustment Tests - Appraisal Calibration Engine
tests/test_adjustments.py

Apply / revert lifecycle, idempotency and superseding score records.
"""
import threading

import pytest
from pydantic import ValidationError

from appraisal_engine.calibration.adjustments import (
    AdjustmentLedger,
    apply_adjustment,
    create_adjustment,
    revert_adjustment,
)
from appraisal_engine.core.exceptions import InvalidTransitionError
from appraisal_engine.models import AdjustmentStatus, PerformanceCategory


@pytest.fixture
def ledger(make_record):
    return AdjustmentLedger(
        "sess-001",
        records=[
            make_record("emp-001", 2.0, self_rating=5, manager_rating=2),
            make_record("emp-002", 4.8),
        ],
    )


class TestAdjustmentTransitions:

    def test_create_captures_original_score(self, make_record):
        adjustment = create_adjustment("sess-001", make_record("emp-001", 2.0), 3.5, reason="gap")
        assert adjustment.original_score == 2.0
        assert adjustment.suggested_score == 3.5
        assert adjustment.status == AdjustmentStatus.PENDING
        assert adjustment.delta is None

    def test_create_without_score_raises(self, make_record):
        with pytest.raises(ValueError):
            create_adjustment("sess-001", make_record("emp-001", None), 3.0)

    def test_apply_defaults_to_suggested(self, make_record):
        applied = apply_adjustment(create_adjustment("sess-001", make_record("emp-001", 2.0), 3.5))
        assert applied.status == AdjustmentStatus.APPLIED
        assert applied.applied_score == 3.5
        assert applied.delta == 1.5
        assert applied.applied_at is not None

    def test_apply_is_idempotent(self, make_record):
        applied = apply_adjustment(create_adjustment("sess-001", make_record("emp-001", 2.0), 3.5))
        assert apply_adjustment(applied, 4.0) is applied

    def test_revert_requires_applied(self, make_record):
        pending = create_adjustment("sess-001", make_record("emp-001", 2.0), 3.5)
        with pytest.raises(InvalidTransitionError):
            revert_adjustment(pending)

    def test_reverted_cannot_be_reapplied(self, make_record):
        reverted = revert_adjustment(apply_adjustment(create_adjustment("sess-001", make_record("emp-001", 2.0), 3.5)))
        assert reverted.status == AdjustmentStatus.REVERTED
        assert reverted.original_score == 2.0
        with pytest.raises(InvalidTransitionError):
            apply_adjustment(reverted)

    def test_adjustments_are_frozen(self, make_record):
        adjustment = create_adjustment("sess-001", make_record("emp-001", 2.0), 3.5)
        with pytest.raises(ValidationError):
            adjustment.original_score = 9.0


class TestAdjustmentLedger:

    def test_apply_supersedes_record(self, ledger):
        original = ledger.current_record("emp-001")
        adjustment = ledger.propose("emp-001", 3.5, reason="Self/manager gap")
        outcome = ledger.apply(adjustment.adjustment_id)

        assert outcome.record.overall_score == 3.5
        assert outcome.record.category == PerformanceCategory.EXCEEDS
        assert outcome.record.calibration_delta == 1.5
        assert outcome.record.supersedes == original.record_id
        assert original.overall_score == 2.0
        assert [r.overall_score for r in ledger.history("emp-001")] == [2.0, 3.5]

    def test_reapply_returns_existing_result(self, ledger):
        adjustment = ledger.propose("emp-001", 3.5)
        first = ledger.apply(adjustment.adjustment_id)
        second = ledger.apply(adjustment.adjustment_id, applied_score=4.5)

        assert second.adjustment == first.adjustment
        assert second.record.record_id == first.record.record_id
        assert len(ledger.history("emp-001")) == 2

    def test_revert_restores_original_exactly(self, ledger):
        adjustment = ledger.propose("emp-002", 3.8)
        ledger.apply(adjustment.adjustment_id, applied_score=4.1)
        outcome = ledger.revert(adjustment.adjustment_id)

        assert outcome.record.overall_score == 4.8
        assert outcome.record.calibration_delta == 0.0
        assert ledger.current_record("emp-002").overall_score == 4.8
        assert len(ledger.history("emp-002")) == 3

    def test_unknown_employee_or_adjustment(self, ledger):
        with pytest.raises(KeyError):
            ledger.propose("emp-999", 3.0)
        with pytest.raises(KeyError):
            ledger.apply("missing")

    def test_concurrent_apply_counts_once(self, ledger):
        adjustment = ledger.propose("emp-001", 3.5)
        results = []

        def worker():
            results.append(ledger.apply(adjustment.adjustment_id))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len({r.record.record_id for r in results}) == 1
        assert len(ledger.history("emp-001")) == 2
        assert ledger.adjustments[0].status == AdjustmentStatus.APPLIED
