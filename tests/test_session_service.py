"""
Calibration Session Tests - Appraisal Calibration Engine
tests/test_session_service.py

Status machine, optimistic concurrency and in-progress-only adjustments.
"""
import threading
from unittest.mock import patch

import pytest

from appraisal_engine.calibration.session_service import (
    CalibrationSessionService,
    can_transition,
)
from appraisal_engine.core.exceptions import (
    InvalidTransitionError,
    SessionNotFoundException,
    StaleSessionError,
)
from appraisal_engine.models import PerformanceCategory, SessionStatus
from appraisal_engine.services.session_store import InMemorySessionStore


@pytest.fixture
def service():
    return CalibrationSessionService(store=InMemorySessionStore())


@pytest.fixture
def live_session(service, make_record):
    """Session moved to in_progress with two scored employees loaded."""
    service.create_session("sess-001", participants=["hrbp-001"])
    service.schedule("sess-001", expected_version=0)
    service.start("sess-001", expected_version=1)
    service.load_records("sess-001", [
        make_record("emp-001", 2.0, self_rating=5, manager_rating=2),
        make_record("emp-002", 3.0),
    ])
    return service


class TestStoreSelection:

    def test_default_store_comes_from_factory(self):
        shared = InMemorySessionStore()
        with patch(
            "appraisal_engine.calibration.session_service.get_session_store",
            return_value=shared,
        ) as factory:
            service = CalibrationSessionService()
        factory.assert_called_once_with()
        assert service.store is shared

    def test_explicit_store_skips_factory(self):
        store = InMemorySessionStore()
        with patch("appraisal_engine.calibration.session_service.get_session_store") as factory:
            service = CalibrationSessionService(store=store)
        factory.assert_not_called()
        assert service.store is store


class TestStatusMachine:

    @pytest.mark.parametrize("current,requested,allowed", [
        (SessionStatus.PENDING, SessionStatus.SCHEDULED, True),
        (SessionStatus.SCHEDULED, SessionStatus.IN_PROGRESS, True),
        (SessionStatus.IN_PROGRESS, SessionStatus.COMPLETED, True),
        (SessionStatus.PENDING, SessionStatus.CANCELLED, True),
        (SessionStatus.IN_PROGRESS, SessionStatus.CANCELLED, True),
        (SessionStatus.IN_PROGRESS, SessionStatus.SCHEDULED, False),
        (SessionStatus.PENDING, SessionStatus.COMPLETED, False),
        (SessionStatus.COMPLETED, SessionStatus.CANCELLED, False),
        (SessionStatus.CANCELLED, SessionStatus.PENDING, False),
    ])
    def test_transition_table(self, current, requested, allowed):
        assert can_transition(current, requested) is allowed

    def test_full_lifecycle_bumps_version(self, service):
        created = service.create_session("sess-001", target_distribution={PerformanceCategory.MEETS: 100})
        assert created.status == SessionStatus.PENDING
        assert created.version == 0

        scheduled = service.schedule("sess-001", expected_version=0)
        started = service.start("sess-001", expected_version=scheduled.version)
        completed = service.complete("sess-001", expected_version=started.version)

        assert completed.status == SessionStatus.COMPLETED
        assert completed.version == 3
        assert service.get_session("sess-001").version == 3

    def test_backward_move_rejected(self, live_session):
        with pytest.raises(InvalidTransitionError) as exc:
            live_session.schedule("sess-001", expected_version=2)
        assert exc.value.current == "in_progress"
        assert exc.value.requested == "scheduled"

    def test_terminal_states_stay_terminal(self, service):
        service.create_session("sess-001")
        service.cancel("sess-001", expected_version=0)
        with pytest.raises(InvalidTransitionError):
            service.schedule("sess-001", expected_version=1)

    def test_unknown_session(self, service):
        with pytest.raises(SessionNotFoundException):
            service.get_session("nope")

    def test_duplicate_create_rejected(self, service):
        service.create_session("sess-001")
        with pytest.raises(StaleSessionError):
            service.create_session("sess-001")


class TestOptimisticConcurrency:

    def test_stale_version_rejected(self, service):
        service.create_session("sess-001")
        service.schedule("sess-001", expected_version=0)
        with pytest.raises(StaleSessionError) as exc:
            service.schedule("sess-001", expected_version=0)
        assert exc.value.expected_version == 0
        assert exc.value.actual_version == 1

    def test_only_one_concurrent_writer_wins(self, service):
        service.create_session("sess-001")
        outcomes = []
        barrier = threading.Barrier(8)

        def facilitator():
            barrier.wait()
            try:
                service.schedule("sess-001", expected_version=0)
                outcomes.append("ok")
            except StaleSessionError:
                outcomes.append("stale")

        threads = [threading.Thread(target=facilitator) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("ok") == 1
        assert outcomes.count("stale") == 7
        assert service.get_session("sess-001").version == 1

    def test_add_participant(self, service):
        service.create_session("sess-001", participants=["hrbp-001"])
        updated = service.add_participant("sess-001", "mgr-002", expected_version=0)
        assert updated.participants == ["hrbp-001", "mgr-002"]
        assert updated.version == 1
        with pytest.raises(StaleSessionError):
            service.add_participant("sess-001", "mgr-003", expected_version=0)


class TestSessionAdjustments:

    def test_apply_and_revert_in_session(self, live_session):
        adjustment = live_session.propose_adjustment("sess-001", "emp-001", 3.5, reason="gap")
        applied = live_session.apply_adjustment("sess-001", adjustment.adjustment_id)
        assert applied.record.overall_score == 3.5

        reverted = live_session.revert_adjustment("sess-001", adjustment.adjustment_id)
        assert reverted.record.overall_score == 2.0
        assert live_session.ledger("sess-001").current_record("emp-001").overall_score == 2.0

    def test_adjustments_require_in_progress(self, service, make_record):
        service.create_session("sess-002")
        service.load_records("sess-002", [make_record("emp-001", 2.0)])
        with pytest.raises(InvalidTransitionError):
            service.propose_adjustment("sess-002", "emp-001", 3.0)

    def test_completed_session_is_read_only(self, live_session):
        adjustment = live_session.propose_adjustment("sess-001", "emp-002", 3.5)
        live_session.complete("sess-001", expected_version=2)
        with pytest.raises(InvalidTransitionError):
            live_session.apply_adjustment("sess-001", adjustment.adjustment_id)
