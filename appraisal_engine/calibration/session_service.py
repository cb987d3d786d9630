"""
calibration/session_service.py — Calibration Session Lifecycle

    pending ──► scheduled ──► in_progress ──► completed
       │            │              │
       └────────────┴──────────────┴────────► cancelled

Sessions never move backward; completed and cancelled are terminal.
Every write names the version the caller read. The store bumps it on
success; a losing writer gets StaleSessionError and must re-read.
Adjustments may only be applied or reverted while the session is
in_progress.
"""

import threading
from typing import Dict, Iterable, List, Optional

import structlog

from appraisal_engine.calibration.adjustments import AdjustmentLedger, AdjustmentOutcome
from appraisal_engine.core.exceptions import InvalidTransitionError, StaleSessionError
from appraisal_engine.models.calibration import (
    CalibrationAdjustment,
    CalibrationSession,
    CategoryThresholds,
    TargetDistribution,
)
from appraisal_engine.models.enumerations import SessionStatus
from appraisal_engine.models.score import OverallScoreRecord
from appraisal_engine.services.redis_session_store import get_session_store
from appraisal_engine.services.session_store import SessionStore

logger = structlog.get_logger(__name__)

ALLOWED_TRANSITIONS: Dict[SessionStatus, frozenset] = {
    SessionStatus.PENDING: frozenset({SessionStatus.SCHEDULED, SessionStatus.CANCELLED}),
    SessionStatus.SCHEDULED: frozenset({SessionStatus.IN_PROGRESS, SessionStatus.CANCELLED}),
    SessionStatus.IN_PROGRESS: frozenset({SessionStatus.COMPLETED, SessionStatus.CANCELLED}),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.CANCELLED: frozenset(),
}


def can_transition(current: SessionStatus, requested: SessionStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS[current]


class CalibrationSessionService:
    """
    Session status machine and per-session adjustment ledgers.

    Without an explicit ``store`` the shared store from get_session_store()
    is used: Redis at REDIS_URL when reachable, else in-process memory.
    """

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        thresholds: Optional[CategoryThresholds] = None,
    ):
        self.store = store if store is not None else get_session_store()
        self.thresholds = thresholds or CategoryThresholds()
        self._ledgers: Dict[str, AdjustmentLedger] = {}
        self._ledgers_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(
        self,
        session_id: str,
        target_distribution: Optional[TargetDistribution] = None,
        participants: Optional[List[str]] = None,
    ) -> CalibrationSession:
        session = CalibrationSession(
            id=session_id,
            target_distribution=target_distribution,
            participants=list(participants or []),
        )
        created = self.store.create(session)
        logger.info("session_created", session_id=session_id, participants=len(session.participants))
        return created

    def get_session(self, session_id: str) -> CalibrationSession:
        return self.store.get(session_id)

    def transition(
        self,
        session_id: str,
        requested: SessionStatus,
        expected_version: int,
    ) -> CalibrationSession:
        """
        Move a session to ``requested`` if allowed and the version matches.

        Raises:
            InvalidTransitionError: the move is not in the status machine.
            StaleSessionError: another writer updated the session first.
            SessionNotFoundException: unknown session id.
        """
        current = self.store.get(session_id)
        self._check_version(current, expected_version)
        if not can_transition(current.status, requested):
            raise InvalidTransitionError(
                "CalibrationSession", session_id, current.status.value, requested.value
            )

        updated = self.store.compare_and_set(
            current.model_copy(update={"status": requested}),
            expected_version,
        )
        logger.info(
            "session_transitioned",
            session_id=session_id,
            from_status=current.status.value,
            to_status=requested.value,
            version=updated.version,
        )
        return updated

    def schedule(self, session_id: str, expected_version: int) -> CalibrationSession:
        return self.transition(session_id, SessionStatus.SCHEDULED, expected_version)

    def start(self, session_id: str, expected_version: int) -> CalibrationSession:
        return self.transition(session_id, SessionStatus.IN_PROGRESS, expected_version)

    def complete(self, session_id: str, expected_version: int) -> CalibrationSession:
        return self.transition(session_id, SessionStatus.COMPLETED, expected_version)

    def cancel(self, session_id: str, expected_version: int) -> CalibrationSession:
        return self.transition(session_id, SessionStatus.CANCELLED, expected_version)

    def add_participant(self, session_id: str, participant_id: str, expected_version: int) -> CalibrationSession:
        """Add a facilitator or reviewer; a no-op write if already present."""
        current = self.store.get(session_id)
        self._check_version(current, expected_version)
        if current.is_terminal:
            raise InvalidTransitionError(
                "CalibrationSession", session_id, current.status.value, "add_participant"
            )
        participants = list(current.participants)
        if participant_id not in participants:
            participants.append(participant_id)
        return self.store.compare_and_set(
            current.model_copy(update={"participants": participants}),
            expected_version,
        )

    # ------------------------------------------------------------------
    # Adjustments
    # ------------------------------------------------------------------

    def ledger(self, session_id: str) -> AdjustmentLedger:
        self.store.get(session_id)
        with self._ledgers_lock:
            if session_id not in self._ledgers:
                self._ledgers[session_id] = AdjustmentLedger(session_id, thresholds=self.thresholds)
            return self._ledgers[session_id]

    def load_records(self, session_id: str, records: Iterable[OverallScoreRecord]) -> None:
        ledger = self.ledger(session_id)
        for record in records:
            ledger.add_record(record)

    def propose_adjustment(
        self,
        session_id: str,
        employee_id: str,
        suggested_score: float,
        reason: Optional[str] = None,
    ) -> CalibrationAdjustment:
        self._require_in_progress(session_id, "propose_adjustment")
        return self.ledger(session_id).propose(employee_id, suggested_score, reason)

    def apply_adjustment(
        self,
        session_id: str,
        adjustment_id: str,
        applied_score: Optional[float] = None,
    ) -> AdjustmentOutcome:
        self._require_in_progress(session_id, "apply_adjustment")
        return self.ledger(session_id).apply(adjustment_id, applied_score)

    def revert_adjustment(self, session_id: str, adjustment_id: str) -> AdjustmentOutcome:
        self._require_in_progress(session_id, "revert_adjustment")
        return self.ledger(session_id).revert(adjustment_id)

    def _check_version(self, session: CalibrationSession, expected_version: int) -> None:
        if session.version != expected_version:
            raise StaleSessionError(session.id, expected_version, session.version)

    def _require_in_progress(self, session_id: str, action: str) -> None:
        session = self.store.get(session_id)
        if session.status != SessionStatus.IN_PROGRESS:
            raise InvalidTransitionError(
                "CalibrationSession", session_id, session.status.value, action
            )
