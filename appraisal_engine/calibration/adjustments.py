"""
calibration/adjustments.py — Calibration Adjustment Lifecycle

    pending ──apply──► applied ──revert──► reverted

CalibrationAdjustment and OverallScoreRecord are immutable: every state
change yields a copy. Applying or reverting produces a superseding score
record whose ``supersedes`` points at the record it replaces, so the full
history per employee stays auditable.

    apply   effective score = applied_score (defaults to suggested_score)
    revert  effective score = original_score, exactly
    apply on an already-applied adjustment returns the stored result
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional
from uuid import uuid4

import structlog

from appraisal_engine.core.exceptions import InvalidTransitionError
from appraisal_engine.models.calibration import CalibrationAdjustment, CategoryThresholds
from appraisal_engine.models.enumerations import AdjustmentStatus
from appraisal_engine.models.score import OverallScoreRecord
from appraisal_engine.scoring.utils import quantize, to_decimal

logger = structlog.get_logger(__name__)


def create_adjustment(
    session_id: str,
    record: OverallScoreRecord,
    suggested_score: float,
    reason: Optional[str] = None,
) -> CalibrationAdjustment:
    """Propose a change to a scored record; the current score becomes original_score."""
    if record.overall_score is None:
        raise ValueError(f"Employee {record.employee_id} has no overall score to adjust")
    return CalibrationAdjustment(
        adjustment_id=str(uuid4()),
        session_id=session_id,
        employee_id=record.employee_id,
        original_score=record.overall_score,
        suggested_score=suggested_score,
        reason=reason,
    )


def apply_adjustment(
    adjustment: CalibrationAdjustment,
    applied_score: Optional[float] = None,
) -> CalibrationAdjustment:
    """
    Raises:
        InvalidTransitionError: the adjustment was already reverted.
    """
    if adjustment.status == AdjustmentStatus.APPLIED:
        return adjustment
    if adjustment.status != AdjustmentStatus.PENDING:
        raise InvalidTransitionError(
            "CalibrationAdjustment",
            adjustment.adjustment_id,
            adjustment.status.value,
            AdjustmentStatus.APPLIED.value,
        )
    return adjustment.model_copy(update={
        "status": AdjustmentStatus.APPLIED,
        "applied_score": adjustment.suggested_score if applied_score is None else applied_score,
        "applied_at": datetime.now(timezone.utc),
    })


def revert_adjustment(adjustment: CalibrationAdjustment) -> CalibrationAdjustment:
    """
    Raises:
        InvalidTransitionError: the adjustment is not currently applied.
    """
    if adjustment.status != AdjustmentStatus.APPLIED:
        raise InvalidTransitionError(
            "CalibrationAdjustment",
            adjustment.adjustment_id,
            adjustment.status.value,
            AdjustmentStatus.REVERTED.value,
        )
    return adjustment.model_copy(update={
        "status": AdjustmentStatus.REVERTED,
        "reverted_at": datetime.now(timezone.utc),
    })


def supersede_record(
    record: OverallScoreRecord,
    new_score: float,
    original_score: float,
    thresholds: CategoryThresholds,
) -> OverallScoreRecord:
    """Copy of ``record`` carrying a new score; the original is untouched."""
    delta = quantize(to_decimal(new_score) - to_decimal(original_score))
    return record.model_copy(update={
        "record_id": str(uuid4()),
        "overall_score": new_score,
        "category": thresholds.categorize(new_score),
        "calibration_delta": float(delta),
        "supersedes": record.record_id,
        "created_at": datetime.now(timezone.utc),
    })


@dataclass
class AdjustmentOutcome:
    adjustment: CalibrationAdjustment
    record: OverallScoreRecord


class AdjustmentLedger:
    """
    Adjustments and record history for one calibration session.

    Thread-safe; all reads and writes go through one lock.
    """

    def __init__(
        self,
        session_id: str,
        records: Iterable[OverallScoreRecord] = (),
        thresholds: Optional[CategoryThresholds] = None,
    ):
        self.session_id = session_id
        self.thresholds = thresholds or CategoryThresholds()
        self._lock = threading.Lock()
        self._adjustments: Dict[str, CalibrationAdjustment] = {}
        self._history: Dict[str, List[OverallScoreRecord]] = {}
        self._outcomes: Dict[str, OverallScoreRecord] = {}
        for record in records:
            self._history.setdefault(record.employee_id, []).append(record)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def current_record(self, employee_id: str) -> OverallScoreRecord:
        with self._lock:
            return self._current(employee_id)

    def history(self, employee_id: str) -> List[OverallScoreRecord]:
        """Every record for the employee, oldest first."""
        with self._lock:
            return list(self._history.get(employee_id, []))

    def get(self, adjustment_id: str) -> CalibrationAdjustment:
        with self._lock:
            return self._get(adjustment_id)

    @property
    def adjustments(self) -> List[CalibrationAdjustment]:
        with self._lock:
            return list(self._adjustments.values())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add_record(self, record: OverallScoreRecord) -> None:
        with self._lock:
            self._history.setdefault(record.employee_id, []).append(record)

    def propose(self, employee_id: str, suggested_score: float, reason: Optional[str] = None) -> CalibrationAdjustment:
        with self._lock:
            adjustment = create_adjustment(self.session_id, self._current(employee_id), suggested_score, reason)
            self._adjustments[adjustment.adjustment_id] = adjustment
        logger.info(
            "adjustment_proposed",
            session_id=self.session_id,
            adjustment_id=adjustment.adjustment_id,
            employee_id=employee_id,
            original_score=adjustment.original_score,
            suggested_score=suggested_score,
        )
        return adjustment

    def apply(self, adjustment_id: str, applied_score: Optional[float] = None) -> AdjustmentOutcome:
        """Idempotent: a second apply returns the first result unchanged."""
        with self._lock:
            adjustment = self._get(adjustment_id)
            if adjustment.status == AdjustmentStatus.APPLIED:
                return AdjustmentOutcome(adjustment=adjustment, record=self._outcomes[adjustment_id])

            applied = apply_adjustment(adjustment, applied_score)
            record = supersede_record(
                self._current(applied.employee_id),
                applied.applied_score,
                applied.original_score,
                self.thresholds,
            )
            self._adjustments[adjustment_id] = applied
            self._history[applied.employee_id].append(record)
            self._outcomes[adjustment_id] = record

        logger.info(
            "adjustment_applied",
            session_id=self.session_id,
            adjustment_id=adjustment_id,
            employee_id=applied.employee_id,
            delta=applied.delta,
        )
        return AdjustmentOutcome(adjustment=applied, record=record)

    def revert(self, adjustment_id: str) -> AdjustmentOutcome:
        """Restore the adjustment's original_score through a new record."""
        with self._lock:
            reverted = revert_adjustment(self._get(adjustment_id))
            record = supersede_record(
                self._current(reverted.employee_id),
                reverted.original_score,
                reverted.original_score,
                self.thresholds,
            )
            self._adjustments[adjustment_id] = reverted
            self._history[reverted.employee_id].append(record)
            self._outcomes[adjustment_id] = record

        logger.info(
            "adjustment_reverted",
            session_id=self.session_id,
            adjustment_id=adjustment_id,
            employee_id=reverted.employee_id,
        )
        return AdjustmentOutcome(adjustment=reverted, record=record)

    # ------------------------------------------------------------------
    # Helpers (caller holds the lock)
    # ------------------------------------------------------------------

    def _current(self, employee_id: str) -> OverallScoreRecord:
        records = self._history.get(employee_id)
        if not records:
            raise KeyError(f"No score record for employee {employee_id}")
        return records[-1]

    def _get(self, adjustment_id: str) -> CalibrationAdjustment:
        try:
            return self._adjustments[adjustment_id]
        except KeyError:
            raise KeyError(f"Unknown adjustment {adjustment_id}") from None
