"""
Calibration Session Store - Appraisal Calibration Engine
appraisal_engine/services/session_store.py

Versioned storage for CalibrationSession. Every write is a compare-and-swap
on ``version``: the caller passes the version it read, the store bumps it by
one on success and raises StaleSessionError when another writer got there
first.
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Dict

from appraisal_engine.core.exceptions import SessionNotFoundException, StaleSessionError
from appraisal_engine.models.calibration import CalibrationSession

logger = logging.getLogger(__name__)


class SessionStore:
    """Interface for versioned calibration session storage."""

    def get(self, session_id: str) -> CalibrationSession:
        raise NotImplementedError

    def create(self, session: CalibrationSession) -> CalibrationSession:
        raise NotImplementedError

    def compare_and_set(self, session: CalibrationSession, expected_version: int) -> CalibrationSession:
        """
        Persist ``session`` if the stored version still equals expected_version.

        Returns:
            The stored session with version = expected_version + 1.

        Raises:
            SessionNotFoundException: no session with that id.
            StaleSessionError: the stored version has moved on.
        """
        raise NotImplementedError


def next_version(session: CalibrationSession, expected_version: int) -> CalibrationSession:
    return session.model_copy(update={
        "version": expected_version + 1,
        "updated_at": datetime.now(timezone.utc),
    })


class InMemorySessionStore(SessionStore):
    """Process-local store; a single lock serialises check-and-write."""

    def __init__(self):
        self._sessions: Dict[str, CalibrationSession] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> CalibrationSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundException(session_id)
        return session.model_copy(deep=True)

    def create(self, session: CalibrationSession) -> CalibrationSession:
        with self._lock:
            existing = self._sessions.get(session.id)
            if existing is not None:
                raise StaleSessionError(session.id, session.version, existing.version)
            self._sessions[session.id] = session.model_copy(deep=True)
        logger.info("Calibration session created", extra={"session_id": session.id})
        return session

    def compare_and_set(self, session: CalibrationSession, expected_version: int) -> CalibrationSession:
        with self._lock:
            current = self._sessions.get(session.id)
            if current is None:
                raise SessionNotFoundException(session.id)
            if current.version != expected_version:
                raise StaleSessionError(session.id, expected_version, current.version)
            updated = next_version(session, expected_version)
            self._sessions[session.id] = updated.model_copy(deep=True)

        logger.debug(
            "Calibration session written",
            extra={"session_id": session.id, "version": updated.version, "status": updated.status.value},
        )
        return updated
