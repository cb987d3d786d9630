"""
Redis Session Store - Appraisal Calibration Engine
appraisal_engine/services/redis_session_store.py

CalibrationSession persisted as pydantic JSON under
``{SESSION_KEY_PREFIX}:{session_id}``. Compare-and-swap uses WATCH / MULTI:
a concurrent write to the key between WATCH and EXEC aborts the
transaction and surfaces as StaleSessionError.
"""
import logging
from typing import Optional

import redis

from appraisal_engine.config import settings
from appraisal_engine.core.exceptions import SessionNotFoundException, StaleSessionError
from appraisal_engine.models.calibration import CalibrationSession
from appraisal_engine.services.session_store import (
    InMemorySessionStore,
    SessionStore,
    next_version,
)

logger = logging.getLogger(__name__)


class RedisSessionStore(SessionStore):
    def __init__(
        self,
        url: Optional[str] = None,
        key_prefix: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
    ):
        self.client = redis.from_url(
            url or settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5,
        )
        self.key_prefix = key_prefix or settings.SESSION_KEY_PREFIX
        self.ttl_seconds = ttl_seconds or settings.SESSION_TTL_SECONDS

    def key(self, session_id: str) -> str:
        return f"{self.key_prefix}:{session_id}"

    def get(self, session_id: str) -> CalibrationSession:
        """Load a session and deserialize it to the pydantic model."""
        data = self.client.get(self.key(session_id))
        if not data:
            raise SessionNotFoundException(session_id)
        return CalibrationSession.model_validate_json(data)

    def create(self, session: CalibrationSession) -> CalibrationSession:
        """Store a new session; fails if the id is already taken."""
        created = self.client.set(
            self.key(session.id),
            session.model_dump_json(),
            ex=self.ttl_seconds,
            nx=True,
        )
        if not created:
            existing = self.get(session.id)
            raise StaleSessionError(session.id, session.version, existing.version)
        logger.info("Calibration session created", extra={"session_id": session.id})
        return session

    def compare_and_set(self, session: CalibrationSession, expected_version: int) -> CalibrationSession:
        key = self.key(session.id)
        with self.client.pipeline() as pipe:
            try:
                pipe.watch(key)
                data = pipe.get(key)
                if not data:
                    raise SessionNotFoundException(session.id)
                current = CalibrationSession.model_validate_json(data)
                if current.version != expected_version:
                    raise StaleSessionError(session.id, expected_version, current.version)

                updated = next_version(session, expected_version)
                pipe.multi()
                pipe.setex(key, self.ttl_seconds, updated.model_dump_json())
                pipe.execute()
            except redis.WatchError:
                logger.warning(
                    "Concurrent session write detected",
                    extra={"session_id": session.id, "expected_version": expected_version},
                )
                raise StaleSessionError(session.id, expected_version, None)

        logger.debug(
            "Calibration session written",
            extra={"session_id": session.id, "version": updated.version, "status": updated.status.value},
        )
        return updated

    def delete(self, session_id: str) -> None:
        self.client.delete(self.key(session_id))


# Singleton instance
_store: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """
    Get or create the session store.

    Returns:
        RedisSessionStore when Redis answers a ping, otherwise a process-local
        InMemorySessionStore (CAS still holds within the process).
    """
    global _store
    if _store is None:
        try:
            store = RedisSessionStore()
            store.client.ping()
            _store = store
        except (redis.RedisError, ConnectionError) as e:
            logger.warning(
                "Redis unavailable, using in-memory session store",
                extra={"error": str(e)},
            )
            _store = InMemorySessionStore()
    return _store


def reset_session_store() -> None:
    """Drop the singleton so the next call reconnects."""
    global _store
    _store = None
