"""
Session Store Tests - Appraisal Calibration Engine
tests/test_session_store.py

Versioned session storage: in-memory compare-and-swap, the Redis store
against a mocked client, and graceful fallback when Redis is down.
"""
import pytest
import redis
from unittest.mock import patch, MagicMock

from appraisal_engine.core.exceptions import SessionNotFoundException, StaleSessionError
from appraisal_engine.models import CalibrationSession, SessionStatus
from appraisal_engine.services.redis_session_store import (
    RedisSessionStore,
    get_session_store,
    reset_session_store,
)
from appraisal_engine.services.session_store import InMemorySessionStore


FROM_URL = "appraisal_engine.services.redis_session_store.redis.from_url"


class TestInMemorySessionStore:

    def test_create_and_get(self):
        store = InMemorySessionStore()
        store.create(CalibrationSession(id="sess-001"))
        loaded = store.get("sess-001")
        assert loaded.id == "sess-001"
        assert loaded.version == 0

    def test_get_missing_raises(self):
        with pytest.raises(SessionNotFoundException):
            InMemorySessionStore().get("sess-404")

    def test_compare_and_set_bumps_version(self):
        store = InMemorySessionStore()
        session = store.create(CalibrationSession(id="sess-001"))
        updated = store.compare_and_set(
            session.model_copy(update={"status": SessionStatus.SCHEDULED}), 0
        )
        assert updated.version == 1
        assert store.get("sess-001").status == SessionStatus.SCHEDULED

    def test_stale_write_rejected(self):
        store = InMemorySessionStore()
        session = store.create(CalibrationSession(id="sess-001"))
        store.compare_and_set(session, 0)
        with pytest.raises(StaleSessionError) as exc:
            store.compare_and_set(session, 0)
        assert exc.value.actual_version == 1

    def test_returned_copies_are_detached(self):
        store = InMemorySessionStore()
        store.create(CalibrationSession(id="sess-001", participants=["hrbp-001"]))
        store.get("sess-001").participants.append("intruder")
        assert store.get("sess-001").participants == ["hrbp-001"]


class TestRedisSessionStore:

    def test_get_deserializes(self):
        with patch(FROM_URL) as mock_from_url:
            mock_client = MagicMock()
            mock_from_url.return_value = mock_client
            session = CalibrationSession(id="sess-001", participants=["hrbp-001"], version=3)
            mock_client.get.return_value = session.model_dump_json()

            store = RedisSessionStore(key_prefix="calib:session")
            loaded = store.get("sess-001")

            mock_client.get.assert_called_once_with("calib:session:sess-001")
            assert loaded.version == 3
            assert loaded.participants == ["hrbp-001"]

    def test_get_miss_raises(self):
        with patch(FROM_URL) as mock_from_url:
            mock_client = MagicMock()
            mock_client.get.return_value = None
            mock_from_url.return_value = mock_client

            with pytest.raises(SessionNotFoundException):
                RedisSessionStore().get("sess-404")

    def test_create_uses_set_nx(self):
        with patch(FROM_URL) as mock_from_url:
            mock_client = MagicMock()
            mock_client.set.return_value = True
            mock_from_url.return_value = mock_client

            store = RedisSessionStore(key_prefix="calib:session", ttl_seconds=600)
            session = CalibrationSession(id="sess-001")
            store.create(session)

            mock_client.set.assert_called_once_with(
                "calib:session:sess-001",
                session.model_dump_json(),
                ex=600,
                nx=True,
            )

    def test_create_existing_raises_stale(self):
        with patch(FROM_URL) as mock_from_url:
            mock_client = MagicMock()
            mock_client.set.return_value = None
            mock_client.get.return_value = CalibrationSession(id="sess-001", version=2).model_dump_json()
            mock_from_url.return_value = mock_client

            with pytest.raises(StaleSessionError) as exc:
                RedisSessionStore().create(CalibrationSession(id="sess-001"))
            assert exc.value.actual_version == 2

    def test_compare_and_set_success(self):
        with patch(FROM_URL) as mock_from_url:
            mock_client = MagicMock()
            mock_from_url.return_value = mock_client
            pipe = mock_client.pipeline.return_value.__enter__.return_value
            pipe.get.return_value = CalibrationSession(id="sess-001", version=1).model_dump_json()

            store = RedisSessionStore(key_prefix="calib:session", ttl_seconds=600)
            updated = store.compare_and_set(
                CalibrationSession(id="sess-001", status=SessionStatus.IN_PROGRESS, version=1), 1
            )

            assert updated.version == 2
            pipe.watch.assert_called_once_with("calib:session:sess-001")
            pipe.multi.assert_called_once()
            key, ttl, payload = pipe.setex.call_args[0]
            assert key == "calib:session:sess-001"
            assert ttl == 600
            assert CalibrationSession.model_validate_json(payload).version == 2
            pipe.execute.assert_called_once()

    def test_compare_and_set_version_mismatch(self):
        with patch(FROM_URL) as mock_from_url:
            mock_client = MagicMock()
            mock_from_url.return_value = mock_client
            pipe = mock_client.pipeline.return_value.__enter__.return_value
            pipe.get.return_value = CalibrationSession(id="sess-001", version=2).model_dump_json()

            with pytest.raises(StaleSessionError) as exc:
                RedisSessionStore().compare_and_set(CalibrationSession(id="sess-001", version=1), 1)
            assert exc.value.actual_version == 2
            pipe.setex.assert_not_called()

    def test_concurrent_write_surfaces_as_stale(self):
        with patch(FROM_URL) as mock_from_url:
            mock_client = MagicMock()
            mock_from_url.return_value = mock_client
            pipe = mock_client.pipeline.return_value.__enter__.return_value
            pipe.get.return_value = CalibrationSession(id="sess-001", version=1).model_dump_json()
            pipe.execute.side_effect = redis.WatchError

            with pytest.raises(StaleSessionError):
                RedisSessionStore().compare_and_set(CalibrationSession(id="sess-001", version=1), 1)

    def test_compare_and_set_missing_session(self):
        with patch(FROM_URL) as mock_from_url:
            mock_client = MagicMock()
            mock_from_url.return_value = mock_client
            pipe = mock_client.pipeline.return_value.__enter__.return_value
            pipe.get.return_value = None

            with pytest.raises(SessionNotFoundException):
                RedisSessionStore().compare_and_set(CalibrationSession(id="sess-001"), 0)


class TestGetSessionStore:

    def setup_method(self):
        reset_session_store()

    def teardown_method(self):
        reset_session_store()

    def test_uses_redis_when_reachable(self):
        with patch(FROM_URL) as mock_from_url:
            mock_from_url.return_value = MagicMock()
            assert isinstance(get_session_store(), RedisSessionStore)

    def test_falls_back_to_memory(self):
        """Redis down should not prevent sessions from working."""
        with patch(FROM_URL) as mock_from_url:
            mock_client = MagicMock()
            mock_client.ping.side_effect = redis.ConnectionError("Connection refused")
            mock_from_url.return_value = mock_client

            store = get_session_store()
            assert isinstance(store, InMemorySessionStore)
            store.create(CalibrationSession(id="sess-001"))
            assert store.get("sess-001").id == "sess-001"

    def test_singleton(self):
        with patch(FROM_URL) as mock_from_url:
            mock_from_url.return_value = MagicMock()
            assert get_session_store() is get_session_store()
            mock_from_url.assert_called_once()
