"""
Services Package - Appraisal Calibration Engine

External collaborators at their interface boundary: session storage and the
optional narrative assistant.
"""

from appraisal_engine.services.narrative_client import (
    HttpNarrativeAssistant,
    NarrativeAssistant,
    get_narrative_assistant,
)
from appraisal_engine.services.redis_session_store import (
    RedisSessionStore,
    get_session_store,
    reset_session_store,
)
from appraisal_engine.services.session_store import InMemorySessionStore, SessionStore

__all__ = [
    "HttpNarrativeAssistant",
    "NarrativeAssistant",
    "get_narrative_assistant",
    "RedisSessionStore",
    "get_session_store",
    "reset_session_store",
    "InMemorySessionStore",
    "SessionStore",
]
