"""
Custom Exceptions - Appraisal Calibration Engine
appraisal_engine/core/exceptions.py

Custom exception classes for scoring configuration and calibration sessions.
"""

from decimal import Decimal
from typing import Optional


class EngineException(Exception):
    """Base exception for the scoring and calibration engine."""

    pass


class InvalidScaleError(EngineException):
    """Rating scale bounds are malformed (configuration defect)."""

    def __init__(self, message: str, scale: Optional[object] = None):
        self.scale = scale
        self.message = message
        super().__init__(message)


class WeightSumError(EngineException):
    """Component weights do not sum to 100."""

    def __init__(self, total: Decimal, message: Optional[str] = None):
        self.total = total
        if message is None:
            message = f"Weights must sum to 100% (currently {format_percent(total)}%)"
        self.message = message
        super().__init__(message)


class StaleSessionError(EngineException):
    """Optimistic-concurrency conflict on a calibration session write."""

    def __init__(self, session_id: str, expected_version: int, actual_version: Optional[int]):
        self.session_id = session_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Calibration session {session_id} is stale: expected version "
            f"{expected_version}, found {actual_version}"
        )


class InvalidTransitionError(EngineException):
    """Requested status transition is not allowed."""

    def __init__(self, entity_type: str, entity_id: str, current: str, requested: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"{entity_type} {entity_id} cannot move from '{current}' to '{requested}'"
        )


class SessionNotFoundException(EngineException):
    """Calibration session not found in the store."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"CalibrationSession with ID {session_id} not found")


class NarrativeAssistantError(EngineException):
    """Narrative assistant call failed or returned an unusable payload."""

    def __init__(self, message: str = "Narrative assistant unavailable"):
        self.message = message
        super().__init__(message)


def format_percent(value) -> str:
    """Render a percentage without trailing zeros (90 -> '90', 82.50 -> '82.5')."""
    d = Decimal(str(value))
    if d == d.to_integral_value():
        return str(d.quantize(Decimal("1")))
    return format(d.normalize(), "f")
