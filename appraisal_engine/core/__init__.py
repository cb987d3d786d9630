"""
Core Package - Appraisal Calibration Engine
appraisal_engine/core/__init__.py

Core infrastructure: exceptions, logging.
"""

from appraisal_engine.core.exceptions import (
    EngineException,
    InvalidScaleError,
    InvalidTransitionError,
    NarrativeAssistantError,
    SessionNotFoundException,
    StaleSessionError,
    WeightSumError,
)
from appraisal_engine.core.logging import configure_logging

__all__ = [
    # Logging
    "configure_logging",
    # Exceptions
    "EngineException",
    "InvalidScaleError",
    "InvalidTransitionError",
    "NarrativeAssistantError",
    "SessionNotFoundException",
    "StaleSessionError",
    "WeightSumError",
]
