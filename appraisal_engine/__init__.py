"""
Appraisal Calibration Engine

Performance-score normalization, weighted aggregation and cohort calibration.
"""

from appraisal_engine.engine import generate_suggestions, run_analysis, score_cohort

__version__ = "1.0.0"

__all__ = ["generate_suggestions", "run_analysis", "score_cohort"]
