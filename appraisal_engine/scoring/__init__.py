"""
scoring/ — Normalization & Aggregation

Modules:
    utils.py              - Decimal utilities
    scale_normalizer.py   - Scale conversion and custom mapping interpolation
    milestone_progress.py - Milestone completion roll-up
    weight_validator.py   - Weight allocation status and validation
    score_aggregator.py   - Per-component final score, goal roll-up, overall score
    performance_index.py  - Per-employee pipeline → OverallScoreRecord
"""
