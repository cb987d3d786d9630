"""
calibration/ — Cohort Calibration

Modules:
    analyzer.py         - Distribution, anomaly detection, health score
    suggester.py        - Category and individual suggestions, narrative enrichment
    adjustments.py      - Adjustment apply / revert with superseding records
    session_service.py  - Session status machine over a versioned store
    alignment.py        - Manager calibration alignment and differentiation
"""
