"""
Validation Framework for the Horizon Distance Pipeline

Accuracy analysis of measurement results.

Modules:
    metrics: Distance error statistics, threshold checks and grading
    reporting: Report generation (the pipeline's analysis stage)
"""

__version__ = "1.0.0"

from .metrics import (
    ValidationThresholds,
    accuracy_grade,
    check_thresholds,
    distance_error_statistics,
)

__all__ = [
    'ValidationThresholds',
    'accuracy_grade',
    'check_thresholds',
    'distance_error_statistics',
]
