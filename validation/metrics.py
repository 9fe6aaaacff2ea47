#!/usr/bin/env python3
"""
validation/metrics.py - Distance Accuracy Metrics

Aggregate metrics over one or more measurement result records:
- Run success rate
- Absolute and relative distance error statistics
- Threshold checks and a letter grade for reports

Usage:
    from validation.metrics import distance_error_statistics, check_thresholds

    stats = distance_error_statistics(records)
    checks = check_thresholds(stats, ValidationThresholds(max_error_percent=5.0))
"""

import numpy as np
import logging
from typing import List, Dict, Any, Sequence
from dataclasses import dataclass

from horizon.core.results import ResultRecord

logger = logging.getLogger(__name__)

# Grade boundaries on the mean relative error, percent
GRADE_BOUNDARIES = (
    ('A', 0.5),
    ('B', 1.0),
    ('C', 2.0),
    ('D', 5.0),
)


@dataclass
class ValidationThresholds:
    """Pass/fail limits for a batch of runs."""
    max_error_percent: float = 5.0
    min_success_rate: float = 1.0


def _summary(values: np.ndarray) -> Dict[str, float]:
    if values.size == 0:
        nan = float('nan')
        return {'mean': nan, 'std': nan, 'min': nan, 'max': nan, 'rms': nan}
    return {
        'mean': float(np.mean(values)),
        'std': float(np.std(values)),
        'min': float(np.min(values)),
        'max': float(np.max(values)),
        'rms': float(np.sqrt(np.mean(values ** 2))),
    }


def distance_error_statistics(records: Sequence[ResultRecord]) -> Dict[str, Any]:
    """
    Summarize the accuracy of a set of measurement runs.

    Parameters
    ----------
    records : Sequence[ResultRecord]
        Result records, successful or not

    Returns
    -------
    Dict[str, Any]
        Counts, success rate, and summaries of error_m, error_percent and
        num_edges over the successful runs

    Notes
    -----
    Failed runs only contribute to the counts and the success rate.
    """
    successful = [r for r in records if r.success]
    n_runs = len(records)

    stats = {
        'n_runs': n_runs,
        'n_successful': len(successful),
        'n_failed': n_runs - len(successful),
        'success_rate': len(successful) / n_runs if n_runs else 0.0,
        'error_m': _summary(np.array([r.error_m for r in successful], dtype=float)),
        'error_percent': _summary(np.array([r.error_percent for r in successful], dtype=float)),
        'num_edges': _summary(np.array([r.num_edges for r in successful], dtype=float)),
        'failure_messages': [r.error_message for r in records if not r.success],
    }

    logger.debug(f"Accuracy statistics over {n_runs} runs: success_rate={stats['success_rate']:.2f}")
    return stats


def accuracy_grade(mean_error_percent: float) -> str:
    """Letter grade for a mean relative error (F when above every boundary or undefined)."""
    if mean_error_percent is None or np.isnan(mean_error_percent):
        return 'F'
    for grade, limit in GRADE_BOUNDARIES:
        if mean_error_percent <= limit:
            return grade
    return 'F'


def check_thresholds(stats: Dict[str, Any], thresholds: ValidationThresholds) -> Dict[str, Any]:
    """Check batch statistics against validation thresholds."""
    max_error = stats['error_percent']['max']
    error_passed = bool(stats['n_successful'] > 0 and max_error <= thresholds.max_error_percent)
    rate_passed = bool(stats['success_rate'] >= thresholds.min_success_rate)

    return {
        'error_percent': {
            'threshold': thresholds.max_error_percent,
            'measured_value': max_error,
            'passed': error_passed,
        },
        'success_rate': {
            'threshold': thresholds.min_success_rate,
            'measured_value': stats['success_rate'],
            'passed': rate_passed,
        },
        'overall_pass': error_passed and rate_passed,
    }


def records_to_rows(records: Sequence[ResultRecord], sources: Sequence[str]) -> List[Dict[str, Any]]:
    """Flatten records into table rows, one per run."""
    rows = []
    for source, record in zip(sources, records):
        row = {'source': source, 'success': record.success, 'error': record.error_message}
        for name in ('num_edges', 'distance_m', 'altitude_m', 'ground_truth_m', 'error_m', 'error_percent'):
            value = getattr(record, name) if record.success else None
            row[name] = value if value is not None else float('nan')
        rows.append(row)
    return rows
