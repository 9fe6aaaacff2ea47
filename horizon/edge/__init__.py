"""Horizon edge extraction."""

from .detection import (
    EdgeDetectionAlgorithm,
    SimpleEdgeDetectionAlgorithm,
    empty_point_set,
)

__all__ = ['EdgeDetectionAlgorithm', 'SimpleEdgeDetectionAlgorithm', 'empty_point_set']
