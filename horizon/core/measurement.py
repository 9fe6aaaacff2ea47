#!/usr/bin/env python3
"""
measurement.py - Horizon distance measurement engine

Runs one measurement: image → horizon points → position → accuracy metrics,
producing exactly one ResultRecord. The edge detector and the distance solver
are injected, so either can be replaced by an alternative algorithm or a test
stub without touching the state machine.

States:
    START → IMAGE_LOADED → EDGES_EXTRACTED → POSITION_SOLVED
          → METRICS_COMPUTED → DONE_SUCCESS
with an early exit to DONE_FAILURE from any state.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

import numpy as np

from .camera_model import (
    CameraModel,
    PositionEstimate,
    EARTH_RADIUS_M,
    DEFAULT_FOCAL_LENGTH_M,
    DEFAULT_PIXEL_SIZE_M,
)
from .errors import ConfigurationError, ImageLoadError, SolverError
from .image_io import check_image_readable, decoded_image
from .results import ResultRecord, write_result_json

logger = logging.getLogger(__name__)

DEFAULT_RESULT_PATH = "result.json"


class RunState(Enum):
    START = "start"
    IMAGE_LOADED = "image_loaded"
    EDGES_EXTRACTED = "edges_extracted"
    POSITION_SOLVED = "position_solved"
    METRICS_COMPUTED = "metrics_computed"
    DONE_SUCCESS = "done_success"
    DONE_FAILURE = "done_failure"


@dataclass(frozen=True)
class RunConfiguration:
    """Inputs of one measurement run. Validated on construction."""
    image_path: str
    ground_truth_m: float
    focal_length: float = DEFAULT_FOCAL_LENGTH_M
    pixel_size: float = DEFAULT_PIXEL_SIZE_M
    output_path: str = DEFAULT_RESULT_PATH

    def __post_init__(self):
        if not self.image_path:
            raise ConfigurationError("An image path is required", option="image")
        if self.ground_truth_m is None:
            raise ConfigurationError("A ground truth distance is required", option="ground-truth")
        if not np.isfinite(self.ground_truth_m) or self.ground_truth_m <= 0:
            raise ConfigurationError(
                f"Ground truth must be a positive distance in metres, got {self.ground_truth_m}",
                option="ground-truth",
            )
        if not np.isfinite(self.focal_length) or self.focal_length <= 0:
            raise ConfigurationError(
                f"Focal length must be positive, got {self.focal_length}", option="focal-length"
            )
        if not np.isfinite(self.pixel_size) or self.pixel_size <= 0:
            raise ConfigurationError(
                f"Pixel size must be positive, got {self.pixel_size}", option="pixel-size"
            )
        if not self.output_path:
            raise ConfigurationError("An output path is required", option="output")


def as_point_set(points) -> np.ndarray:
    """
    Validate a detector result as an (N, 2) array of finite pixel coordinates.

    Raises:
        ValueError: If the shape or the values are not a point set
    """
    points = np.asarray(points, dtype=float)
    if points.size == 0:
        return points.reshape(0, 2)
    if points.ndim != 2 or points.shape[1] != 2:
        raise ValueError(f"expected an (N, 2) point array, got shape {points.shape}")
    if not np.all(np.isfinite(points)):
        raise ValueError("point coordinates must be finite")
    return points


def compute_distance_metrics(
    position: PositionEstimate, ground_truth_m: float, reference_radius: float = EARTH_RADIUS_M
) -> Dict[str, float]:
    """
    Accuracy metrics of a position estimate.

    Args:
        position: Solved spacecraft-to-center vector
        ground_truth_m: True distance to the body center (> 0)
        reference_radius: Body radius used for altitude

    Returns:
        Dict with distance_m, altitude_m, error_m, error_percent
    """
    if ground_truth_m <= 0:
        raise ValueError(f"ground_truth_m must be positive, got {ground_truth_m}")
    distance_m = position.norm()
    if not np.isfinite(distance_m):
        raise ValueError(f"Position must be finite, got {position}")
    error_m = abs(distance_m - ground_truth_m)
    return {
        'distance_m': distance_m,
        'altitude_m': distance_m - reference_radius,
        'error_m': error_m,
        'error_percent': (error_m / ground_truth_m) * 100.0,
    }


class MeasurementEngine:
    """Horizon-based distance measurement for a single image."""

    def __init__(self, config: RunConfiguration, edge_detector=None, solver=None,
                 reference_radius: float = EARTH_RADIUS_M):
        """
        Initialize the measurement engine.

        Args:
            config: Validated run configuration
            edge_detector: Object with run(image) -> points (default: SimpleEdgeDetectionAlgorithm)
            solver: Object with run(points, camera) -> PositionEstimate
                (default: IterativeSphericalDistanceSolver with the standard tuning)
            reference_radius: Body radius in metres, used for altitude
        """
        # Default algorithms import from this package, so they are loaded lazily
        if edge_detector is None:
            from ..edge.detection import SimpleEdgeDetectionAlgorithm
            edge_detector = SimpleEdgeDetectionAlgorithm(threshold=10, border_thickness=1, offset=0)
        if solver is None:
            from ..distance.spherical import IterativeSphericalDistanceSolver, SolverSettings
            solver = IterativeSphericalDistanceSolver.from_settings(reference_radius, SolverSettings())

        self.config = config
        self.edge_detector = edge_detector
        self.solver = solver
        self.reference_radius = reference_radius
        self.states: List[RunState] = []

    @property
    def state(self) -> Optional[RunState]:
        return self.states[-1] if self.states else None

    def _enter(self, state: RunState):
        self.states.append(state)
        logger.debug(f"Measurement state: {state.value}")

    def _fail(self, message: str, num_edges: int = 0) -> ResultRecord:
        self._enter(RunState.DONE_FAILURE)
        logger.error(f"Measurement failed: {message}")
        return ResultRecord.failure(message, num_edges=num_edges)

    def measure(self) -> ResultRecord:
        """Run the state machine once and return the result record."""
        self.states = []
        self._enter(RunState.START)
        image_path = self.config.image_path

        # Existence is checked before decoding so "missing" and "corrupt" stay distinct
        try:
            check_image_readable(image_path)
        except ImageLoadError as e:
            return self._fail(str(e))

        try:
            with decoded_image(image_path) as image:
                self._enter(RunState.IMAGE_LOADED)
                width, height = image.width, image.height
                points = as_point_set(self.edge_detector.run(image))
        except ImageLoadError as e:
            return self._fail(str(e))
        except MemoryError:
            raise
        except Exception as e:
            return self._fail(f"Edge detection failed: {e}")

        num_edges = len(points)
        self._enter(RunState.EDGES_EXTRACTED)
        logger.info(f"Edges detected: {num_edges}")

        if num_edges == 0:
            return self._fail("No edges detected", num_edges=0)

        # The decoded frame size is authoritative, whatever resolution was configured
        camera = CameraModel(self.config.focal_length, self.config.pixel_size, width, height)

        try:
            position = self.solver.run(points, camera)
        except SolverError as e:
            return self._fail(str(e), num_edges=num_edges)
        except MemoryError:
            raise
        except Exception as e:
            return self._fail(f"Distance solver error: {e}", num_edges=num_edges)

        if not isinstance(position, PositionEstimate):
            return self._fail(
                f"Distance solver error: expected a PositionEstimate, got {type(position).__name__}",
                num_edges=num_edges,
            )
        if not np.isfinite(position.norm()):
            return self._fail("Distance solver error: non-finite position", num_edges=num_edges)
        self._enter(RunState.POSITION_SOLVED)

        metrics = compute_distance_metrics(position, self.config.ground_truth_m, self.reference_radius)
        self._enter(RunState.METRICS_COMPUTED)

        record = ResultRecord.succeeded(
            num_edges=num_edges,
            ground_truth_m=self.config.ground_truth_m,
            **metrics,
        )
        self._enter(RunState.DONE_SUCCESS)
        logger.info(
            f"Distance {record.distance_m:.1f} m, error {record.error_m:.1f} m "
            f"({record.error_percent:.4f}%)"
        )
        return record

    def run(self) -> ResultRecord:
        """Measure and write the record to the configured output path."""
        record = self.measure()
        write_result_json(record, self.config.output_path)
        return record
