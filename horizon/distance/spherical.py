#!/usr/bin/env python3
"""
spherical.py - Spherical distance determination from horizon points

The limb of a sphere seen from outside is a circular cone: every horizon
bearing vector v makes the same angle θ with the direction c to the sphere
center. Writing a = c / cos θ turns this into the linear system

    v_i · a = 1

whose least-squares solution gives both the center direction (a / |a|) and
the apparent angular radius (cos θ = 1 / |a|). The range to the center then
follows from the known body radius R:

    d = R / sin θ

`IterativeSphericalDistanceSolver` wraps this fit in a deterministic robust
loop (re-weighting plus outlier rejection) so that stray edge pixels do not
bias the result.
"""

import numpy as np
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional, Tuple

from ..core.camera_model import CameraModel, PositionEstimate, EARTH_RADIUS_M
from ..core.errors import SolverError

logger = logging.getLogger(__name__)

MIN_HORIZON_POINTS = 3


@dataclass(frozen=True)
class SolverSettings:
    """Tuning constants of the iterative spherical solver."""
    iterations: int = 2  # re-weighting passes per refresh
    refreshes: int = 1  # outlier rejection passes
    distance_tolerance: float = 10.0  # m, early exit on distance change
    discriminator_ratio: float = 1.1  # outlier cutoff relative to the loss mean
    pdf_order: int = 2  # exponent of the residual weighting function
    radius_loss_order: int = 4  # order of the residual power mean

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class DistanceDeterminationAlgorithm(ABC):
    """Capability interface: horizon points + camera in, position out."""

    @abstractmethod
    def run(self, points: np.ndarray, camera: CameraModel) -> PositionEstimate:
        """
        Estimate the vector from the spacecraft to the body center.

        Args:
            points: Non-empty (N, 2) array of horizon pixel coordinates
            camera: Camera used to take the image

        Returns:
            PositionEstimate in the camera frame, metres

        Raises:
            SolverError: If no position can be determined
        """


def fit_horizon_cone(
    bearings: np.ndarray, weights: Optional[np.ndarray] = None
) -> Tuple[np.ndarray, float]:
    """
    Least-squares cone fit to unit bearing vectors.

    Args:
        bearings: (N, 3) unit vectors, N >= 3
        weights: Optional per-vector weights

    Returns:
        Tuple of (unit center direction, cos of the apparent angular radius)

    Raises:
        SolverError: If the vectors do not determine a cone
    """
    if len(bearings) < MIN_HORIZON_POINTS:
        raise SolverError(
            f"At least {MIN_HORIZON_POINTS} horizon points are required, got {len(bearings)}"
        )

    if weights is None:
        weights = np.ones(len(bearings))
    sqrt_w = np.sqrt(weights)

    a, _, rank, _ = np.linalg.lstsq(bearings * sqrt_w[:, None], sqrt_w, rcond=None)
    if rank < 3:
        raise SolverError("Horizon points are collinear, cannot fit the horizon cone")

    norm_a = np.linalg.norm(a)
    if not np.isfinite(norm_a) or norm_a <= 1.0:
        raise SolverError(f"Degenerate horizon fit (|a| = {norm_a:.6g})")

    return a / norm_a, 1.0 / norm_a


def angular_residuals(bearings: np.ndarray, center: np.ndarray, cos_theta: float) -> np.ndarray:
    """Absolute difference between each point's angle from center and θ, radians."""
    angles = np.arccos(np.clip(bearings @ center, -1.0, 1.0))
    return np.abs(angles - np.arccos(cos_theta))


def range_from_cone(cos_theta: float, radius: float) -> float:
    """Distance to the sphere center for an apparent angular radius θ."""
    sin_theta = np.sqrt(max(0.0, 1.0 - cos_theta * cos_theta))
    if sin_theta <= 0:
        raise SolverError("Apparent horizon radius is zero, distance is unbounded")
    return radius / sin_theta


class SphericalDistanceSolver(DistanceDeterminationAlgorithm):
    """Single least-squares cone fit over all horizon points."""

    def __init__(self, radius: float = EARTH_RADIUS_M):
        if radius <= 0:
            raise ValueError(f"radius must be positive, got {radius}")
        self.radius = radius

    def run(self, points: np.ndarray, camera: CameraModel) -> PositionEstimate:
        bearings = camera.pixels_to_bearings(points)
        center, cos_theta = fit_horizon_cone(bearings)
        distance = range_from_cone(cos_theta, self.radius)
        return PositionEstimate.from_array(center * distance)


class IterativeSphericalDistanceSolver(DistanceDeterminationAlgorithm):
    """
    Robust spherical solver.

    Each refresh re-weights the cone fit `iterations` times with
    w = 1 / (1 + (r / median(r))^pdf_order) and then discards points whose
    residual exceeds `discriminator_ratio` times the power mean of order
    `radius_loss_order`. The procedure has no random sampling, so identical
    points always give an identical position.
    """

    def __init__(
        self,
        radius: float = EARTH_RADIUS_M,
        iterations: int = 2,
        refreshes: int = 1,
        distance_tolerance: float = 10.0,
        discriminator_ratio: float = 1.1,
        pdf_order: int = 2,
        radius_loss_order: int = 4,
    ):
        if radius <= 0:
            raise ValueError(f"radius must be positive, got {radius}")
        if iterations < 0 or refreshes < 0:
            raise ValueError("iterations and refreshes must be non-negative")
        if discriminator_ratio < 1.0:
            raise ValueError(f"discriminator_ratio must be >= 1, got {discriminator_ratio}")

        self.radius = radius
        self.iterations = iterations
        self.refreshes = refreshes
        self.distance_tolerance = distance_tolerance
        self.discriminator_ratio = discriminator_ratio
        self.pdf_order = pdf_order
        self.radius_loss_order = radius_loss_order

    @classmethod
    def from_settings(cls, radius: float, settings: SolverSettings) -> 'IterativeSphericalDistanceSolver':
        return cls(radius, **settings.to_dict())

    def _reweight(self, bearings, center, cos_theta, distance):
        for i in range(self.iterations):
            residuals = angular_residuals(bearings, center, cos_theta)
            scale = float(np.median(residuals))
            if scale <= 0:
                break

            weights = 1.0 / (1.0 + (residuals / scale) ** self.pdf_order)
            center, cos_theta = fit_horizon_cone(bearings, weights)
            new_distance = range_from_cone(cos_theta, self.radius)

            change = abs(new_distance - distance)
            distance = new_distance
            logger.debug(f"Iteration {i + 1}: distance={distance:.1f} m (change {change:.2f} m)")
            if change < self.distance_tolerance:
                break

        return center, cos_theta, distance

    def run(self, points: np.ndarray, camera: CameraModel) -> PositionEstimate:
        bearings = camera.pixels_to_bearings(points)

        center, cos_theta = fit_horizon_cone(bearings)
        distance = range_from_cone(cos_theta, self.radius)
        center, cos_theta, distance = self._reweight(bearings, center, cos_theta, distance)

        for refresh in range(self.refreshes):
            residuals = angular_residuals(bearings, center, cos_theta)
            q = self.radius_loss_order
            cutoff = self.discriminator_ratio * np.mean(residuals ** q) ** (1.0 / q)
            keep = residuals <= cutoff

            if cutoff <= 0 or keep.all() or keep.sum() < MIN_HORIZON_POINTS:
                break

            logger.debug(f"Refresh {refresh + 1}: discarding {np.count_nonzero(~keep)} of {len(bearings)} points")
            bearings = bearings[keep]
            center, cos_theta = fit_horizon_cone(bearings)
            distance = range_from_cone(cos_theta, self.radius)
            center, cos_theta, distance = self._reweight(bearings, center, cos_theta, distance)

        logger.info(f"Distance solve: {distance:.1f} m from {len(bearings)} points")
        return PositionEstimate.from_array(center * distance)
