"""
camera_model.py - Pinhole camera geometry

Immutable pinhole camera description used to turn horizon pixel coordinates
into bearing vectors, plus the position estimate type produced by the
distance solvers.

Camera frame convention: z along the boresight, x to the right of the image,
y up (image rows grow downward, so the pixel y axis is inverted).
"""

import numpy as np
import logging
from dataclasses import dataclass
from typing import Tuple

logger = logging.getLogger(__name__)

# Physical constants
EARTH_RADIUS_M = 6378137.0  # WGS-84 equatorial radius, m

# Default optics, matching the synthetic generator defaults
DEFAULT_FOCAL_LENGTH_M = 85e-3  # m
DEFAULT_PIXEL_SIZE_M = 20e-6  # m


@dataclass(frozen=True)
class CameraModel:
    """Pinhole camera intrinsics in SI units."""
    focal_length: float  # m
    pixel_size: float  # m
    width: int  # px
    height: int  # px

    def __post_init__(self):
        if not self.focal_length > 0:
            raise ValueError(f"focal_length must be positive, got {self.focal_length}")
        if not self.pixel_size > 0:
            raise ValueError(f"pixel_size must be positive, got {self.pixel_size}")
        if int(self.width) != self.width or self.width <= 0:
            raise ValueError(f"width must be a positive integer, got {self.width}")
        if int(self.height) != self.height or self.height <= 0:
            raise ValueError(f"height must be a positive integer, got {self.height}")

    @property
    def focal_length_px(self) -> float:
        """Focal length expressed in pixels."""
        return self.focal_length / self.pixel_size

    @property
    def principal_point(self) -> Tuple[float, float]:
        """Principal point at detector center (pixels)"""
        return (self.width / 2.0, self.height / 2.0)

    def pixels_to_bearings(self, points: np.ndarray) -> np.ndarray:
        """
        Convert pixel coordinates to unit bearing vectors in the camera frame.

        Args:
            points: (N, 2) array of (x, y) pixel coordinates

        Returns:
            (N, 3) array of unit vectors
        """
        points = np.asarray(points, dtype=float).reshape(-1, 2)
        p_cx, p_cy = self.principal_point

        x_f = (points[:, 0] - p_cx) * self.pixel_size
        y_f = -(points[:, 1] - p_cy) * self.pixel_size
        z_f = np.full(len(points), self.focal_length)

        bearings = np.column_stack([x_f, y_f, z_f])
        return bearings / np.linalg.norm(bearings, axis=1, keepdims=True)

    def bearings_to_pixels(self, bearings: np.ndarray) -> np.ndarray:
        """Project camera-frame vectors (z > 0) back to pixel coordinates."""
        bearings = np.asarray(bearings, dtype=float).reshape(-1, 3)
        p_cx, p_cy = self.principal_point
        f_px = self.focal_length_px

        p_x = p_cx + f_px * bearings[:, 0] / bearings[:, 2]
        p_y = p_cy - f_px * bearings[:, 1] / bearings[:, 2]
        return np.column_stack([p_x, p_y])


@dataclass(frozen=True)
class PositionEstimate:
    """Vector from the spacecraft to the body center, metres."""
    x: float
    y: float
    z: float

    def norm(self) -> float:
        """Euclidean distance from the body center."""
        return float(np.sqrt(self.x * self.x + self.y * self.y + self.z * self.z))

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)

    @classmethod
    def from_array(cls, vector) -> 'PositionEstimate':
        x, y, z = (float(v) for v in np.asarray(vector, dtype=float).reshape(3))
        return cls(x, y, z)
