"""
Attitude Transform Module

Camera orientation handling for synthetic horizon rendering. Orientation is
given as (right ascension, declination, roll) of the boresight in degrees,
in the same inertial frame as the spacecraft position.

Camera frame: z along the boresight, x toward image right, y toward image up.
"""

import numpy as np
import logging
from typing import Sequence

logger = logging.getLogger(__name__)


def radec_to_inertial_vector(ra: float, dec: float) -> np.ndarray:
    """
    Convert RA/Dec to an inertial unit vector.

    Args:
        ra: Right ascension in radians
        dec: Declination in radians

    Returns:
        3D unit vector in inertial frame [x, y, z]
    """
    x = np.cos(dec) * np.cos(ra)
    y = np.cos(dec) * np.sin(ra)
    z = np.sin(dec)

    vector = np.array([x, y, z])
    return vector / np.linalg.norm(vector)


def orientation_to_rotation_matrix(orientation_deg: Sequence[float]) -> np.ndarray:
    """
    Rotation matrix from the inertial frame to the camera frame.

    Args:
        orientation_deg: (ra, dec, roll) of the boresight in degrees

    Returns:
        3x3 matrix R such that v_camera = R @ v_inertial
    """
    if len(orientation_deg) != 3:
        raise ValueError(f"Orientation needs 3 angles, got {len(orientation_deg)}")
    ra, dec, roll = np.radians(np.asarray(orientation_deg, dtype=float))

    boresight = radec_to_inertial_vector(ra, dec)

    # Image right is horizontal with respect to the inertial z axis
    reference = np.array([0.0, 0.0, 1.0])
    if abs(np.dot(boresight, reference)) > 1.0 - 1e-12:
        reference = np.array([1.0, 0.0, 0.0])
    right = np.cross(boresight, reference)
    right /= np.linalg.norm(right)
    up = np.cross(boresight, right)

    # Roll about the boresight
    cos_r, sin_r = np.cos(roll), np.sin(roll)
    right_rolled = cos_r * right + sin_r * up
    up_rolled = -sin_r * right + cos_r * up

    R = np.vstack([right_rolled, up_rolled, boresight])
    logger.debug(f"Orientation {tuple(orientation_deg)} deg -> det(R) = {np.linalg.det(R):.6f}")
    return R


def angle_between(v1: np.ndarray, v2: np.ndarray) -> float:
    """Angle between two vectors, radians."""
    v1 = np.asarray(v1, dtype=float)
    v2 = np.asarray(v2, dtype=float)
    cos_angle = np.dot(v1, v2) / (np.linalg.norm(v1) * np.linalg.norm(v2))
    return float(np.arccos(np.clip(cos_angle, -1.0, 1.0)))
