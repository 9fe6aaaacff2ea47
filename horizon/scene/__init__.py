"""Synthetic horizon scenes."""

from .attitude import orientation_to_rotation_matrix, radec_to_inertial_vector
from .generator import render_horizon_image

__all__ = ['orientation_to_rotation_matrix', 'radec_to_inertial_vector', 'render_horizon_image']
