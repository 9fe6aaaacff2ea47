#!/usr/bin/env python3
"""
generator.py - Synthetic horizon image generator

Renders the Earth as a uniformly lit sphere seen from a spacecraft position
with a given camera orientation. Pixels whose line of sight hits the sphere
are set to 255, space is 0.

Usage:
    python -m horizon.scene.generator --position 10378137 0 0 \
        --orientation 140 0 0 --filename image.png
"""

import argparse
import logging
import sys
from typing import Sequence

import cv2
import numpy as np

from ..core.camera_model import (
    CameraModel,
    EARTH_RADIUS_M,
    DEFAULT_FOCAL_LENGTH_M,
    DEFAULT_PIXEL_SIZE_M,
)
from .attitude import orientation_to_rotation_matrix

logger = logging.getLogger(__name__)

DEFAULT_POSITION = (10378137.0, 0.0, 0.0)
DEFAULT_ORIENTATION = (140.0, 0.0, 0.0)
DEFAULT_RESOLUTION = (512, 512)
EARTH_LEVEL = 255
SPACE_LEVEL = 0


def render_horizon_image(
    position: Sequence[float],
    orientation_deg: Sequence[float],
    camera: CameraModel,
    radius: float = EARTH_RADIUS_M,
) -> np.ndarray:
    """
    Render the body as seen by the camera.

    Args:
        position: Spacecraft position in the inertial frame (m)
        orientation_deg: (ra, dec, roll) of the boresight in degrees
        camera: Camera model, resolution defines the image size
        radius: Body radius (m)

    Returns:
        (height, width) uint8 image
    """
    position = np.asarray(position, dtype=float)
    if position.shape != (3,):
        raise ValueError(f"Position must have 3 components, got shape {position.shape}")
    if np.linalg.norm(position) <= radius:
        raise ValueError("Spacecraft position must be outside the body")

    R = orientation_to_rotation_matrix(orientation_deg)

    ys, xs = np.mgrid[0:camera.height, 0:camera.width]
    pixels = np.column_stack([xs.ravel(), ys.ravel()]).astype(float)
    directions = camera.pixels_to_bearings(pixels) @ R  # rows: R.T @ v

    # Ray/sphere intersection: |p + t d|^2 = r^2 with t > 0
    b = directions @ position
    c = position @ position - radius * radius
    discriminant = b * b - c
    hit = (discriminant >= 0) & (b < 0)

    image = np.full(camera.height * camera.width, SPACE_LEVEL, dtype=np.uint8)
    image[hit] = EARTH_LEVEL
    image = image.reshape(camera.height, camera.width)

    logger.info(f"Rendered {camera.width}x{camera.height} frame, {np.count_nonzero(hit)} Earth pixels")
    return image


def write_image(image: np.ndarray, filename: str):
    """Write an image with OpenCV, raising OSError on failure."""
    try:
        written = cv2.imwrite(filename, image)
    except cv2.error as e:
        raise OSError(f"Could not write image: {filename} ({e})") from e
    if not written:
        raise OSError(f"Could not write image: {filename}")
    logger.info(f"Image written: {filename}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="horizon-generator", description="Synthetic Earth horizon image generator"
    )
    parser.add_argument("--position", type=float, nargs=3, default=list(DEFAULT_POSITION),
                        metavar=("X", "Y", "Z"), help="Spacecraft position (m)")
    parser.add_argument("--orientation", type=float, nargs=3, default=list(DEFAULT_ORIENTATION),
                        metavar=("RA", "DE", "ROLL"), help="Boresight orientation (deg)")
    parser.add_argument("--focal-length", type=float, default=DEFAULT_FOCAL_LENGTH_M,
                        help="Camera focal length (m)")
    parser.add_argument("--pixel-size", type=float, default=DEFAULT_PIXEL_SIZE_M,
                        help="Camera pixel size (m)")
    parser.add_argument("--x-resolution", type=int, default=DEFAULT_RESOLUTION[0], help="Image width (px)")
    parser.add_argument("--y-resolution", type=int, default=DEFAULT_RESOLUTION[1], help="Image height (px)")
    parser.add_argument("--filename", required=True, help="Output image path")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        camera = CameraModel(args.focal_length, args.pixel_size, args.x_resolution, args.y_resolution)
        image = render_horizon_image(args.position, args.orientation, camera)
        write_image(image, args.filename)
    except (ValueError, OSError) as e:
        logger.error(f"Image generation failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
