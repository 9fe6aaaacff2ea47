import numpy as np
import cv2
from abc import ABC, abstractmethod
from scipy import ndimage
import logging

from ..core.image_io import Image

# Configure logger at module level
logger = logging.getLogger(__name__)


def empty_point_set() -> np.ndarray:
    """Read-only (0, 2) point set."""
    points = np.empty((0, 2), dtype=float)
    points.flags.writeable = False
    return points


class EdgeDetectionAlgorithm(ABC):
    """Capability interface: decoded image in, ordered horizon points out."""

    @abstractmethod
    def run(self, image: Image) -> np.ndarray:
        """
        Extract horizon points from an image.

        Args:
            image: Decoded image; must not be modified

        Returns:
            (N, 2) array of (x, y) pixel coordinates, possibly empty
        """


def to_grayscale(image: Image) -> np.ndarray:
    """Average the color channels of an image (alpha ignored)."""
    pixels = image.pixels
    if image.channels == 1:
        return pixels[:, :, 0].astype(np.float32)
    color = pixels[:, :, :3] if image.channels >= 3 else pixels
    return color.astype(np.float32).mean(axis=2)


def largest_component(binary_image: np.ndarray) -> np.ndarray:
    """
    Keep the largest 8-connected region of a binary image.

    Args:
        binary_image: Boolean or 0/1 mask

    Returns:
        Boolean mask of the largest region (all False if there is none)
    """
    binary_image = (binary_image > 0).astype(np.uint8)

    num_labels, labels, stats, _ = cv2.connectedComponentsWithStats(
        binary_image, connectivity=8
    )
    if num_labels <= 1:
        return np.zeros(binary_image.shape, dtype=bool)

    # label 0 is background
    areas = stats[1:, cv2.CC_STAT_AREA]
    largest = 1 + int(np.argmax(areas))
    logger.debug(f"{num_labels - 1} lit regions, largest has {areas.max()} px")
    return labels == largest


class SimpleEdgeDetectionAlgorithm(EdgeDetectionAlgorithm):
    """Threshold the frame, take the largest lit region, return its boundary pixels."""

    def __init__(self, threshold: float = 10, border_thickness: int = 1, offset: float = 0):
        """
        Args:
            threshold: Pixels strictly brighter than this belong to the body
            border_thickness: Boundary pixels this close to the frame edge are dropped
            offset: Distance in pixels to push each point away from the body centroid
        """
        if border_thickness < 0:
            raise ValueError(f"border_thickness must be >= 0, got {border_thickness}")
        self.threshold = threshold
        self.border_thickness = int(border_thickness)
        self.offset = offset

    def run(self, image: Image) -> np.ndarray:
        gray = to_grayscale(image)
        body = largest_component(gray > self.threshold)
        if not body.any():
            logger.info("No pixels above threshold, no horizon in frame")
            return empty_point_set()

        # A body pixel is on the edge when one of its 4-neighbours is space.
        # Pixels outside the frame count as body, so the frame edge is not a horizon.
        kernel = cv2.getStructuringElement(cv2.MORPH_CROSS, (3, 3))
        interior = cv2.erode(body.astype(np.uint8), kernel).astype(bool)
        edge = body & ~interior

        t = self.border_thickness
        if t > 0:
            edge[:t, :] = False
            edge[-t:, :] = False
            edge[:, :t] = False
            edge[:, -t:] = False

        ys, xs = np.nonzero(edge)
        points = np.column_stack([xs, ys]).astype(float)

        if self.offset and len(points):
            cy, cx = ndimage.center_of_mass(body)
            direction = points - np.array([cx, cy])
            lengths = np.linalg.norm(direction, axis=1, keepdims=True)
            lengths[lengths == 0] = 1.0
            points = points + self.offset * direction / lengths

        points.flags.writeable = False
        logger.info(f"Edge detection: {len(points)} horizon points")
        return points
