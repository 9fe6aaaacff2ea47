"""
image_io.py - Image decoding with a scoped pixel buffer

The decoded buffer is only valid inside the `decoded_image` context; it is
released on every exit path so repeated runs in one process never hold more
than one frame.
"""

import os
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

import cv2
import numpy as np

from .errors import ImageLoadError

logger = logging.getLogger(__name__)


class Image:
    """Decoded image: width x height x channels bytes."""

    def __init__(self, width: int, height: int, channels: int, data: np.ndarray):
        expected = width * height * channels
        if data.dtype != np.uint8 or data.size != expected:
            raise ValueError(
                f"Pixel buffer must hold {expected} bytes (uint8), "
                f"got {data.size} elements of {data.dtype}"
            )
        self.width = width
        self.height = height
        self.channels = channels
        self._data: Optional[np.ndarray] = data.reshape(height, width, channels)
        self._data.flags.writeable = False

    @property
    def released(self) -> bool:
        return self._data is None

    @property
    def pixels(self) -> np.ndarray:
        """Read-only (height, width, channels) view of the buffer."""
        if self._data is None:
            raise RuntimeError("Image buffer has been released")
        return self._data

    @property
    def nbytes(self) -> int:
        return self.width * self.height * self.channels

    def release(self):
        """Drop the pixel buffer."""
        self._data = None

    @classmethod
    def from_array(cls, array: np.ndarray) -> 'Image':
        """Wrap an (H, W) or (H, W, C) uint8 array."""
        array = np.ascontiguousarray(array)
        if array.ndim == 2:
            array = array[:, :, np.newaxis]
        if array.ndim != 3:
            raise ValueError(f"Image array must be 2-D or 3-D, got shape {array.shape}")
        height, width, channels = array.shape
        return cls(width, height, channels, array.copy())


def check_image_readable(image_path: str):
    """Raise ImageLoadError if the file is absent or cannot be opened."""
    if not os.path.isfile(image_path) or not os.access(image_path, os.R_OK):
        raise ImageLoadError(f"Image file not found: {image_path}", path=image_path)


def decode_image(image_path: str) -> Image:
    """
    Decode an image file into an 8-bit Image.

    Args:
        image_path: Path to a PNG/JPEG/TIFF file readable by OpenCV

    Returns:
        Image with the file's native channel count

    Raises:
        ImageLoadError: If OpenCV cannot decode the file
    """
    array = cv2.imread(image_path, cv2.IMREAD_UNCHANGED)
    if array is None:
        raise ImageLoadError(f"Could not load image: {image_path}", path=image_path)

    if array.dtype == np.uint16:
        # 16-bit frames are reduced to 8 bits, keeping the most significant byte
        array = (array >> 8).astype(np.uint8)
    elif array.dtype != np.uint8:
        raise ImageLoadError(
            f"Could not load image: {image_path} (unsupported pixel type {array.dtype})",
            path=image_path,
        )

    image = Image.from_array(array)
    logger.debug(f"Decoded {image_path}: {image.width}x{image.height}x{image.channels}")
    return image


@contextmanager
def decoded_image(image_path: str) -> Iterator[Image]:
    """Decode `image_path` and release the buffer when the block exits."""
    image = decode_image(image_path)
    try:
        yield image
    finally:
        image.release()
        logger.debug(f"Released image buffer for {image_path}")
