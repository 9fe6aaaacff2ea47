#!/usr/bin/env python3
"""
test_image_io.py - Unit tests for image decoding and buffer scoping

Run with:
    PYTHONPATH=. python -m pytest validation/tests/test_image_io.py -v
"""

import cv2
import numpy as np
import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from horizon.core.errors import ImageLoadError
from horizon.core.image_io import Image, check_image_readable, decode_image, decoded_image


class TestImage:
    """Test the decoded image container."""

    def test_from_gray_array(self):
        image = Image.from_array(np.zeros((4, 6), dtype=np.uint8))
        assert (image.width, image.height, image.channels) == (6, 4, 1)
        assert image.nbytes == 24
        assert image.pixels.shape == (4, 6, 1)

    def test_pixels_are_read_only(self):
        image = Image.from_array(np.zeros((4, 4, 3), dtype=np.uint8))
        with pytest.raises(ValueError):
            image.pixels[0, 0, 0] = 1

    def test_rejects_buffer_size_mismatch(self):
        with pytest.raises(ValueError):
            Image(4, 4, 1, np.zeros(15, dtype=np.uint8))

    def test_release(self):
        image = Image.from_array(np.zeros((4, 4), dtype=np.uint8))
        image.release()
        assert image.released
        with pytest.raises(RuntimeError):
            image.pixels


class TestDecoding:
    """Test file decoding."""

    def test_missing_file(self, tmp_path):
        path = str(tmp_path / "nope.png")
        with pytest.raises(ImageLoadError) as excinfo:
            check_image_readable(path)
        assert str(excinfo.value) == f"Image file not found: {path}"

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "corrupt.png"
        path.write_bytes(b"this is not a png")
        check_image_readable(str(path))
        with pytest.raises(ImageLoadError) as excinfo:
            decode_image(str(path))
        assert str(excinfo.value) == f"Could not load image: {path}"

    def test_color_png(self, tmp_path):
        path = tmp_path / "color.png"
        array = np.zeros((8, 10, 3), dtype=np.uint8)
        array[2, 3] = (1, 2, 3)
        cv2.imwrite(str(path), array)

        image = decode_image(str(path))
        assert (image.width, image.height, image.channels) == (10, 8, 3)
        np.testing.assert_array_equal(image.pixels[2, 3], [1, 2, 3])

    def test_16_bit_png_is_reduced(self, tmp_path):
        path = tmp_path / "deep.png"
        array = np.full((4, 4), 0xAB12, dtype=np.uint16)
        cv2.imwrite(str(path), array)

        image = decode_image(str(path))
        assert image.pixels.dtype == np.uint8
        assert np.all(image.pixels == 0xAB)


class TestScopedBuffer:
    """The pixel buffer never outlives the decoding scope."""

    def _write(self, tmp_path):
        path = tmp_path / "frame.png"
        cv2.imwrite(str(path), np.zeros((8, 8), dtype=np.uint8))
        return str(path)

    def test_released_on_normal_exit(self, tmp_path):
        with decoded_image(self._write(tmp_path)) as image:
            assert not image.released
        assert image.released

    def test_released_on_exception(self, tmp_path):
        with pytest.raises(KeyError):
            with decoded_image(self._write(tmp_path)) as image:
                raise KeyError("boom")
        assert image.released
