#!/usr/bin/env python3
"""
measure.py - Measurement stage entry point

Runs edge detection + distance determination on one image and writes the
result record.

Usage:
    python -m horizon.measure --image image.png --ground-truth 10378137
    python -m horizon.measure --image image.png --ground-truth 10378137 \
        --focal-length 85e-3 --pixel-size 20e-6 --output result.json

Exit status:
    0  result written, success
    1  result written, measurement failed
    2  invalid or missing arguments (nothing written)
    3  result could not be written
"""

import argparse
import logging
import sys

from .core.camera_model import DEFAULT_FOCAL_LENGTH_M, DEFAULT_PIXEL_SIZE_M
from .core.errors import ConfigurationError, ResultWriteError
from .core.measurement import MeasurementEngine, RunConfiguration, DEFAULT_RESULT_PATH
from .core.results import format_result

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_MEASUREMENT_FAILED = 1
EXIT_CONFIGURATION_ERROR = 2
EXIT_WRITE_ERROR = 3


def positive_float(text: str) -> float:
    """argparse type for strictly positive reals."""
    try:
        value = float(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {text!r}")
    if not value > 0 or value == float('inf'):
        raise argparse.ArgumentTypeError(f"must be a positive number, got {text}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="horizon-measure",
        description="Horizon edge detection + distance determination on a single image",
    )
    parser.add_argument("--image", required=True, help="Path to the horizon image")
    parser.add_argument("--ground-truth", type=positive_float, required=True,
                        help="True distance to the Earth center (m)")
    parser.add_argument("--focal-length", type=positive_float, default=DEFAULT_FOCAL_LENGTH_M,
                        help=f"Camera focal length (m, default: {DEFAULT_FOCAL_LENGTH_M})")
    parser.add_argument("--pixel-size", type=positive_float, default=DEFAULT_PIXEL_SIZE_M,
                        help=f"Camera pixel size (m, default: {DEFAULT_PIXEL_SIZE_M})")
    parser.add_argument("--output", default=DEFAULT_RESULT_PATH,
                        help=f"Result file (default: {DEFAULT_RESULT_PATH})")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        config = RunConfiguration(
            image_path=args.image,
            ground_truth_m=args.ground_truth,
            focal_length=args.focal_length,
            pixel_size=args.pixel_size,
            output_path=args.output,
        )
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIGURATION_ERROR

    engine = MeasurementEngine(config)
    try:
        record = engine.run()
    except ResultWriteError as e:
        logger.error(f"Measurement stage failed: {e}")
        return EXIT_WRITE_ERROR

    for line in format_result(record).splitlines():
        logger.info(line)
    return EXIT_SUCCESS if record.success else EXIT_MEASUREMENT_FAILED


if __name__ == "__main__":
    sys.exit(main())
