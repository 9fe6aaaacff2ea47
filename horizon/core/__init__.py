"""Camera geometry, measurement engine and result records."""

from .camera_model import CameraModel, PositionEstimate, EARTH_RADIUS_M
from .errors import (
    HorizonError,
    ConfigurationError,
    ImageLoadError,
    SolverError,
    ResultWriteError,
    ResultFormatError,
    StageError,
)
from .image_io import Image, decoded_image
from .measurement import MeasurementEngine, RunConfiguration, RunState, compute_distance_metrics
from .results import ResultRecord, write_result_json, load_result, format_result
