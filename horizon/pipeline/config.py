"""
config.py - Pipeline configuration

Configuration is layered: built-in defaults, then an optional YAML file,
then command-line options. The merged result is a frozen PipelineConfig that
is validated once and passed explicitly to the orchestrator.
"""

import copy
import logging
import math
import shlex
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional, Sequence, Tuple, Union

import yaml

from ..core.errors import ConfigurationError

logger = logging.getLogger(__name__)


def get_default_config() -> Dict[str, Any]:
    """Built-in defaults; `configs/pipeline.yaml` documents the same keys."""
    return {
        'commands': {
            'generator': [sys.executable, '-m', 'horizon.scene.generator'],
            'measure': [sys.executable, '-m', 'horizon.measure'],
            'analyzer': ['horizon-analyzer'],
        },
        'stage_timeout_seconds': 600,
        'camera': {
            'focal_length': 85e-3,  # m
            'pixel_size': 20e-6,  # m
            'x_resolution': 512,  # px
            'y_resolution': 512,  # px
        },
        'scenario': {
            'position': [10378137.0, 0.0, 0.0],  # m
            'orientation': [140.0, 0.0, 0.0],  # ra, de, roll in deg
        },
        'output': {'results_dir': 'results'},
    }


def merge_config(base: Dict[str, Any], overrides: Dict[str, Any], section: str = "") -> Dict[str, Any]:
    """Recursively merge `overrides` into a copy of `base`, rejecting unknown keys."""
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        name = f"{section}.{key}" if section else key
        if key not in base:
            raise ConfigurationError(f"Unknown configuration key: {name}", option=name)
        if isinstance(base[key], dict):
            if not isinstance(value, dict):
                raise ConfigurationError(f"Configuration key {name} must be a mapping", option=name)
            merged[key] = merge_config(base[key], value, name)
        else:
            merged[key] = value
    return merged


def load_config_file(config_path: Union[str, Path]) -> Dict[str, Any]:
    """Load a YAML configuration file and merge it over the defaults."""
    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigurationError(f"Config file not found: {config_path}", option="config")

    try:
        with open(config_path, 'r') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}", option="config") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping", option="config")

    logger.info(f"Loaded configuration from {config_path}")
    return merge_config(get_default_config(), data)


def derive_ground_truth(position: Sequence[float]) -> float:
    """Distance to the Earth center: Euclidean norm of the position, metres."""
    return math.sqrt(math.fsum(float(c) * float(c) for c in position))


def _as_command(value, name: str) -> Tuple[str, ...]:
    if isinstance(value, str):
        value = shlex.split(value)
    if not isinstance(value, (list, tuple)) or not value:
        raise ConfigurationError(f"Command {name} must be a non-empty list or string", option=name)
    return tuple(str(part) for part in value)


def _as_vector(value, name: str) -> Tuple[float, float, float]:
    try:
        vector = tuple(float(c) for c in value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be 3 numbers, got {value!r}", option=name)
    if len(vector) != 3 or not all(math.isfinite(c) for c in vector):
        raise ConfigurationError(f"{name} must be 3 finite numbers, got {value!r}", option=name)
    return vector


def _as_number(value, name: str) -> float:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be a number, got {value!r}", option=name)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}", option=name)


def _as_count(value, name: str) -> int:
    number = _as_number(value, name)
    if not math.isfinite(number) or number != int(number):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}", option=name)
    return int(number)


def default_output_dir(results_dir: Union[str, Path]) -> Path:
    """Per-run directory named by timestamp."""
    return Path(results_dir) / datetime.now().strftime("%Y%m%d_%H%M%S")


@dataclass(frozen=True)
class PipelineConfig:
    """Validated settings of one pipeline run."""
    position: Tuple[float, float, float]
    orientation: Tuple[float, float, float]
    focal_length: float
    pixel_size: float
    x_resolution: int
    y_resolution: int
    output_dir: Path
    ground_truth_m: float
    generator_command: Tuple[str, ...]
    measure_command: Tuple[str, ...]
    analyzer_command: Tuple[str, ...]
    image_path: Optional[Path] = None
    stage_timeout_seconds: Optional[float] = None

    def __post_init__(self):
        for name in ('focal_length', 'pixel_size', 'ground_truth_m'):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise ConfigurationError(
                    f"{name} must be positive, got {value}", option=name.replace('_', '-')
                )
        for name in ('x_resolution', 'y_resolution'):
            value = getattr(self, name)
            if int(value) != value or value <= 0:
                raise ConfigurationError(
                    f"{name} must be a positive integer, got {value}", option=name.replace('_', '-')
                )
        if self.stage_timeout_seconds is not None and not (
            math.isfinite(self.stage_timeout_seconds) and self.stage_timeout_seconds > 0
        ):
            raise ConfigurationError(
                f"stage_timeout_seconds must be positive, got {self.stage_timeout_seconds}",
                option="stage_timeout_seconds",
            )

    @property
    def generates_image(self) -> bool:
        return self.image_path is None

    @property
    def image_file(self) -> Path:
        return self.image_path if self.image_path is not None else self.output_dir / "image.png"

    @property
    def result_file(self) -> Path:
        return self.output_dir / "result.json"

    @property
    def report_dir(self) -> Path:
        return self.output_dir / "report"


def build_pipeline_config(
    position: Optional[Sequence[float]] = None,
    orientation: Optional[Sequence[float]] = None,
    focal_length: Optional[float] = None,
    pixel_size: Optional[float] = None,
    x_resolution: Optional[int] = None,
    y_resolution: Optional[int] = None,
    image: Optional[Union[str, Path]] = None,
    output_dir: Optional[Union[str, Path]] = None,
    ground_truth: Optional[float] = None,
    config_path: Optional[Union[str, Path]] = None,
) -> PipelineConfig:
    """
    Merge explicit options over the file/default configuration.

    Options left as None fall back to the configuration file, then to the
    built-in defaults. Ground truth defaults to the norm of the position.

    Raises:
        ConfigurationError: If any value is missing or invalid
    """
    settings = load_config_file(config_path) if config_path else get_default_config()
    camera = settings['camera']
    scenario = settings['scenario']

    position = _as_vector(position if position is not None else scenario['position'], "position")
    orientation = _as_vector(
        orientation if orientation is not None else scenario['orientation'], "orientation"
    )

    if ground_truth is None:
        ground_truth = derive_ground_truth(position)
        if ground_truth <= 0:
            raise ConfigurationError(
                "Ground truth derived from position is zero; supply a non-zero position "
                "or --ground-truth", option="ground-truth",
            )

    timeout = settings['stage_timeout_seconds']

    return PipelineConfig(
        position=position,
        orientation=orientation,
        focal_length=_as_number(
            focal_length if focal_length is not None else camera['focal_length'], "camera.focal_length"
        ),
        pixel_size=_as_number(
            pixel_size if pixel_size is not None else camera['pixel_size'], "camera.pixel_size"
        ),
        x_resolution=_as_count(
            x_resolution if x_resolution is not None else camera['x_resolution'], "camera.x_resolution"
        ),
        y_resolution=_as_count(
            y_resolution if y_resolution is not None else camera['y_resolution'], "camera.y_resolution"
        ),
        output_dir=Path(output_dir) if output_dir else default_output_dir(str(settings['output']['results_dir'])),
        ground_truth_m=_as_number(ground_truth, "ground-truth"),
        generator_command=_as_command(settings['commands']['generator'], "commands.generator"),
        measure_command=_as_command(settings['commands']['measure'], "commands.measure"),
        analyzer_command=_as_command(settings['commands']['analyzer'], "commands.analyzer"),
        image_path=Path(image) if image else None,
        stage_timeout_seconds=_as_number(timeout, "stage_timeout_seconds") if timeout is not None else None,
    )
