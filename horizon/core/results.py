"""
results.py - Result record and its JSON serialization

A run produces exactly one ResultRecord, which is either a failure (error
message only) or a success (edge count plus distance metrics). The JSON
layout is consumed by the analysis stage and must not change:

    {"success": false, "error": "..."}
    {"success": true, "num_edges": ..., "distance_m": ..., "altitude_m": ...,
     "ground_truth_m": ..., "error_m": ..., "error_percent": ...}
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, Optional, Union

from .errors import ResultWriteError, ResultFormatError

logger = logging.getLogger(__name__)

SUCCESS_FIELDS = (
    'num_edges',
    'distance_m',
    'altitude_m',
    'ground_truth_m',
    'error_m',
    'error_percent',
)


@dataclass(frozen=True)
class ResultRecord:
    """Outcome of one measurement run (tagged union on `success`)."""
    success: bool
    error_message: Optional[str] = None
    num_edges: int = 0
    distance_m: Optional[float] = None
    altitude_m: Optional[float] = None
    ground_truth_m: Optional[float] = None
    error_m: Optional[float] = None
    error_percent: Optional[float] = None

    def __post_init__(self):
        metrics = [getattr(self, name) for name in SUCCESS_FIELDS[1:]]
        if self.success:
            if self.error_message is not None:
                raise ValueError("A successful record cannot carry an error message")
            if any(value is None for value in metrics):
                raise ValueError("A successful record needs every distance metric")
        else:
            if not self.error_message:
                raise ValueError("A failed record needs an error message")
            if any(value is not None for value in metrics):
                raise ValueError("A failed record cannot carry distance metrics")
        if self.num_edges < 0:
            raise ValueError(f"num_edges must be >= 0, got {self.num_edges}")

    @classmethod
    def failure(cls, message: str, num_edges: int = 0) -> 'ResultRecord':
        return cls(success=False, error_message=message, num_edges=num_edges)

    @classmethod
    def succeeded(
        cls,
        num_edges: int,
        distance_m: float,
        altitude_m: float,
        ground_truth_m: float,
        error_m: float,
        error_percent: float,
    ) -> 'ResultRecord':
        return cls(
            success=True,
            num_edges=int(num_edges),
            distance_m=float(distance_m),
            altitude_m=float(altitude_m),
            ground_truth_m=float(ground_truth_m),
            error_m=float(error_m),
            error_percent=float(error_percent),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Fixed-schema dictionary; failure records only carry `error`."""
        if not self.success:
            return {'success': False, 'error': self.error_message}
        data = {'success': True}
        for name in SUCCESS_FIELDS:
            data[name] = getattr(self, name)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ResultRecord':
        """Validate a decoded result file and rebuild the record."""
        if not isinstance(data, dict) or not isinstance(data.get('success'), bool):
            raise ResultFormatError("Result must be an object with a boolean 'success'")

        if not data['success']:
            extra = [name for name in SUCCESS_FIELDS if name in data]
            if extra:
                raise ResultFormatError(f"Failed result carries success fields: {extra}")
            if not isinstance(data.get('error'), str):
                raise ResultFormatError("Failed result is missing 'error'")
            return cls.failure(data['error'])

        if 'error' in data:
            raise ResultFormatError("Successful result carries an 'error' field")
        missing = [name for name in SUCCESS_FIELDS if name not in data]
        if missing:
            raise ResultFormatError(f"Successful result is missing fields: {missing}")
        try:
            return cls.succeeded(**{name: data[name] for name in SUCCESS_FIELDS})
        except (TypeError, ValueError) as e:
            raise ResultFormatError(f"Invalid result values: {e}") from e


def write_result_json(record: ResultRecord, path: Union[str, Path]):
    """
    Write a record as JSON.

    Args:
        record: Record to persist
        path: Output file; its parent directory must already exist

    Raises:
        ResultWriteError: If the file cannot be written
    """
    text = json.dumps(record.to_dict(), indent=2) + "\n"
    try:
        with open(path, 'w') as f:
            f.write(text)
    except OSError as e:
        raise ResultWriteError(f"Cannot write: {path} ({e.strerror or e})", path=str(path)) from e
    logger.info(f"Result written: {path}")


def load_result(path: Union[str, Path]) -> ResultRecord:
    """Read and validate a result file."""
    try:
        with open(path, 'r') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ResultFormatError(f"Result file is not valid JSON: {path} ({e})") from e
    return ResultRecord.from_dict(data)


def format_result(record: ResultRecord) -> str:
    """Human-readable summary of a record."""
    if not record.success:
        return f"FAILED: {record.error_message}"
    return "\n".join([
        f"Edges detected:  {record.num_edges}",
        f"Distance:        {record.distance_m / 1e6:.4f} Mm  ({record.altitude_m / 1e3:.1f} km alt)",
        f"Ground truth:    {record.ground_truth_m / 1e6:.4f} Mm",
        f"Error:           {record.error_m / 1e3:.2f} km  ({record.error_percent:.4f}%)",
    ])
