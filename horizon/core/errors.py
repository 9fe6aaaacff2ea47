"""Exception classes for the horizon integration pipeline."""

from typing import Optional


class HorizonError(Exception):
    """Base exception for all horizon pipeline errors."""

    pass


class ConfigurationError(HorizonError):
    """Raised when a required input is missing or invalid."""

    def __init__(self, message: str, option: Optional[str] = None):
        self.option = option
        super().__init__(message)


class ImageLoadError(HorizonError):
    """Raised when an image file is missing or cannot be decoded."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class SolverError(HorizonError):
    """Raised when the distance solver cannot produce a position."""

    pass


class ResultWriteError(HorizonError):
    """Raised when a result record cannot be persisted."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class ResultFormatError(HorizonError):
    """Raised when a result file does not match the record schema."""

    pass


class StageError(HorizonError):
    """Raised when a pipeline stage fails."""

    def __init__(self, message: str, stage: Optional[str] = None):
        self.stage = stage
        super().__init__(message)
