"""
Pipeline Errors Module

Exception hierarchy shared by every pipeline stage.
"""

from typing import Optional

from .constants import ErrorKind


class MapGenError(Exception):
    """Base class for all pipeline failures."""
    kind = "MapGenError"

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        region_id: Optional[int] = None,
        shape_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.region_id = region_id
        self.shape_id = shape_id

    def describe(self) -> str:
        """One-line description with kind, stage and region/shape when known."""
        where = []
        if self.stage:
            where.append(f"stage: {self.stage}")
        if self.region_id is not None:
            where.append(f"region {self.region_id}")
        if self.shape_id:
            where.append(f"shape {self.shape_id}")
        location = f" ({', '.join(where)})" if where else ""
        return f"[{self.kind}]{location}: {self.message}"


class InvalidImage(MapGenError):
    """Raised when the input image is unreadable, empty or unclassifiable."""
    kind = ErrorKind.INVALID_IMAGE


class DegenerateRegion(MapGenError):
    """Raised when a region cannot yield a valid boundary."""
    kind = ErrorKind.DEGENERATE_REGION


class EmptyDocument(MapGenError):
    """Raised when no usable shapes were found."""
    kind = ErrorKind.EMPTY_DOCUMENT


class SerializationFailure(MapGenError):
    """Raised when the map file cannot be written or read back."""
    kind = ErrorKind.SERIALIZATION_FAILURE


class ConfigError(MapGenError):
    """Raised for invalid configuration values."""
    kind = ErrorKind.CONFIG_ERROR


class PipelineCancelled(MapGenError):
    """Raised when a run is cancelled before completion."""
    kind = ErrorKind.CANCELLED
