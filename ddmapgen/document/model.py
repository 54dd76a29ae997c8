"""
Map Document Model Module

In-memory model of a generated map, handed to the serializer.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from ..constants import Role
from ..geometry.shape import Shape


@dataclass(frozen=True)
class SourceImage:
    """Metadata of the image a map was generated from."""
    path: str
    format: str
    width: int
    height: int
    sha256: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "format": self.format,
            "width": self.width,
            "height": self.height,
            "sha256": self.sha256,
        }


@dataclass
class MapDocument:
    """
    Generated map: canvas, scale and shapes in layering order.

    Coordinates of every shape are in source pixels; `scale` is the number
    of source pixels per grid unit.
    """
    width: int
    height: int
    scale: float
    shapes: Tuple[Shape, ...]
    source: SourceImage
    warnings: List[str] = field(default_factory=list)

    @property
    def grid_width(self) -> float:
        return self.width / self.scale

    @property
    def grid_height(self) -> float:
        return self.height / self.scale

    def shapes_with_role(self, role: str) -> List[Shape]:
        return [s for s in self.shapes if s.role == role]

    def role_counts(self) -> Dict[str, int]:
        return {role: len(self.shapes_with_role(role)) for role in Role.ALL}

    def shape_ids(self) -> List[str]:
        return [s.shape_id for s in self.shapes]

    def to_dict(self) -> Dict[str, Any]:
        """Convert document to dictionary for JSON serialization."""
        return {
            "width": self.width,
            "height": self.height,
            "scale": self.scale,
            "source": self.source.to_dict(),
            "shapes": [s.to_dict() for s in self.shapes],
            "warnings": list(self.warnings),
        }
