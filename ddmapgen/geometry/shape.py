"""
Shape Data Structure Module

A simplified polygon tagged with a semantic map role.
"""

from dataclasses import dataclass
from typing import Any, Dict

from ..constants import SHAPE_ID_FORMAT, Role
from .simplifier import Polygon


def shape_id_for_region(region_id: int) -> str:
    """Stable shape id derived from the source region id."""
    return SHAPE_ID_FORMAT.format(region_id)


@dataclass(frozen=True)
class Shape:
    """A classified polygon; the unit stored in a map document."""
    shape_id: str
    region_id: int
    role: str
    label: str
    polygon: Polygon

    def __post_init__(self):
        if self.role not in Role.ALL:
            raise ValueError(f"Unknown role: {self.role}")

    @property
    def area(self) -> float:
        return self.polygon.area

    def to_dict(self) -> Dict[str, Any]:
        """Convert shape to dictionary for JSON serialization."""
        return {
            "shape_id": self.shape_id,
            "region_id": self.region_id,
            "role": self.role,
            "label": self.label,
            "exterior": [list(p) for p in self.polygon.exterior],
            "holes": [[list(p) for p in hole] for hole in self.polygon.holes],
            "area": round(self.area, 2),
            "simplified": self.polygon.simplified,
        }
