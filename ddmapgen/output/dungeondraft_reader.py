"""
DungeonDraft Reader Module

Reads back maps written by dungeondraft_writer to verify round trips.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Tuple

from ..errors import SerializationFailure

logger = logging.getLogger(__name__)

STAGE = "read"

NUMBER_PATTERN = re.compile(r"-?\d+(?:\.\d+)?(?:e-?\d+)?")
POOL_PATTERN = re.compile(r"^PoolVector2Array\((.*)\)$", re.DOTALL)

Vertex = Tuple[float, float]


@dataclass
class MapShapeRecord:
    """A shape recovered from a map file, in source pixel coordinates."""
    shape_id: str
    role: str
    region_id: int
    exterior: List[Vertex]
    holes: List[List[Vertex]] = field(default_factory=list)


@dataclass
class LoadedMap:
    """Contents of a generated map file."""
    width: int
    height: int
    scale: float
    source_image: Dict[str, Any]
    shapes: List[MapShapeRecord]

    def role_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for shape in self.shapes:
            counts[shape.role] = counts.get(shape.role, 0) + 1
        return counts


def parse_pool(text: str) -> List[Vertex]:
    """
    Parse a PoolVector2Array string into points.

    Raises:
        ValueError: If the text is not a pool of coordinate pairs
    """
    match = POOL_PATTERN.match(text.strip())
    if not match:
        raise ValueError(f"Not a PoolVector2Array: {text[:40]!r}")

    values = [float(v) for v in NUMBER_PATTERN.findall(match.group(1))]
    if len(values) % 2:
        raise ValueError("Odd number of coordinates in PoolVector2Array")
    return [(values[i], values[i + 1]) for i in range(0, len(values), 2)]


def read_map(path: str) -> LoadedMap:
    """
    Read a generated .dungeondraft_map file.

    Args:
        path: Map file path

    Returns:
        LoadedMap with shapes in file (layering) order

    Raises:
        SerializationFailure: If the file is missing or malformed
    """
    map_path = Path(path)
    if not map_path.is_file():
        raise SerializationFailure(f"Map file not found: {path}", stage=STAGE)

    try:
        with open(map_path, encoding="utf-8") as f:
            data = json.load(f)

        generator = data["header"]["generator"]
        world = data["world"]
        level = world["levels"]["0"]
        units = float(generator["units_per_pixel"])

        rings: Dict[str, List[Vertex]] = {}
        for entry in level.get("walls", []) + level.get("patterns", []):
            points = parse_pool(entry["points"])
            rings[entry["node_id"]] = [(x / units, y / units) for x, y in points]

        shapes = []
        for item in generator["shapes"]:
            node_rings = [rings[node_id] for node_id in item["nodes"]]
            shapes.append(MapShapeRecord(
                shape_id=item["id"],
                role=item["role"],
                region_id=int(item["region_id"]),
                exterior=node_rings[0],
                holes=node_rings[1:],
            ))

        loaded = LoadedMap(
            width=int(world["width"]),
            height=int(world["height"]),
            scale=float(generator["scale"]),
            source_image=generator.get("source_image", {}),
            shapes=shapes,
        )
    except (OSError, json.JSONDecodeError, AttributeError, KeyError, IndexError, TypeError,
            ValueError) as e:
        raise SerializationFailure(f"Malformed map file {path}: {e}", stage=STAGE) from e

    logger.debug(f"Read {len(shapes)} shapes from {path}")
    return loaded
