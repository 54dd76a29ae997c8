"""
DungeonDraft Writer Module

Serializes a MapDocument to a .dungeondraft_map file.

Role mapping:
  wall    -> one looped wall per ring (exterior first, then holes)
  floor   -> one floor pattern per ring
  door    -> pattern for the footprint plus a freestanding portal
  unknown -> highlighted pattern on its own layer for manual follow-up

The header carries a generator manifest listing every shape's id, role and
the node ids of its rings so the map can be read back shape by shape.
"""

import json
import logging
import math
import os
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .. import __version__
from ..constants import (
    BACKUP_SUFFIX,
    DD_CREATION_BUILD,
    DD_DOOR_LAYER,
    DD_DOOR_TEXTURE,
    DD_FLOOR_COLOR,
    DD_FLOOR_LAYER,
    DD_FLOOR_TEXTURE,
    DD_UNITS_PER_CELL,
    DD_UNKNOWN_COLOR,
    DD_UNKNOWN_LAYER,
    DD_WALL_COLOR,
    DD_WALL_TEXTURE,
    DD_WORLD_FORMAT,
    TEMP_SUFFIX,
    Role,
)
from ..document.model import MapDocument
from ..errors import PipelineCancelled, SerializationFailure
from ..geometry.shape import Shape

logger = logging.getLogger(__name__)

STAGE = "serialize"

GENERATOR_NAME = "ddmapgen"


def format_number(value: float) -> str:
    """Godot-style number: up to 3 decimals, no trailing zeros."""
    text = f"{value:.3f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def format_vector(x: float, y: float) -> str:
    return f"Vector2( {format_number(x)}, {format_number(y)} )"


def format_pool(points: Sequence[Tuple[float, float]]) -> str:
    values = ", ".join(f"{format_number(x)}, {format_number(y)}" for x, y in points)
    return f"PoolVector2Array( {values} )"


def get_backup_path(path: Path) -> Path:
    """Backup path for a map file (map.dungeondraft_map.bak)."""
    return path.with_name(path.stem + BACKUP_SUFFIX)


def create_backup(path: Path) -> bool:
    """
    Copy an existing map to its backup path once.

    Returns:
        True if a backup was written, False if one already existed
    """
    backup_path = get_backup_path(path)
    if backup_path.exists():
        return False

    backup_path.write_bytes(path.read_bytes())
    logger.info(f"Backup written: {backup_path}")
    return True


class _NodeIds:
    """Sequential hex node ids, as DungeonDraft allocates them."""

    def __init__(self):
        self.next_id = 1

    def take(self) -> str:
        node_id = format(self.next_id, "x")
        self.next_id += 1
        return node_id


def _creation_date(created: datetime) -> Dict[str, Any]:
    return {
        "year": created.year,
        "month": created.month,
        "day": created.day,
        "weekday": created.isoweekday() % 7,
        "dst": False,
        "hour": created.hour,
        "minute": created.minute,
        "second": created.second,
    }


def _wall_entry(points, node_id: str) -> Dict[str, Any]:
    return {
        "points": format_pool(points),
        "texture": DD_WALL_TEXTURE,
        "color": DD_WALL_COLOR,
        "loop": True,
        "type": 0,
        "joint": 1,
        "normalize_uv": True,
        "shadow": True,
        "node_id": node_id,
        "portals": [],
    }


def _pattern_entry(points, node_id: str, layer: int, color: str) -> Dict[str, Any]:
    return {
        "layer": layer,
        "position": format_vector(0, 0),
        "shape_rotation": 0,
        "scale": format_vector(1, 1),
        "points": format_pool(points),
        "color": color,
        "outline": False,
        "texture": DD_FLOOR_TEXTURE,
        "rotation": 0,
        "node_id": node_id,
    }


def _portal_entry(shape: Shape, units: float, node_id: str) -> Dict[str, Any]:
    """Freestanding door at the footprint centroid, along its long axis."""
    footprint = shape.polygon.to_shapely()
    centroid = footprint.centroid
    rect = footprint.minimum_rotated_rectangle

    if rect.geom_type == "Polygon":
        coords = list(rect.exterior.coords)
        sides = [
            (coords[1][0] - coords[0][0], coords[1][1] - coords[0][1]),
            (coords[2][0] - coords[1][0], coords[2][1] - coords[1][1]),
        ]
        long_side = max(sides, key=lambda v: math.hypot(*v))
        angle = math.atan2(long_side[1], long_side[0])
        width = math.hypot(*long_side)
    else:
        min_x, _, max_x, _ = footprint.bounds
        angle = 0.0
        width = max_x - min_x

    return {
        "position": format_vector(centroid.x * units, centroid.y * units),
        "rotation": round(angle, 6),
        "scale": format_vector(1, 1),
        "direction": format_vector(math.cos(angle), math.sin(angle)),
        "texture": DD_DOOR_TEXTURE,
        "radius": format_number(width * units / 2.0),
        "point_index": -1,
        "wall_id": -1,
        "wall_distance": 0,
        "closed": True,
        "node_id": node_id,
    }


def map_to_dict(document: MapDocument, created: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Build the DungeonDraft JSON structure for a document.

    Args:
        document: Map document
        created: Creation timestamp recorded in the header (now if None)

    Returns:
        JSON-serializable dictionary
    """
    created = created or datetime.now()
    units = DD_UNITS_PER_CELL / document.scale
    node_ids = _NodeIds()

    walls: List[Dict[str, Any]] = []
    patterns: List[Dict[str, Any]] = []
    portals: List[Dict[str, Any]] = []
    manifest: List[Dict[str, Any]] = []

    for shape in document.shapes:
        rings = [shape.polygon.exterior] + list(shape.polygon.holes)
        scaled = [[(x * units, y * units) for x, y in ring] for ring in rings]
        nodes = []

        for ring in scaled:
            node_id = node_ids.take()
            nodes.append(node_id)
            if shape.role == Role.WALL:
                walls.append(_wall_entry(ring, node_id))
            elif shape.role == Role.FLOOR:
                patterns.append(_pattern_entry(ring, node_id, DD_FLOOR_LAYER, DD_FLOOR_COLOR))
            elif shape.role == Role.DOOR:
                patterns.append(_pattern_entry(ring, node_id, DD_DOOR_LAYER, DD_FLOOR_COLOR))
            else:
                patterns.append(_pattern_entry(ring, node_id, DD_UNKNOWN_LAYER, DD_UNKNOWN_COLOR))

        entry = {
            "id": shape.shape_id,
            "role": shape.role,
            "label": shape.label,
            "region_id": shape.region_id,
            "nodes": nodes,
        }
        if shape.role == Role.DOOR:
            portal_id = node_ids.take()
            portals.append(_portal_entry(shape, units, portal_id))
            entry["portal"] = portal_id
        manifest.append(entry)

    level = {
        "label": "Ground",
        "environment": {"baked_lighting": True, "ambient_light": "ffffffff"},
        "layers": {
            str(DD_FLOOR_LAYER): "Floor",
            str(DD_DOOR_LAYER): "Doorways",
            str(DD_UNKNOWN_LAYER): "Unclassified",
        },
        "shapes": {"polygons": [], "walls": []},
        "tiles": {},
        "patterns": patterns,
        "walls": walls,
        "portals": portals,
        "cave": {},
        "terrain": {},
        "water": {},
        "materials": {},
        "paths": [],
        "lights": [],
        "objects": [],
        "roofs": {"shapes": []},
        "texts": [],
    }

    return {
        "header": {
            "creation_build": DD_CREATION_BUILD,
            "creation_date": _creation_date(created),
            "uses_default_assets": True,
            "asset_manifest": [],
            "editor_state": {
                "current_level": 0,
                "camera_position": format_vector(
                    document.width * units / 2.0, document.height * units / 2.0
                ),
                "camera_zoom": 1,
                "guides": [],
            },
            "generator": {
                "name": GENERATOR_NAME,
                "version": __version__,
                "source_image": document.source.to_dict(),
                "scale": document.scale,
                "units_per_pixel": units,
                "shapes": manifest,
                "warnings": list(document.warnings),
            },
        },
        "world": {
            "format": DD_WORLD_FORMAT,
            "width": max(1, math.ceil(document.grid_width)),
            "height": max(1, math.ceil(document.grid_height)),
            "next_node_id": format(node_ids.next_id, "x"),
            "next_prefab_id": 0,
            "grid": {"color": "3f000000", "texture": "res://textures/grids/basic.png"},
            "wall_textures": [DD_WALL_TEXTURE],
            "levels": {"0": level},
        },
    }


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass


def write_map(
    document: MapDocument,
    output_path: str,
    backup: bool = True,
    created: Optional[datetime] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Path:
    """
    Write a map document to a .dungeondraft_map file.

    The file is written to a temp file beside the destination and moved
    into place, so a failed or cancelled write leaves no partial file and
    an existing map untouched.

    Args:
        document: Map document
        output_path: Destination map path
        backup: Back up an existing destination once before replacing it
        created: Creation timestamp for the header
        cancel_event: Set to abandon the write before it is committed

    Returns:
        Path of the written map

    Raises:
        SerializationFailure: If the map cannot be encoded or written
        PipelineCancelled: If cancel_event was set
    """
    path = Path(output_path)
    if not path.parent.is_dir():
        raise SerializationFailure(f"Output directory does not exist: {path.parent}", stage=STAGE)

    try:
        content = json.dumps(map_to_dict(document, created), indent="\t")
    except (TypeError, ValueError) as e:
        raise SerializationFailure(f"Cannot encode map: {e}", stage=STAGE) from e

    tmp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=path.parent,
            prefix=path.name + ".",
            suffix=TEMP_SUFFIX,
            delete=False,
        ) as f:
            tmp_path = Path(f.name)
            f.write(content)

        if cancel_event is not None and cancel_event.is_set():
            _remove_quietly(tmp_path)
            raise PipelineCancelled("Cancelled before the map was written", stage=STAGE)

        if backup and path.exists():
            create_backup(path)

        os.replace(tmp_path, path)
    except OSError as e:
        if tmp_path is not None:
            _remove_quietly(tmp_path)
        raise SerializationFailure(f"Cannot write {path}: {e}", stage=STAGE) from e

    logger.info(f"Map written: {path} ({len(document.shapes)} shapes)")
    return path
