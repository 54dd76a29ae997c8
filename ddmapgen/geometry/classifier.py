"""
Shape Classifier Module

Assigns a semantic role (wall, floor, door, unknown) to each polygon.

Rules, in priority order:
  1. the region's label maps directly to a role in the configuration
  2. small, compact polygons bridging two wall ends are doors
  3. anything else is unknown (kept for manual inspection)
"""

import logging
import math
from typing import List, Optional, Sequence, Tuple

from shapely.geometry import GeometryCollection, MultiPolygon
from shapely.geometry import Polygon as ShapelyPolygon
from shapely.ops import unary_union

from ..config import PipelineConfig
from ..constants import DOOR_MIN_WALL_CONTACTS, Role
from ..raster.segmenter import Region
from .shape import Shape, shape_id_for_region
from .simplifier import Polygon

logger = logging.getLogger(__name__)


def count_polygon_parts(geom) -> int:
    """Number of areal parts in a shapely geometry."""
    if geom is None or geom.is_empty:
        return 0
    if isinstance(geom, ShapelyPolygon):
        return 1 if geom.area > 0 else 0
    if isinstance(geom, (MultiPolygon, GeometryCollection)):
        return sum(count_polygon_parts(g) for g in geom.geoms)
    return 0


def aspect_ratio(polygon: ShapelyPolygon) -> float:
    """
    Long side over short side of the minimum rotated rectangle.

    Returns:
        Aspect ratio >= 1, or inf for degenerate polygons
    """
    rect = polygon.minimum_rotated_rectangle
    if not isinstance(rect, ShapelyPolygon):
        return math.inf

    coords = list(rect.exterior.coords)
    sides = sorted([
        math.dist(coords[0], coords[1]),
        math.dist(coords[1], coords[2]),
    ])
    if sides[0] == 0:
        return math.inf
    return sides[1] / sides[0]


def is_doorway(polygon: Polygon, walls, config: PipelineConfig) -> bool:
    """
    Decide whether a polygon looks like a door filling a wall gap.

    Args:
        polygon: Candidate polygon
        walls: Union of all wall polygons (shapely), or None
        config: Pipeline configuration with door thresholds

    Returns:
        True if the polygon is small, compact and touches walls in at
        least two disjoint places
    """
    if walls is None or walls.is_empty:
        return False

    candidate = polygon.to_shapely()
    if candidate.area > config.door_max_area:
        return False

    if aspect_ratio(candidate) > config.door_max_aspect:
        return False

    contact = walls.intersection(candidate.buffer(config.door_contact_distance))
    return count_polygon_parts(contact) >= DOOR_MIN_WALL_CONTACTS


def classify_shapes(
    items: Sequence[Tuple[Region, Polygon]],
    config: PipelineConfig,
) -> List[Shape]:
    """
    Classify polygons into shapes.

    Args:
        items: (source region, polygon) pairs in ascending region id order
        config: Pipeline configuration

    Returns:
        Shapes in the same order as `items`
    """
    roles: List[Optional[str]] = []
    for region, _ in items:
        rule = config.rule_for(region.label)
        roles.append(rule.role if rule else None)

    wall_polygons = [
        polygon.to_shapely()
        for (_, polygon), role in zip(items, roles)
        if role == Role.WALL
    ]
    walls = unary_union(wall_polygons) if wall_polygons else None

    shapes = []
    for (region, polygon), role in zip(items, roles):
        if role is None:
            role = Role.DOOR if is_doorway(polygon, walls, config) else Role.UNKNOWN
            logger.debug(f"Region {region.region_id} ({region.label}): heuristic role {role}")

        shapes.append(Shape(
            shape_id=shape_id_for_region(region.region_id),
            region_id=region.region_id,
            role=role,
            label=region.label,
            polygon=polygon,
        ))

    counts = {r: sum(1 for s in shapes if s.role == r) for r in Role.ALL}
    logger.info(
        f"Classified {len(shapes)} shapes: " +
        ", ".join(f"{counts[r]} {r}" for r in Role.ALL)
    )
    return shapes
