"""
Polygon Simplifier Module

Douglas-Peucker reduction of traced contours with a topology check.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np
import shapely
from shapely.geometry import GeometryCollection, LinearRing, MultiPolygon
from shapely.geometry import Polygon as ShapelyPolygon
from shapely.geometry.polygon import orient
from shapely.validation import make_valid

from ..constants import (
    COINCIDENT_EPSILON,
    DEFAULT_SIMPLIFY_RETRIES,
    DEFAULT_SIMPLIFY_TOLERANCE,
    MIN_VERTICES,
)
from .contour import Contour

logger = logging.getLogger(__name__)

Vertex = Tuple[float, float]
Ring = Tuple[Vertex, ...]


@dataclass(frozen=True)
class Polygon:
    """Simplified polygon: clockwise exterior plus counter-clockwise holes."""
    exterior: Ring
    holes: Tuple[Ring, ...] = ()
    tolerance_used: float = 0.0
    simplified: bool = False
    repaired: bool = False

    @property
    def vertex_count(self) -> int:
        return len(self.exterior)

    @property
    def area(self) -> float:
        return self.to_shapely().area

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """(min_x, min_y, max_x, max_y)"""
        xs = [p[0] for p in self.exterior]
        ys = [p[1] for p in self.exterior]
        return (min(xs), min(ys), max(xs), max(ys))

    def to_shapely(self) -> ShapelyPolygon:
        return ShapelyPolygon(self.exterior, self.holes)


def get_largest_polygon(geom) -> Optional[ShapelyPolygon]:
    """
    Extract the largest polygon from a geometry.

    Args:
        geom: Shapely Polygon, MultiPolygon or GeometryCollection

    Returns:
        Largest Polygon or None if the geometry holds none
    """
    if geom is None or geom.is_empty:
        return None
    if isinstance(geom, ShapelyPolygon):
        return geom
    if isinstance(geom, (MultiPolygon, GeometryCollection)):
        polygons = [g for g in (get_largest_polygon(p) for p in geom.geoms) if g is not None]
        if not polygons:
            return None
        return max(polygons, key=lambda p: p.area)
    return None


def _simplify_chain(chain: np.ndarray, tolerance: float) -> List[int]:
    """
    Douglas-Peucker on an open chain with cv2.approxPolyDP.

    Returns:
        Indices of the kept chain vertices, endpoints included
    """
    points = chain.astype(np.float32).reshape(-1, 1, 2)
    approx = cv2.approxPolyDP(points, tolerance, closed=False).reshape(-1, 2)

    kept = {0, len(chain) - 1}
    index = 0
    for point in approx:
        while index < len(chain) and not np.array_equal(points[index, 0], point):
            index += 1
        if index < len(chain):
            kept.add(index)
    return sorted(kept)


def remove_duplicate_points(ring: Sequence[Vertex]) -> List[Vertex]:
    """Drop consecutive (and wrap-around) coincident vertices."""
    result: List[Vertex] = []
    for point in ring:
        if result and abs(point[0] - result[-1][0]) <= COINCIDENT_EPSILON \
                and abs(point[1] - result[-1][1]) <= COINCIDENT_EPSILON:
            continue
        result.append(point)
    while len(result) > 1 and abs(result[0][0] - result[-1][0]) <= COINCIDENT_EPSILON \
            and abs(result[0][1] - result[-1][1]) <= COINCIDENT_EPSILON:
        result.pop()
    return result


def douglas_peucker(ring: Sequence[Tuple[float, float]], tolerance: float) -> List[Vertex]:
    """
    Simplify a closed ring.

    The ring is split at its first vertex and the vertex farthest from it;
    both chains are reduced independently with cv2.approxPolyDP so the
    first vertex is kept. Every dropped vertex lies within `tolerance`
    (perpendicular distance) of the simplified ring.

    Args:
        ring: Closed ring vertices (first point not repeated)
        tolerance: Maximum deviation in source pixels

    Returns:
        Simplified ring vertices
    """
    points = [(float(x), float(y)) for x, y in ring]
    if len(points) <= MIN_VERTICES or tolerance <= 0:
        return remove_duplicate_points(points)

    array = np.array(points, dtype=np.float64)
    distances = np.hypot(array[:, 0] - array[0, 0], array[:, 1] - array[0, 1])
    split = int(np.argmax(distances))
    if split == 0:
        return remove_duplicate_points(points)

    first_chain = array[:split + 1]
    second_chain = np.vstack([array[split:], array[:1]])

    keep_first = _simplify_chain(first_chain, tolerance)
    keep_second = _simplify_chain(second_chain, tolerance)

    kept = [points[i] for i in keep_first[:-1]]
    kept += [points[split + i] for i in keep_second[:-1]]
    return remove_duplicate_points(kept)


def check_topology(exterior: Sequence[Vertex], holes: Sequence[Sequence[Vertex]]) -> bool:
    """
    Check that a polygon is simple and its holes are strictly inside it.

    Args:
        exterior: Exterior ring vertices
        holes: Hole ring vertices

    Returns:
        True if every ring has >= 3 vertices, no ring self-intersects,
        every hole lies strictly inside the exterior and holes are disjoint
    """
    if len(exterior) < MIN_VERTICES or any(len(h) < MIN_VERTICES for h in holes):
        return False

    shell = ShapelyPolygon(exterior)
    if not shell.is_valid or shell.area <= 0:
        return False

    hole_polygons = []
    for hole in holes:
        hole_polygon = ShapelyPolygon(hole)
        if not hole_polygon.is_valid or hole_polygon.area <= 0:
            return False
        if not shell.contains_properly(hole_polygon):
            return False
        hole_polygons.append(hole_polygon)

    for i, first in enumerate(hole_polygons):
        for second in hole_polygons[i + 1:]:
            if first.intersects(second):
                return False

    return ShapelyPolygon(exterior, holes).is_valid


def _rotate_to_top_left(ring: List[Vertex]) -> Ring:
    start = min(range(len(ring)), key=lambda i: (ring[i][1], ring[i][0]))
    return tuple(ring[start:] + ring[:start])


def _from_shapely(polygon: ShapelyPolygon) -> Tuple[Ring, Tuple[Ring, ...]]:
    """Rings of a shapely polygon, clockwise exterior on screen (y down)."""
    oriented = orient(polygon, sign=1.0)
    exterior = remove_duplicate_points(list(oriented.exterior.coords)[:-1])
    holes = tuple(
        _rotate_to_top_left(remove_duplicate_points(list(ring.coords)[:-1]))
        for ring in oriented.interiors
    )
    return _rotate_to_top_left(exterior), holes


def max_deviation(original: Sequence[Vertex], simplified: Sequence[Vertex]) -> float:
    """Largest distance from an original vertex to the simplified ring."""
    ring = LinearRing(simplified)
    points = shapely.points(np.asarray(original, dtype=np.float64))
    return float(shapely.distance(ring, points).max())


def _within_tolerance(
    outer: Contour,
    holes: Sequence[Contour],
    exterior: Sequence[Vertex],
    hole_rings: Sequence[Sequence[Vertex]],
    tolerance: float,
) -> bool:
    limit = tolerance + COINCIDENT_EPSILON
    if max_deviation(outer.points, exterior) > limit:
        return False
    return all(max_deviation(h.points, r) <= limit for h, r in zip(holes, hole_rings))


def repair_polygon(
    exterior: Sequence[Vertex],
    holes: Sequence[Sequence[Vertex]],
    region_id: Optional[int] = None,
) -> Optional[Polygon]:
    """
    Make an invalid polygon valid, keeping its largest piece.

    Returns:
        Repaired Polygon, or None if nothing with area remains or the
        repaired piece still fails the topology check
    """
    fixed = get_largest_polygon(make_valid(ShapelyPolygon(exterior, holes)))
    if fixed is None or fixed.area <= 0:
        return None

    fixed_exterior, fixed_holes = _from_shapely(fixed)
    if not check_topology(fixed_exterior, fixed_holes):
        logger.warning(f"Region {region_id}: boundary could not be repaired")
        return None

    logger.warning(f"Region {region_id}: repaired self-touching boundary")
    return Polygon(exterior=fixed_exterior, holes=fixed_holes, repaired=True)


def simplify_contours(
    outer: Contour,
    holes: Sequence[Contour] = (),
    tolerance: float = DEFAULT_SIMPLIFY_TOLERANCE,
    retries: int = DEFAULT_SIMPLIFY_RETRIES,
    region_id: Optional[int] = None,
) -> Optional[Polygon]:
    """
    Reduce a region's contours to a polygon with holes.

    Each attempt simplifies the outer contour and every hole independently.
    If the result fails the topology check or strays further than the
    tolerance from the traced contour, the tolerance is halved and
    simplification retried; after `retries` attempts the unsimplified
    contours are used, provided they pass the same topology check.

    Args:
        outer: Outer contour (clockwise)
        holes: Hole contours (counter-clockwise)
        tolerance: Douglas-Peucker tolerance in source pixels
        retries: Number of attempts before falling back
        region_id: Region id for log messages

    Returns:
        Polygon, or None if even the unsimplified contour has no valid area
    """
    current = tolerance
    for attempt in range(1, retries + 1):
        exterior = douglas_peucker(outer.points, current)
        hole_rings = [douglas_peucker(h.points, current) for h in holes]

        if check_topology(exterior, hole_rings) and \
                _within_tolerance(outer, holes, exterior, hole_rings, current):
            if attempt > 1:
                logger.debug(
                    f"Region {region_id}: simplified at tolerance {current:g} "
                    f"(attempt {attempt})"
                )
            return Polygon(
                exterior=tuple(exterior),
                holes=tuple(tuple(h) for h in hole_rings),
                tolerance_used=current,
                simplified=current > 0,
            )

        current /= 2.0

    logger.warning(
        f"Region {region_id}: simplification broke topology {retries} times, "
        f"keeping unsimplified contour"
    )

    exterior = remove_duplicate_points([(float(x), float(y)) for x, y in outer.points])
    hole_rings = [
        remove_duplicate_points([(float(x), float(y)) for x, y in h.points]) for h in holes
    ]

    if check_topology(exterior, hole_rings):
        return Polygon(exterior=tuple(exterior), holes=tuple(tuple(h) for h in hole_rings))

    return repair_polygon(exterior, hole_rings, region_id)
