"""
Contour Tracer Module

Traces region boundaries on the pixel-corner lattice.

Each pixel (x, y) covers the square [x, x+1] x [y, y+1], so contour
vertices are pixel corners and a one-pixel-wide wall still yields an outer
ring and a hole ring that do not overlap. A saddle corner (region pixels on
one diagonal only) is split into two vertices cut back into the pixel each
ring bounds, which keeps every ring simple and the rings disjoint. Coordinates are image
coordinates (y grows downward): "clockwise" means clockwise on screen.
"""

import logging
from dataclasses import dataclass
from typing import List, Tuple, Union

import cv2
import numpy as np

from ..constants import MIN_BOUNDARY_PIXELS, SADDLE_OFFSET
from ..errors import DegenerateRegion
from ..raster.segmenter import Region, Segmentation

logger = logging.getLogger(__name__)

STAGE = "trace"

Point = Tuple[int, int]
Vertex = Tuple[Union[int, float], Union[int, float]]

# Headings in clockwise order: east, south, west, north
DIRECTIONS = ((1, 0), (0, 1), (-1, 0), (0, -1))

# Pixel offsets (relative to a corner) ahead-left and ahead-right of each heading
AHEAD = (
    ((0, -1), (0, 0)),    # east: NE, SE
    ((0, 0), (-1, 0)),    # south: SE, SW
    ((-1, 0), (-1, -1)),  # west: SW, NW
    ((-1, -1), (0, -1)),  # north: NW, NE
)


@dataclass(frozen=True)
class Contour:
    """Closed loop of corner points (first point not repeated)."""
    points: Tuple[Vertex, ...]
    is_hole: bool = False

    def __len__(self) -> int:
        return len(self.points)

    @property
    def signed_area(self) -> float:
        """Shoelace area; positive for clockwise-on-screen rings."""
        pts = self.points
        total = 0
        for i in range(len(pts)):
            x1, y1 = pts[i]
            x2, y2 = pts[(i + 1) % len(pts)]
            total += x1 * y2 - x2 * y1
        return total / 2.0

    @property
    def is_clockwise(self) -> bool:
        return self.signed_area > 0

    def as_array(self) -> np.ndarray:
        return np.array(self.points, dtype=np.float64)


@dataclass(frozen=True)
class TracedRegion:
    """Outer contour plus hole contours of one region."""
    region: Region
    outer: Contour
    holes: Tuple[Contour, ...] = ()


def count_boundary_pixels(mask: np.ndarray) -> int:
    """
    Count region pixels with at least one 4-neighbour outside the region.

    Args:
        mask: Boolean region mask padded by at least one False pixel

    Returns:
        Number of boundary pixels
    """
    interior = (
        mask[1:-1, 1:-1]
        & mask[:-2, 1:-1]
        & mask[2:, 1:-1]
        & mask[1:-1, :-2]
        & mask[1:-1, 2:]
    )
    return int(np.count_nonzero(mask[1:-1, 1:-1] & ~interior))


def follow_boundary(mask: np.ndarray, join_diagonals: bool = True) -> List[Point]:
    """
    Walk the outer boundary of the component containing the first
    row-major True pixel of `mask`.

    The walk starts at the top-left corner of that pixel heading east and
    keeps the region on its right, so the ring is clockwise. A vertex is
    emitted only where the heading changes.

    Args:
        mask: Boolean mask padded by at least one False pixel
        join_diagonals: At a saddle corner (two diagonal region pixels),
            walk around both pixels (True) or between them (False)

    Returns:
        Corner points in mask coordinates
    """
    at = mask.item
    start_index = int(np.argmax(mask))
    start = (start_index % mask.shape[1], start_index // mask.shape[1])

    cx, cy = start
    heading = 0
    points = [start]

    while True:
        dx, dy = DIRECTIONS[heading]
        cx += dx
        cy += dy
        if (cx, cy) == start:
            break

        (lx, ly), (rx, ry) = AHEAD[heading]
        left = at(cy + ly, cx + lx)
        right = at(cy + ry, cx + rx)

        if right and not left:
            turn = heading
        elif left and right:
            turn = (heading + 3) % 4
        elif not left:
            turn = (heading + 1) % 4
        else:
            # Saddle
            turn = (heading + 3) % 4 if join_diagonals else (heading + 1) % 4

        if turn != heading:
            points.append((cx, cy))
            heading = turn

    return points


def is_saddle_corner(mask: np.ndarray, x: int, y: int) -> bool:
    """True if corner (x, y) of a padded mask has mask pixels on one diagonal only."""
    nw = mask.item(y - 1, x - 1)
    ne = mask.item(y - 1, x)
    sw = mask.item(y, x - 1)
    se = mask.item(y, x)
    return nw == se and ne == sw and nw != ne


def _step(delta: int) -> int:
    return (delta > 0) - (delta < 0)


def split_saddle_corners(
    points: List[Point],
    mask: np.ndarray,
    offset: float = SADDLE_OFFSET,
) -> List[Vertex]:
    """
    Replace each saddle corner of `mask` on a ring with two vertices.

    The corner is cut back by `offset` along its incoming and outgoing
    edges. Every pass through a saddle turns, and the cut always falls in
    the pixel the pass turns around, so two passes through one corner (or
    two rings meeting there) end up apart.

    Args:
        points: Ring vertices in mask coordinates
        mask: Padded region mask the saddles are judged on
        offset: Cut-back distance in pixels

    Returns:
        Ring vertices with saddle corners split
    """
    count = len(points)
    result: List[Vertex] = []
    for i, (x, y) in enumerate(points):
        if not is_saddle_corner(mask, x, y):
            result.append((x, y))
            continue

        px, py = points[i - 1]
        nx, ny = points[(i + 1) % count]
        result.append((x - offset * _step(x - px), y - offset * _step(y - py)))
        result.append((x + offset * _step(nx - x), y + offset * _step(ny - y)))
    return result


def _rotate_to_top_left(points: List[Vertex]) -> List[Vertex]:
    """Rotate a ring so it starts at its topmost-leftmost vertex."""
    start = min(range(len(points)), key=lambda i: (points[i][1], points[i][0]))
    return points[start:] + points[:start]


def find_hole_masks(mask: np.ndarray) -> List[np.ndarray]:
    """
    Find enclosed complement components of a padded region mask.

    Args:
        mask: Boolean region mask padded by one False pixel on every side

    Returns:
        Boolean masks (same shape) of each hole, in row-major discovery order
    """
    complement = (~mask).astype(np.uint8)
    count, labels = cv2.connectedComponents(complement, connectivity=4)
    if count <= 2:
        return []

    # The padding frame is one connected exterior component
    exterior = labels[0, 0]
    values, first_index = np.unique(labels.ravel(), return_index=True)
    order = sorted(
        (index, value)
        for value, index in zip(values.tolist(), first_index.tolist())
        if value != 0 and value != exterior
    )
    return [labels == value for _, value in order]


def trace_region(segmentation: Segmentation, region: Region) -> TracedRegion:
    """
    Trace the outer contour and hole contours of one region.

    Args:
        segmentation: Segmentation owning the region's label map
        region: Non-background region to trace

    Returns:
        TracedRegion with a clockwise outer contour and counter-clockwise holes

    Raises:
        DegenerateRegion: If the region has fewer than 3 boundary pixels
    """
    mask, x0, y0 = segmentation.region_mask(region, pad=1)

    boundary_pixels = count_boundary_pixels(mask)
    if boundary_pixels < MIN_BOUNDARY_PIXELS:
        raise DegenerateRegion(
            f"Region has {boundary_pixels} boundary pixels",
            stage=STAGE,
            region_id=region.region_id,
        )

    outer_points = split_saddle_corners(follow_boundary(mask, join_diagonals=True), mask)
    outer = Contour(points=tuple((x + x0, y + y0) for x, y in outer_points))

    holes = []
    for hole_mask in find_hole_masks(mask):
        ring = follow_boundary(hole_mask, join_diagonals=False)
        ring = _rotate_to_top_left(split_saddle_corners(ring[:1] + ring[1:][::-1], mask))
        holes.append(Contour(
            points=tuple((x + x0, y + y0) for x, y in ring),
            is_hole=True,
        ))

    logger.debug(
        f"Region {region.region_id} ({region.label}): outer {len(outer)} vertices, "
        f"{len(holes)} holes"
    )
    return TracedRegion(region=region, outer=outer, holes=tuple(holes))
