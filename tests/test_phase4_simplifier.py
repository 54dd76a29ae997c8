"""
Phase 4 Tests: Polygon Simplification

Tests for Douglas-Peucker reduction, topology checks and fallbacks.
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import cv2
import numpy as np
from shapely.geometry import LinearRing, MultiPolygon, Point
from shapely.geometry import Polygon as ShapelyPolygon

from ddmapgen.config import PipelineConfig
from ddmapgen.raster import pixel_grid_from_array, segment
from ddmapgen.geometry import (
    Contour,
    Polygon,
    check_topology,
    douglas_peucker,
    max_deviation,
    repair_polygon,
    simplify_contours,
    trace_region,
)
from ddmapgen.geometry.simplifier import get_largest_polygon, remove_duplicate_points


SQUARE = [(0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0)]


def traced_circle(radius: int = 20):
    """Trace a filled black disc."""
    size = radius * 3
    image = np.full((size, size, 3), 255, dtype=np.uint8)
    cv2.circle(image, (size // 2, size // 2), radius, (0, 0, 0), -1)
    grid = pixel_grid_from_array(image)
    segmentation = segment(grid, PipelineConfig())
    return trace_region(segmentation, segmentation.foreground_regions()[0])


def test_douglas_peucker_removes_collinear():
    """Test collinear vertices are dropped."""
    ring = [(0, 0), (5, 0), (10, 0), (10, 10), (0, 10)]

    result = douglas_peucker(ring, 0.5)

    assert result == SQUARE

    print("  [PASS] Collinear vertices removed")
    return True


def test_douglas_peucker_zero_tolerance():
    """Test zero tolerance keeps every vertex."""
    ring = [(0, 0), (5, 0), (10, 0), (10, 10), (0, 10)]

    result = douglas_peucker(ring, 0.0)

    assert len(result) == 5
    assert result[0] == (0.0, 0.0)

    print("  [PASS] Zero tolerance")
    return True


def test_simplified_deviation_within_tolerance():
    """Test every traced vertex stays within tolerance of the simplified ring."""
    traced = traced_circle()
    tolerance = 1.5

    polygon = simplify_contours(traced.outer, traced.holes, tolerance=tolerance)

    assert polygon.simplified
    assert polygon.vertex_count < len(traced.outer)
    assert polygon.to_shapely().is_valid

    ring = LinearRing(polygon.exterior)
    worst = max(ring.distance(Point(p)) for p in traced.outer.points)
    assert worst <= polygon.tolerance_used + 1e-9, f"Deviation {worst} too large"

    print(f"  [PASS] Deviation {worst:.2f} <= {polygon.tolerance_used}")
    return True


def test_simplified_keeps_orientation():
    """Test the simplified exterior stays clockwise and starts at the traced start."""
    traced = traced_circle(15)

    polygon = simplify_contours(traced.outer, tolerance=1.0)

    assert polygon.exterior[0] == tuple(float(v) for v in traced.outer.points[0])
    assert Contour(points=polygon.exterior).is_clockwise

    print("  [PASS] Orientation preserved")
    return True


def test_max_deviation():
    """Test deviation is measured from original vertices to the simplified ring."""
    original = [(0, 0), (5, 1), (10, 0), (10, 10), (0, 10)]

    assert max_deviation(original, SQUARE) == 1.0
    assert max_deviation(SQUARE, SQUARE) == 0.0

    print("  [PASS] Maximum deviation")
    return True


def test_diagonal_link_simplifies_without_repair():
    """Test a region joined at one corner simplifies to one valid ring."""
    image = np.full((16, 16, 3), 255, dtype=np.uint8)
    image[4:8, 4:8] = 0
    image[8:12, 8:12] = 0
    segmentation = segment(pixel_grid_from_array(image), PipelineConfig(connectivity=8))
    region = segmentation.foreground_regions()[0]
    traced = trace_region(segmentation, region)

    exact = simplify_contours(traced.outer, tolerance=0.0)
    assert exact is not None and not exact.repaired
    assert abs(exact.to_shapely().area - region.pixel_count) < 0.01

    simplified = simplify_contours(traced.outer, tolerance=1.5)
    assert simplified is not None and not simplified.repaired
    assert simplified.to_shapely().is_valid

    print("  [PASS] Diagonal link simplifies without repair")
    return True


def test_check_topology_valid():
    """Test valid polygons pass the topology check."""
    hole = [(2.0, 2.0), (2.0, 4.0), (4.0, 4.0), (4.0, 2.0)]

    assert check_topology(SQUARE, [])
    assert check_topology(SQUARE, [hole])

    print("  [PASS] Valid topology")
    return True


def test_check_topology_violations():
    """Test the topology check rejects broken polygons."""
    touching_hole = [(0.0, 2.0), (0.0, 4.0), (4.0, 4.0), (4.0, 2.0)]
    outside_hole = [(20.0, 20.0), (20.0, 22.0), (22.0, 22.0), (22.0, 20.0)]
    hole_a = [(2.0, 2.0), (2.0, 6.0), (6.0, 6.0), (6.0, 2.0)]
    hole_b = [(4.0, 4.0), (4.0, 8.0), (8.0, 8.0), (8.0, 4.0)]
    bowtie = [(0.0, 0.0), (10.0, 10.0), (10.0, 0.0), (0.0, 10.0)]

    assert not check_topology(SQUARE[:2], [])
    assert not check_topology(bowtie, [])
    assert not check_topology(SQUARE, [touching_hole])
    assert not check_topology(SQUARE, [outside_hole])
    assert not check_topology(SQUARE, [hole_a, hole_b])

    print("  [PASS] Topology violations rejected")
    return True


def test_retry_with_reduced_tolerance():
    """Test a collapsing simplification is retried at half tolerance."""
    outer = Contour(points=((0, 0), (10, 0), (10, 10), (0, 10)))

    polygon = simplify_contours(outer, tolerance=8.0, retries=4)

    assert polygon.tolerance_used == 4.0
    assert polygon.simplified
    assert list(polygon.exterior) == SQUARE

    print("  [PASS] Retry at reduced tolerance")
    return True


def test_fallback_to_unsimplified():
    """Test exhausted retries keep the traced contour."""
    points = ((0, 0), (20, 0), (20, 4), (11, 4), (11, 6), (20, 6), (20, 10), (0, 10))
    outer = Contour(points=points)

    polygon = simplify_contours(outer, tolerance=100.0, retries=2)

    assert not polygon.simplified
    assert not polygon.repaired
    assert polygon.tolerance_used == 0.0
    assert list(polygon.exterior) == [(float(x), float(y)) for x, y in points]

    print("  [PASS] Fallback to unsimplified contour")
    return True


def test_fallback_rejects_touching_hole():
    """Test the unsimplified fallback still requires holes strictly inside."""
    outer = Contour(points=((6, 5), (8, 5), (8, 8), (5, 8), (5, 6), (6, 6)))
    hole = Contour(points=((6, 6), (6, 7), (7, 7), (7, 6)), is_hole=True)

    # Shapely alone accepts a hole touching the shell at one point
    assert ShapelyPolygon(outer.points, [hole.points]).is_valid
    assert not check_topology(outer.points, [hole.points])

    assert simplify_contours(outer, [hole], tolerance=0.0, retries=1) is None

    print("  [PASS] Fallback rejects a touching hole")
    return True


def test_repair_pinched_contour():
    """Test a self-touching contour is repaired to its largest valid piece."""
    outer = Contour(points=(
        (4, 4), (8, 4), (8, 8), (12, 8), (12, 12), (8, 12), (8, 8), (4, 8)
    ))

    polygon = simplify_contours(outer, tolerance=1.5, retries=2)

    assert polygon is not None
    assert polygon.repaired
    assert polygon.to_shapely().is_valid
    assert abs(polygon.area - 16.0) < 1e-9
    assert Contour(points=polygon.exterior).is_clockwise

    print("  [PASS] Pinched contour repaired")
    return True


def test_repair_polygon_nothing_left():
    """Test repair gives up on zero-area input."""
    flat = [(0.0, 0.0), (5.0, 0.0), (10.0, 0.0)]

    assert repair_polygon(flat, []) is None

    print("  [PASS] Zero-area repair returns None")
    return True


def test_get_largest_polygon():
    """Test largest piece extraction."""
    small = ShapelyPolygon([(0, 0), (1, 0), (1, 1), (0, 1)])
    large = ShapelyPolygon([(5, 5), (9, 5), (9, 9), (5, 9)])

    assert get_largest_polygon(MultiPolygon([small, large])).equals(large)
    assert get_largest_polygon(small) is small
    assert get_largest_polygon(None) is None

    print("  [PASS] Largest polygon extraction")
    return True


def test_remove_duplicate_points():
    """Test consecutive and wrap-around duplicates are dropped."""
    ring = [(0.0, 0.0), (0.0, 0.0), (4.0, 0.0), (4.0, 4.0), (0.0, 0.0)]

    assert remove_duplicate_points(ring) == [(0.0, 0.0), (4.0, 0.0), (4.0, 4.0)]

    print("  [PASS] Duplicate points removed")
    return True


def test_polygon_properties():
    """Test Polygon helpers."""
    polygon = Polygon(
        exterior=tuple(SQUARE),
        holes=(((2.0, 2.0), (2.0, 4.0), (4.0, 4.0), (4.0, 2.0)),),
    )

    assert polygon.vertex_count == 4
    assert polygon.bounds == (0.0, 0.0, 10.0, 10.0)
    assert polygon.area == 96.0

    print("  [PASS] Polygon properties")
    return True


def run_all_tests():
    """Run all Phase 4 tests."""
    print("\n" + "=" * 60)
    print("Phase 4 Tests: Polygon Simplification")
    print("=" * 60)

    results = []

    print("\nDouglas-Peucker Tests:")
    results.append(test_douglas_peucker_removes_collinear())
    results.append(test_douglas_peucker_zero_tolerance())
    results.append(test_simplified_deviation_within_tolerance())
    results.append(test_simplified_keeps_orientation())
    results.append(test_max_deviation())
    results.append(test_diagonal_link_simplifies_without_repair())

    print("\nTopology Tests:")
    results.append(test_check_topology_valid())
    results.append(test_check_topology_violations())

    print("\nRecovery Tests:")
    results.append(test_retry_with_reduced_tolerance())
    results.append(test_fallback_to_unsimplified())
    results.append(test_fallback_rejects_touching_hole())
    results.append(test_repair_pinched_contour())
    results.append(test_repair_polygon_nothing_left())

    print("\nHelper Tests:")
    results.append(test_get_largest_polygon())
    results.append(test_remove_duplicate_points())
    results.append(test_polygon_properties())

    passed = sum(results)
    total = len(results)
    print("\n" + "=" * 60)
    print(f"Phase 4 Results: {passed}/{total} tests passed")
    print("=" * 60)

    return passed == total


if __name__ == "__main__":
    success = run_all_tests()
    sys.exit(0 if success else 1)
