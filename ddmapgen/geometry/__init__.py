# Geometry module: contour tracing, simplification, classification

from .contour import (
    Contour,
    TracedRegion,
    count_boundary_pixels,
    follow_boundary,
    find_hole_masks,
    is_saddle_corner,
    split_saddle_corners,
    trace_region,
)

from .simplifier import (
    Polygon,
    douglas_peucker,
    max_deviation,
    check_topology,
    repair_polygon,
    simplify_contours,
)

from .shape import (
    Shape,
    shape_id_for_region,
)

from .classifier import (
    is_doorway,
    classify_shapes,
)

__all__ = [
    # Contour
    "Contour",
    "TracedRegion",
    "count_boundary_pixels",
    "follow_boundary",
    "find_hole_masks",
    "is_saddle_corner",
    "split_saddle_corners",
    "trace_region",
    # Simplifier
    "Polygon",
    "douglas_peucker",
    "max_deviation",
    "check_topology",
    "repair_polygon",
    "simplify_contours",
    # Shape
    "Shape",
    "shape_id_for_region",
    # Classifier
    "is_doorway",
    "classify_shapes",
]
