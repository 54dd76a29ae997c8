"""
Shape Preview Module

Text summary and annotated image of detected shapes.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence

import cv2
import numpy as np

from ..constants import Role
from ..errors import SerializationFailure
from ..geometry.shape import Shape
from ..raster.loader import PixelGrid

logger = logging.getLogger(__name__)

# BGR colours per role
ROLE_COLORS = {
    Role.WALL: (0, 200, 0),
    Role.FLOOR: (255, 128, 0),
    Role.DOOR: (0, 165, 255),
    Role.UNKNOWN: (255, 0, 255),
}


def format_shape_line(shape: Shape) -> str:
    """
    One summary line for a shape.

    Example:
        shape_0001 wall: 8 vertices @ (10, 10) size 81x81 area 640.0 holes 1
    """
    min_x, min_y, max_x, max_y = shape.polygon.bounds
    return (
        f"{shape.shape_id} {shape.role}: {shape.polygon.vertex_count} vertices "
        f"@ ({min_x:g}, {min_y:g}) size {max_x - min_x:g}x{max_y - min_y:g} "
        f"area {shape.area:.1f} holes {len(shape.polygon.holes)}"
    )


def format_shape_summary(shapes: Sequence[Shape]) -> List[str]:
    """Summary lines for all shapes, followed by per-role totals."""
    if not shapes:
        return ["No shapes detected"]

    lines = [format_shape_line(s) for s in shapes]
    totals = ", ".join(
        f"{sum(1 for s in shapes if s.role == role)} {role}" for role in Role.ALL
    )
    lines.append(f"{len(shapes)} shapes ({totals})")
    return lines


def default_render_path(image_path: str) -> Path:
    """map.png -> map.shapes.png"""
    return Path(image_path).with_suffix(".shapes.png")


def draw_shapes(grid: PixelGrid, shapes: Sequence[Shape], thickness: int = 1) -> np.ndarray:
    """
    Draw shape outlines over the source image.

    Returns:
        BGR image
    """
    canvas = cv2.cvtColor(np.array(grid.pixels), cv2.COLOR_RGB2BGR)
    for shape in shapes:
        color = ROLE_COLORS[shape.role]
        rings = [shape.polygon.exterior] + list(shape.polygon.holes)
        polylines = [np.round(np.array(ring)).astype(np.int32).reshape(-1, 1, 2) for ring in rings]
        cv2.polylines(canvas, polylines, True, color, thickness, cv2.LINE_8)
    return canvas


def render_shapes(
    grid: PixelGrid,
    shapes: Sequence[Shape],
    output_path: Optional[str] = None,
) -> Path:
    """
    Write a PNG of the source image with shapes drawn on it.

    Args:
        grid: Source pixel grid
        shapes: Shapes to draw
        output_path: Destination (defaults to <image>.shapes.png)

    Returns:
        Path of the written image

    Raises:
        SerializationFailure: If the image cannot be written
    """
    path = Path(output_path) if output_path else default_render_path(grid.source_path)
    canvas = draw_shapes(grid, shapes)

    try:
        written = cv2.imwrite(str(path), canvas)
    except cv2.error as e:
        raise SerializationFailure(f"Cannot write preview image {path}: {e}", stage="preview") from e
    if not written:
        raise SerializationFailure(f"Cannot write preview image: {path}", stage="preview")

    logger.info(f"Shapes image written: {path}")
    return path
