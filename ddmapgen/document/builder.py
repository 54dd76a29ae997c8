"""
Map Document Builder Module

Assembles classified shapes and image metadata into a MapDocument.
"""

import hashlib
import logging
from pathlib import Path
from typing import Iterable, Sequence

from ..config import PipelineConfig
from ..constants import BACKGROUND_REGION_ID
from ..errors import EmptyDocument
from ..geometry.shape import Shape
from ..raster.loader import PixelGrid
from .model import MapDocument, SourceImage

logger = logging.getLogger(__name__)

STAGE = "build"


def file_sha256(path: str) -> str:
    """
    SHA-256 digest of a file, or "" if it is not a readable file.

    Args:
        path: File path

    Returns:
        Hex digest
    """
    file_path = Path(path)
    if not file_path.is_file():
        return ""

    digest = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(1 << 16), b""):
            digest.update(chunk)
    return digest.hexdigest()


def describe_source(grid: PixelGrid) -> SourceImage:
    return SourceImage(
        path=grid.source_path,
        format=grid.format,
        width=grid.width,
        height=grid.height,
        sha256=file_sha256(grid.source_path),
    )


def build_document(
    shapes: Sequence[Shape],
    grid: PixelGrid,
    config: PipelineConfig,
    warnings: Iterable[str] = (),
) -> MapDocument:
    """
    Build the map document for one run.

    Shapes are ordered by ascending region id, the row-major discovery
    order of the segmentation, which is the layering order of the map.

    Args:
        shapes: Classified shapes
        grid: Source pixel grid (dimensions and metadata)
        config: Pipeline configuration (scale)
        warnings: Non-fatal warnings collected during the run

    Returns:
        MapDocument

    Raises:
        EmptyDocument: If there are no non-background shapes
    """
    ordered = tuple(sorted(
        (s for s in shapes if s.region_id != BACKGROUND_REGION_ID),
        key=lambda s: s.region_id,
    ))

    if not ordered:
        raise EmptyDocument(
            f"No shapes detected in {grid.source_path}", stage=STAGE
        )

    document = MapDocument(
        width=grid.width,
        height=grid.height,
        scale=config.scale,
        shapes=ordered,
        source=describe_source(grid),
        warnings=list(warnings),
    )

    counts = document.role_counts()
    logger.info(
        f"Built map document: {len(ordered)} shapes, "
        f"{document.grid_width:.1f}x{document.grid_height:.1f} grid units "
        f"({counts})"
    )
    return document
