"""
Image Loader Module

Decodes raster images into an immutable RGB pixel grid.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from PIL import Image, UnidentifiedImageError

from ..constants import ALPHA_COMPOSITE_COLOR, SUPPORTED_IMAGE_FORMATS
from ..errors import InvalidImage

logger = logging.getLogger(__name__)

STAGE = "load"


@dataclass(frozen=True)
class PixelGrid:
    """Decoded image: (height, width, 3) uint8 RGB array, read-only."""
    pixels: np.ndarray
    source_path: str = "<memory>"
    format: str = "RAW"

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0


def _to_rgb(image: Image.Image) -> Image.Image:
    """Flatten any Pillow mode to RGB, compositing transparency on white."""
    if image.mode == "RGB":
        return image

    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGBA", rgba.size, ALPHA_COMPOSITE_COLOR + (255,))
        return Image.alpha_composite(background, rgba).convert("RGB")

    return image.convert("RGB")


def pixel_grid_from_array(array: np.ndarray, source_path: str = "<memory>") -> PixelGrid:
    """
    Build a pixel grid from an in-memory array.

    Args:
        array: (H, W) greyscale or (H, W, 3) RGB array
        source_path: Name recorded as the grid's source

    Returns:
        PixelGrid owning a read-only copy of the data

    Raises:
        InvalidImage: If the array has an unsupported shape or zero size
    """
    data = np.asarray(array)
    if data.ndim == 2:
        data = np.repeat(data[:, :, np.newaxis], 3, axis=2)
    if data.ndim != 3 or data.shape[2] != 3:
        raise InvalidImage(f"Unsupported pixel array shape {data.shape}", stage=STAGE)

    pixels = np.ascontiguousarray(data, dtype=np.uint8).copy()
    pixels.flags.writeable = False

    grid = PixelGrid(pixels=pixels, source_path=source_path)
    if grid.is_empty():
        raise InvalidImage(f"Image has zero dimensions: {source_path}", stage=STAGE)
    return grid


def load_image(path: str) -> PixelGrid:
    """
    Decode an image file into a PixelGrid.

    Args:
        path: Path to a PNG, JPEG, BMP, GIF or TIFF image

    Returns:
        PixelGrid with RGB pixels

    Raises:
        InvalidImage: If the file is missing, empty, unreadable or zero-sized
    """
    image_path = Path(path)

    if not image_path.is_file():
        raise InvalidImage(f"Image file not found: {path}", stage=STAGE)

    if image_path.stat().st_size == 0:
        raise InvalidImage(f"Image file is empty: {path}", stage=STAGE)

    try:
        with Image.open(image_path) as image:
            image_format = image.format or "UNKNOWN"
            if image_format not in SUPPORTED_IMAGE_FORMATS:
                raise InvalidImage(
                    f"Unsupported image format {image_format}: {path}", stage=STAGE
                )
            image.load()
            rgb = _to_rgb(image)
            pixels = np.array(rgb, dtype=np.uint8)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise InvalidImage(f"Cannot decode image {path}: {e}", stage=STAGE) from e

    grid = pixel_grid_from_array(pixels, source_path=str(image_path))
    grid = PixelGrid(pixels=grid.pixels, source_path=grid.source_path, format=image_format)

    logger.info(f"Loaded {path}: {grid.width}x{grid.height} {image_format}")
    return grid
