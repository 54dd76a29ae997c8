# Raster image loading and segmentation module

from .loader import (
    PixelGrid,
    pixel_grid_from_array,
    load_image,
)

from .segmenter import (
    Region,
    Segmentation,
    classify_pixels,
    segment,
)

__all__ = [
    # Loader
    "PixelGrid",
    "pixel_grid_from_array",
    "load_image",
    # Segmenter
    "Region",
    "Segmentation",
    "classify_pixels",
    "segment",
]
