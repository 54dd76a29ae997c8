"""
Segmenter Module

Partitions a pixel grid into connected regions of uniform classification.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Tuple

import cv2
import numpy as np

from ..config import PipelineConfig
from ..constants import BACKGROUND_REGION_ID
from ..errors import InvalidImage
from .loader import PixelGrid

logger = logging.getLogger(__name__)

STAGE = "segment"


@dataclass(frozen=True)
class Region:
    """A maximal connected set of pixels sharing one classification."""
    region_id: int
    label: str
    pixel_count: int
    bbox: Tuple[int, int, int, int]  # x, y, width, height
    is_background: bool = False


@dataclass
class Segmentation:
    """Region labelling for a whole pixel grid."""
    labels: np.ndarray  # int32 region id per pixel
    regions: List[Region]  # indexed by region id, background first
    matched_pixels: int = 0
    discarded_count: int = 0
    exterior_count: int = 0

    @property
    def background(self) -> Region:
        return self.regions[BACKGROUND_REGION_ID]

    def foreground_regions(self) -> List[Region]:
        """Non-background regions in ascending id order."""
        return self.regions[BACKGROUND_REGION_ID + 1:]

    def region_mask(self, region: Region, pad: int = 0) -> Tuple[np.ndarray, int, int]:
        """
        Boolean mask of one region, cropped to its bounding box.

        Args:
            region: Region to extract
            pad: Extra rows/columns of False around the crop

        Returns:
            Tuple of (mask, x_origin, y_origin) where origin is the image
            coordinate of mask[0, 0]
        """
        x, y, w, h = region.bbox
        crop = self.labels[y:y + h, x:x + w] == region.region_id
        if pad:
            crop = np.pad(crop, pad, mode="constant", constant_values=False)
        return crop, x - pad, y - pad


def classify_pixels(grid: PixelGrid, config: PipelineConfig) -> Tuple[np.ndarray, int]:
    """
    Assign each pixel the index of the first matching classification rule.

    Args:
        grid: Source pixel grid
        config: Pipeline configuration with classification rules

    Returns:
        Tuple of (class_map, matched_count). class_map holds rule index + 1,
        0 for pixels that match no rule.
    """
    pixels = grid.pixels.astype(np.float32)
    class_map = np.zeros((grid.height, grid.width), dtype=np.int32)
    unassigned = np.ones((grid.height, grid.width), dtype=bool)

    for index, rule in enumerate(config.rules):
        diff = pixels - np.array(rule.color, dtype=np.float32)
        distance_sq = np.einsum("ijk,ijk->ij", diff, diff)
        match = unassigned & (distance_sq <= rule.tolerance ** 2)
        class_map[match] = index + 1
        unassigned &= ~match
        logger.debug(f"Rule '{rule.label}': {int(match.sum())} pixels")

    matched = int(grid.pixel_count - unassigned.sum())
    return class_map, matched


def _touches_border(x: int, y: int, w: int, h: int, width: int, height: int) -> bool:
    return x == 0 or y == 0 or x + w == width or y + h == height


def _background_bbox(labels: np.ndarray) -> Tuple[int, int, int, int]:
    ys, xs = np.nonzero(labels == BACKGROUND_REGION_ID)
    if len(xs) == 0:
        return (0, 0, 0, 0)
    x0, y0 = int(xs.min()), int(ys.min())
    return (x0, y0, int(xs.max()) - x0 + 1, int(ys.max()) - y0 + 1)


def segment(grid: PixelGrid, config: PipelineConfig) -> Segmentation:
    """
    Label connected regions of each classification.

    Region ids are assigned 1..N in the row-major order of each region's
    first pixel. Unmatched pixels, border-touching exterior regions and
    regions below config.min_region_pixels form the background region 0.

    Args:
        grid: Source pixel grid
        config: Pipeline configuration

    Returns:
        Segmentation covering every pixel exactly once

    Raises:
        InvalidImage: If the grid is empty or no pixel matches any rule
    """
    if grid.is_empty():
        raise InvalidImage("Pixel grid is empty", stage=STAGE)

    class_map, matched = classify_pixels(grid, config)
    if matched == 0:
        raise InvalidImage(
            f"No classifiable pixels in {grid.source_path}", stage=STAGE
        )

    width, height = grid.width, grid.height

    # (first pixel index, class value, component label, stats row)
    kept = []
    components = {}
    discarded = 0
    exterior = 0

    for index, rule in enumerate(config.rules):
        class_value = index + 1
        class_mask = class_map == class_value
        if not class_mask.any():
            continue

        count, component_map, stats, _ = cv2.connectedComponentsWithStats(
            class_mask.astype(np.uint8), connectivity=config.connectivity
        )
        components[class_value] = (class_mask, component_map, count)

        # First row-major occurrence of each component label
        values, first_index = np.unique(component_map.ravel(), return_index=True)
        first_of = dict(zip(values.tolist(), first_index.tolist()))

        for label in range(1, count):
            x, y, w, h, area = (int(v) for v in stats[label][:5])

            if rule.border_is_background and _touches_border(x, y, w, h, width, height):
                exterior += 1
                continue

            if area < config.min_region_pixels:
                discarded += 1
                continue

            kept.append((first_of[label], class_value, label, (x, y, w, h), area))

    kept.sort(key=lambda item: item[0])

    labels = np.full((height, width), BACKGROUND_REGION_ID, dtype=np.int32)
    lookups = {
        class_value: np.zeros(count, dtype=np.int32)
        for class_value, (_, _, count) in components.items()
    }

    regions = [None]
    for region_id, (_, class_value, label, bbox, area) in enumerate(kept, start=1):
        lookups[class_value][label] = region_id
        regions.append(Region(
            region_id=region_id,
            label=config.rules[class_value - 1].label,
            pixel_count=area,
            bbox=bbox,
        ))

    for class_value, (class_mask, component_map, _) in components.items():
        labels[class_mask] = lookups[class_value][component_map[class_mask]]

    labels.flags.writeable = False

    background_count = int(np.count_nonzero(labels == BACKGROUND_REGION_ID))
    regions[BACKGROUND_REGION_ID] = Region(
        region_id=BACKGROUND_REGION_ID,
        label=config.background_label,
        pixel_count=background_count,
        bbox=_background_bbox(labels),
        is_background=True,
    )

    logger.info(
        f"Segmented {width}x{height} grid into {len(regions) - 1} regions "
        f"({discarded} noise, {exterior} exterior merged into background)"
    )

    return Segmentation(
        labels=labels,
        regions=regions,
        matched_pixels=matched,
        discarded_count=discarded,
        exterior_count=exterior,
    )
