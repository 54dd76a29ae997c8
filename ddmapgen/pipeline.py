"""
Pipeline Orchestration Module

Coordinates the full workflow from raster image to map file:

    Idle -> Loaded -> Segmented -> Traced -> Simplified -> Classified
         -> Built -> Serialized

Any stage failure moves the run to the terminal Failed state carrying the
originating error. The `shapes` preview stops after Classified.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from .config import PipelineConfig
from .constants import PipelineState
from .document.builder import build_document
from .document.model import MapDocument
from .errors import DegenerateRegion, PipelineCancelled
from .geometry.classifier import classify_shapes
from .geometry.contour import TracedRegion, trace_region
from .geometry.shape import Shape
from .geometry.simplifier import Polygon, simplify_contours
from .output.dungeondraft_writer import write_map
from .raster.loader import PixelGrid, load_image
from .raster.segmenter import Region, Segmentation, segment

logger = logging.getLogger(__name__)


@dataclass
class ShapesResult:
    """Result of a preview run."""
    input_file: str
    grid: PixelGrid
    shapes: List[Shape]
    region_count: int
    warnings: List[str]
    processing_time: float


@dataclass
class GenerateResult:
    """Result of a full generate run."""
    input_file: str
    output_path: Path
    document: MapDocument
    warnings: List[str]
    processing_time: float


class MapPipeline:
    """
    One pipeline run. Instances are single-use; each run owns its pixel
    grid, regions and document.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.config = config or PipelineConfig()
        self.cancel_event = cancel_event or threading.Event()
        self.state = PipelineState.IDLE
        self.history = [PipelineState.IDLE]
        self.error: Optional[BaseException] = None
        self.warnings: List[str] = []

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _advance(self, state: str) -> None:
        if self.state == PipelineState.FAILED:
            raise RuntimeError("Pipeline run already failed")

        current = PipelineState.ORDER.index(self.state)
        if PipelineState.ORDER.index(state) != current + 1:
            raise RuntimeError(f"Invalid pipeline transition {self.state} -> {state}")

        self.state = state
        self.history.append(state)
        logger.debug(f"Pipeline state: {state}")

    def _fail(self, error: BaseException) -> None:
        self.state = PipelineState.FAILED
        self.history.append(PipelineState.FAILED)
        self.error = error

    def _check_cancelled(self, stage: str) -> None:
        if self.cancel_event.is_set():
            raise PipelineCancelled("Run cancelled", stage=stage)

    def cancel(self) -> None:
        """Request cancellation; the run stops at the next checkpoint."""
        self.cancel_event.set()

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    # ------------------------------------------------------------------
    # Per-region work
    # ------------------------------------------------------------------

    def _map_regions(self, func: Callable, items: Sequence, stage: str) -> list:
        """
        Apply func to each item, serially or on a worker pool.

        Results come back in the order of `items` regardless of
        completion order.
        """
        def task(index, item):
            self._check_cancelled(stage)
            return index, func(item)

        if self.config.workers <= 1 or len(items) <= 1:
            return [task(i, item)[1] for i, item in enumerate(items)]

        results = []
        with ThreadPoolExecutor(max_workers=self.config.workers) as pool:
            futures = [pool.submit(task, i, item) for i, item in enumerate(items)]
            try:
                for future in as_completed(futures):
                    results.append(future.result())
            except BaseException:
                for future in futures:
                    future.cancel()
                raise

        results.sort(key=lambda r: r[0])
        return [result for _, result in results]

    def _collect(self, outcomes: list) -> list:
        """Record (value, warning) outcomes in order and keep the values."""
        values = []
        for value, warning in outcomes:
            if warning:
                self._warn(warning)
            if value is not None:
                values.append(value)
        return values

    def _trace_one(self, work: Tuple[Segmentation, Region]) -> Tuple[Optional[TracedRegion], Optional[str]]:
        segmentation, region = work
        try:
            return trace_region(segmentation, region), None
        except DegenerateRegion as e:
            return None, f"Dropped {e.describe()}"

    def _simplify_one(self, traced: TracedRegion) -> Tuple[Optional[Tuple[Region, Polygon]], Optional[str]]:
        polygon = simplify_contours(
            traced.outer,
            traced.holes,
            tolerance=self.config.simplify_tolerance,
            retries=self.config.simplify_retries,
            region_id=traced.region.region_id,
        )
        if polygon is None:
            return None, (
                f"Dropped [DegenerateRegion] (stage: simplify, region "
                f"{traced.region.region_id}): no valid polygon"
            )
        if polygon.repaired:
            return (traced.region, polygon), (
                f"Repaired [DegenerateRegion] (stage: simplify, region "
                f"{traced.region.region_id}): kept the largest valid piece"
            )
        return (traced.region, polygon), None

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _detect_shapes(self, image_path: str) -> Tuple[PixelGrid, Segmentation, List[Shape]]:
        self._check_cancelled("load")
        grid = load_image(image_path)
        self._advance(PipelineState.LOADED)

        self._check_cancelled("segment")
        segmentation = segment(grid, self.config)
        self._advance(PipelineState.SEGMENTED)

        regions = segmentation.foreground_regions()
        traced = self._collect(self._map_regions(
            self._trace_one, [(segmentation, r) for r in regions], "trace"
        ))
        self._advance(PipelineState.TRACED)

        items = self._collect(self._map_regions(self._simplify_one, traced, "simplify"))
        self._advance(PipelineState.SIMPLIFIED)

        self._check_cancelled("classify")
        shapes = classify_shapes(items, self.config)
        self._advance(PipelineState.CLASSIFIED)

        return grid, segmentation, shapes

    def run_shapes(self, image_path: str) -> ShapesResult:
        """
        Detect and classify shapes without building a map.

        Args:
            image_path: Input image

        Returns:
            ShapesResult (shapes may be empty)
        """
        if self.state != PipelineState.IDLE:
            raise RuntimeError("MapPipeline instances are single-use")

        start_time = time.time()
        logger.info(f"Processing: {image_path}")
        try:
            grid, segmentation, shapes = self._detect_shapes(image_path)
        except BaseException as e:
            self._fail(e)
            raise

        return ShapesResult(
            input_file=image_path,
            grid=grid,
            shapes=shapes,
            region_count=len(segmentation.foreground_regions()),
            warnings=list(self.warnings),
            processing_time=time.time() - start_time,
        )

    def run_generate(self, image_path: str, output_path: str, backup: bool = True) -> GenerateResult:
        """
        Run the full pipeline and write the map file.

        Args:
            image_path: Input image
            output_path: Destination .dungeondraft_map
            backup: Back up an existing destination once before replacing

        Returns:
            GenerateResult
        """
        if self.state != PipelineState.IDLE:
            raise RuntimeError("MapPipeline instances are single-use")

        start_time = time.time()
        logger.info(f"Processing: {image_path}")
        try:
            grid, _, shapes = self._detect_shapes(image_path)

            document = build_document(shapes, grid, self.config, self.warnings)
            self._advance(PipelineState.BUILT)

            self._check_cancelled("serialize")
            written = write_map(
                document, output_path, backup=backup, cancel_event=self.cancel_event
            )
            self._advance(PipelineState.SERIALIZED)
        except BaseException as e:
            self._fail(e)
            raise

        processing_time = time.time() - start_time
        logger.info(f"Processing time: {processing_time:.1f}s")

        return GenerateResult(
            input_file=image_path,
            output_path=written,
            document=document,
            warnings=list(self.warnings),
            processing_time=processing_time,
        )


def find_shapes(image_path: str, config: Optional[PipelineConfig] = None) -> ShapesResult:
    """Preview the shapes detected in an image."""
    return MapPipeline(config).run_shapes(image_path)


def generate_map(
    image_path: str,
    output_path: str,
    config: Optional[PipelineConfig] = None,
    backup: bool = True,
) -> GenerateResult:
    """Generate a map file from an image."""
    return MapPipeline(config).run_generate(image_path, output_path, backup=backup)
