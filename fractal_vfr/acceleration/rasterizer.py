"""
Row-parallel rasterizer producing iteration grids and equalized images.

Rendering runs in three strictly ordered phases:

1. compute: rows are queued one at a time; each worker writes whole rows into
   its own slots of the grid and counts iteration values in a private
   histogram, so nothing is locked on the per-pixel path;
2. merge: after all workers are joined, private histograms are summed and
   turned into a cumulative distribution;
3. color: every pixel is mapped through the cumulative distribution onto the
   color scheme; interior pixels are painted with the background color.
"""

import time
import numpy as np
from typing import Callable, NamedTuple, Optional
import logging

from ..core.viewport import Viewport, CoordinateMapper
from ..rendering.coloring import ColorScheme, BACKGROUND, RGB, colorize, cumulative_histogram
from .workers import WorkerPool, ProgressCounter

logger = logging.getLogger(__name__)

Evaluator = Callable[..., int]


class RasterResult(NamedTuple):
    """Iteration grid plus its merged histogram."""
    grid: np.ndarray
    histogram: np.ndarray
    cumulative: np.ndarray

    @property
    def interior_count(self) -> int:
        return int(self.grid.size - self.cumulative[-1])


def compute_row(row, evaluator: Evaluator, max_iter: int, t: Optional[float]) -> np.ndarray:
    """Evaluate every pixel of one mapped row."""
    out = np.empty(len(row), dtype=np.int64)
    if t is None:
        for plane_x, plane_y, px in row:
            out[px] = evaluator(plane_x, plane_y, max_iter)
    else:
        for plane_x, plane_y, px in row:
            out[px] = evaluator(plane_x, plane_y, max_iter, t)
    if out.size and (out.min() < 0 or out.max() > max_iter):
        raise ValueError(f"Evaluator returned iteration counts outside [0, {max_iter}] "
                         f"(min={out.min()}, max={out.max()})")
    return out


def compute_grid_serial(viewport: Viewport, evaluator: Evaluator, t: Optional[float] = None) -> np.ndarray:
    """Single-threaded grid computation, used when frames themselves are the unit of work."""
    grid = np.empty((viewport.y_px, viewport.x_px), dtype=np.int64)
    for py, row in CoordinateMapper(viewport).rows():
        grid[py] = compute_row(row, evaluator, viewport.max_iter, t)
    return grid


class ParallelRasterizer:
    """Renders viewports on a fixed-size pool of worker threads."""

    def __init__(self, num_workers: Optional[int] = None,
                 progress_callback: Optional[Callable[[int, int], None]] = None):
        """
        Initialize the rasterizer.

        Args:
            num_workers: Worker threads per render (None for CPU count)
            progress_callback: Called with (completed_rows, total_rows)
        """
        self.pool = WorkerPool(num_workers, name="raster")
        self.progress_callback = progress_callback

    @property
    def num_workers(self) -> int:
        return self.pool.num_workers

    def compute(self, viewport: Viewport, evaluator: Evaluator, t: Optional[float] = None) -> RasterResult:
        """
        Compute the iteration grid and merged histogram of a viewport.

        Args:
            viewport: Region and resolution to render
            evaluator: Escape-time evaluator
            t: Optional time value passed through to the evaluator

        Returns:
            RasterResult with grid (y_px, x_px), histogram and cumulative
            distribution, both of length max_iter + 1
        """
        start_time = time.time()
        max_iter = viewport.max_iter
        grid = np.zeros((viewport.y_px, viewport.x_px), dtype=np.int64)
        progress = ProgressCounter(viewport.y_px, self.progress_callback)

        def process_row(histogram: np.ndarray, task) -> None:
            py, row = task
            values = compute_row(row, evaluator, max_iter, t)
            grid[py] = values
            histogram += np.bincount(values[values != max_iter], minlength=max_iter + 1)
            progress.increment()

        histograms = self.pool.run(
            CoordinateMapper(viewport).rows(),
            process_row,
            make_state=lambda: np.zeros(max_iter + 1, dtype=np.int64),
        )

        histogram = np.sum(histograms, axis=0, dtype=np.int64)
        cumulative = cumulative_histogram(histogram)
        result = RasterResult(grid, histogram, cumulative)

        logger.info(f"Computed {viewport.x_px}x{viewport.y_px} grid"
                    f"{'' if t is None else f' at t={t:.6f}'} on {self.num_workers} workers "
                    f"in {time.time() - start_time:.2f}s ({result.interior_count} interior pixels)")
        return result

    def render(self, viewport: Viewport, evaluator: Evaluator, scheme: ColorScheme,
               t: Optional[float] = None, background: RGB = BACKGROUND) -> np.ndarray:
        """
        Render a fully colored image.

        Returns:
            RGB buffer (y_px, x_px, 3) of uint8
        """
        result = self.compute(viewport, evaluator, t)
        return colorize(result.grid, result.cumulative, viewport.max_iter, scheme, background)
