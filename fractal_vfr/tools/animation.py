"""
Animation sequencing over a cyclic time domain [0, 1).

Two schedules are provided. The uniform schedule samples evenly spaced times
and renders the frames concurrently. The adaptive (variable frame rate)
schedule spends a fixed frame budget where the picture changes fastest:

1. render anchors at t = 0, 0.25, 0.5, 0.75;
2. score the four intervals between neighbouring anchors (wrapping from
   0.75 back to 0) by the L1 distance of their iteration grids;
3. repeatedly bisect the highest-scoring interval, render its midpoint and
   push the two halves back, each scored against the new frame;
4. once the budget is reached, sort the frames by t.

Each bisection depends on the frame rendered just before it, so the loop is
sequential; only the rendering of each individual frame is parallel.
"""

import heapq
import math
import time
import numpy as np
from typing import Callable, List, Optional
from dataclasses import dataclass, field
import logging

from ..core.viewport import Viewport
from ..rendering.coloring import (
    ColorScheme, SharedHistogram, colorize, cumulative_histogram, iteration_histogram,
)
from ..acceleration.rasterizer import ParallelRasterizer, compute_grid_serial, Evaluator
from ..acceleration.workers import WorkerPool, ProgressCounter

logger = logging.getLogger(__name__)

ANCHOR_TIMES = (0.0, 0.25, 0.5, 0.75)
COLORING_MODES = ('shared', 'per_frame')


def validate_time(t: float) -> float:
    """Reject time values outside the cyclic domain [0, 1)."""
    t = float(t)
    if not math.isfinite(t) or not 0.0 <= t < 1.0:
        raise ValueError(f"Time value must be a finite number in [0, 1), got {t}")
    return t


def frame_difference(a: np.ndarray, b: np.ndarray) -> int:
    """L1 distance between two iteration grids."""
    a = np.asarray(a)
    b = np.asarray(b)
    if a.shape != b.shape:
        raise ValueError(f"Grid shapes differ: {a.shape} vs {b.shape}")
    return int(np.abs(a.astype(np.int64) - b.astype(np.int64)).sum())


@dataclass(order=True)
class Frame:
    """An iteration grid rendered at time t; frames order by t."""
    t: float
    grid: np.ndarray = field(compare=False, repr=False)

    def __post_init__(self):
        self.t = validate_time(self.t)


@dataclass
class Interval:
    """Candidate time span between two frames of the arena, by index."""
    a: int
    b: int
    difference: int


def interval_midpoint(a_t: float, b_t: float) -> float:
    """Midpoint of an interval; an interval ending at t=0 wraps across the seam."""
    if b_t != 0.0:
        return (a_t + b_t) / 2.0
    return (a_t + 1.0) / 2.0


class AnimationScheduler:
    """Chooses time samples for an animation and renders them."""

    def __init__(self, viewport: Viewport, evaluator: Evaluator, scheme: ColorScheme,
                 rasterizer: Optional[ParallelRasterizer] = None, coloring: str = 'shared',
                 progress_callback: Optional[Callable[[int, int], None]] = None):
        """
        Initialize the scheduler.

        Args:
            viewport: Region and resolution of every frame
            evaluator: Time-dependent escape-time evaluator
            scheme: Color scheme used by colorize_frames
            rasterizer: Row-parallel rasterizer (created if None)
            coloring: 'shared' for one contrast-weighted distribution over all
                frames, 'per_frame' to equalize every frame on its own
            progress_callback: Called with (completed_frames, total_frames)
        """
        if coloring not in COLORING_MODES:
            raise ValueError(f"Unknown coloring mode '{coloring}'. Available: {', '.join(COLORING_MODES)}")
        self.viewport = viewport
        self.evaluator = evaluator
        self.scheme = scheme
        self.rasterizer = rasterizer or ParallelRasterizer()
        self.coloring = coloring
        self.progress_callback = progress_callback
        self.frames: List[Frame] = []
        self._shared = SharedHistogram(viewport.max_iter)
        self._progress: Optional[ProgressCounter] = None
        self._sequence = 0

    def _reset(self, frame_count: int) -> None:
        self.frames = []
        self._shared = SharedHistogram(self.viewport.max_iter)
        self._progress = ProgressCounter(frame_count, self.progress_callback)
        self._sequence = 0

    def _render_frame(self, t: float) -> int:
        """Render one frame row-parallel and append it to the arena; returns its index."""
        t = validate_time(t)
        result = self.rasterizer.compute(self.viewport, self.evaluator, t)
        frame = Frame(t, result.grid)
        if self.coloring == 'shared':
            self._shared.add_grid(frame.grid)
        self.frames.append(frame)
        self._progress.increment()
        return len(self.frames) - 1

    def _push(self, heap: list, interval: Interval) -> None:
        # Sequence number keeps pops deterministic for equal scores
        self._sequence += 1
        heapq.heappush(heap, (-interval.difference, self._sequence, interval))

    def _scored(self, a: int, b: int) -> Interval:
        return Interval(a, b, frame_difference(self.frames[a].grid, self.frames[b].grid))

    def schedule_adaptive(self, frame_count: int) -> List[Frame]:
        """
        Render frame_count frames, concentrated where the grids change most.

        Intervals too narrow to bisect in floating point are dropped, so
        every frame has a distinct t. Fewer than frame_count frames are
        returned only if every remaining interval is exhausted.

        Returns:
            Frames sorted by t; list position is the output index
        """
        if frame_count < len(ANCHOR_TIMES):
            raise ValueError(f"Adaptive scheduling needs at least {len(ANCHOR_TIMES)} frames, got {frame_count}")

        start_time = time.time()
        self._reset(frame_count)
        logger.info(f"Adaptive schedule: {frame_count} frames of "
                    f"{self.viewport.x_px}x{self.viewport.y_px}")

        anchors = [self._render_frame(t) for t in ANCHOR_TIMES]
        heap: list = []
        for i, a in enumerate(anchors):
            b = anchors[(i + 1) % len(anchors)]
            self._push(heap, self._scored(a, b))

        while len(self.frames) < frame_count:
            if not heap:
                logger.warning(f"Time resolution exhausted: stopping at {len(self.frames)} "
                               f"of {frame_count} frames")
                break
            _, _, interval = heapq.heappop(heap)
            a_t = self.frames[interval.a].t
            b_t = self.frames[interval.b].t
            midpoint = interval_midpoint(a_t, b_t)
            if not a_t < midpoint < (b_t if b_t != 0.0 else 1.0):
                # no float strictly between the endpoints
                logger.debug(f"Dropping unsplittable interval [{a_t!r}, {b_t!r}]")
                continue
            mid = self._render_frame(midpoint)
            logger.debug(f"Split [{a_t:.6f}, {b_t:.6f}] "
                         f"(difference {interval.difference}) at t={midpoint:.6f}")
            self._push(heap, self._scored(interval.a, mid))
            self._push(heap, self._scored(mid, interval.b))

        ordered = sorted(self.frames)
        for index, frame in enumerate(ordered):
            logger.debug(f"{index}, {frame.t}")
        logger.info(f"Adaptive schedule complete: {len(ordered)} frames in {time.time() - start_time:.2f}s")
        return ordered

    def schedule_uniform(self, frame_count: int) -> List[Frame]:
        """
        Render frame_count evenly spaced frames, one frame per worker task.

        Returns:
            Frames in generation order (ascending t)
        """
        if frame_count < 1:
            raise ValueError(f"frame_count must be >= 1, got {frame_count}")

        start_time = time.time()
        self._reset(frame_count)
        times = [i / frame_count for i in range(frame_count)]
        grids: List[Optional[np.ndarray]] = [None] * frame_count
        pool = WorkerPool(self.rasterizer.num_workers, name="frames")
        logger.info(f"Uniform schedule: {frame_count} frames on {pool.num_workers} workers")

        def process_frame(state, task) -> None:
            index, t = task
            grid = compute_grid_serial(self.viewport, self.evaluator, t)
            if self.coloring == 'shared':
                self._shared.add_grid(grid)
            grids[index] = grid
            self._progress.increment()

        pool.run(enumerate(times), process_frame)

        self.frames = [Frame(t, grid) for t, grid in zip(times, grids)]
        logger.info(f"Uniform schedule complete: {frame_count} frames in {time.time() - start_time:.2f}s")
        return list(self.frames)

    def schedule(self, frame_count: int, mode: str = 'adaptive') -> List[Frame]:
        if mode == 'adaptive':
            return self.schedule_adaptive(frame_count)
        if mode == 'uniform':
            return self.schedule_uniform(frame_count)
        raise ValueError(f"Unknown animation mode '{mode}'. Available: adaptive, uniform")

    def colorize_frames(self, frames: List[Frame]) -> List[np.ndarray]:
        """
        Color frames for output.

        Shared coloring maps every frame through one contrast-weighted
        distribution accumulated over the whole sequence; per-frame coloring
        equalizes each frame against its own histogram.
        """
        max_iter = self.viewport.max_iter
        if self.coloring == 'shared':
            cumulative = self._shared.cumulative()
            return [colorize(frame.grid, cumulative, max_iter, self.scheme) for frame in frames]
        return [colorize(frame.grid, cumulative_histogram(iteration_histogram(frame.grid, max_iter)),
                         max_iter, self.scheme)
                for frame in frames]
