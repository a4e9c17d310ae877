"""
Tests for frame differences and animation scheduling.
"""

import numpy as np
import pytest

from fractal_vfr.core.viewport import Viewport
from fractal_vfr.acceleration.rasterizer import ParallelRasterizer, compute_grid_serial
from fractal_vfr.acceleration.workers import WorkerError
from fractal_vfr.tools.animation import (
    AnimationScheduler, Frame, frame_difference, interval_midpoint, validate_time, ANCHOR_TIMES,
)

from conftest import seam_evaluator


@pytest.fixture
def scheduler(small_viewport, gray_scheme):
    return AnimationScheduler(small_viewport, seam_evaluator, gray_scheme, rasterizer=ParallelRasterizer(2))


class TestFrameDifference:
    """L1 distance between iteration grids."""

    def test_identical_grids(self):
        grid = np.arange(12).reshape(3, 4)
        assert frame_difference(grid, grid.copy()) == 0

    def test_symmetric(self):
        a = np.array([[0, 5], [9, 2]])
        b = np.array([[3, 1], [9, 7]])
        assert frame_difference(a, b) == frame_difference(b, a) == 12

    def test_unsigned_grids_do_not_wrap(self):
        a = np.array([[0]], dtype=np.uint8)
        b = np.array([[200]], dtype=np.uint8)
        assert frame_difference(a, b) == 200

    def test_shape_mismatch(self):
        with pytest.raises(ValueError):
            frame_difference(np.zeros((2, 2)), np.zeros((2, 3)))


class TestTimeDomain:
    """Cyclic time values and interval midpoints."""

    def test_midpoint(self):
        assert interval_midpoint(0.25, 0.5) == 0.375

    def test_midpoint_wraps_at_seam(self):
        assert interval_midpoint(0.75, 0.0) == 0.875
        assert interval_midpoint(0.875, 0.0) == 0.9375

    @pytest.mark.parametrize("t", [1.0, -0.1, float('nan'), float('inf')])
    def test_invalid_time(self, t):
        with pytest.raises(ValueError):
            validate_time(t)

    def test_frames_order_by_time(self):
        grid = np.zeros((1, 1))
        frames = sorted([Frame(0.5, grid), Frame(0.125, grid), Frame(0.0, grid)])
        assert [frame.t for frame in frames] == [0.0, 0.125, 0.5]


class TestAdaptiveSchedule:
    """Budgeted bisection of the highest-difference interval."""

    def test_frame_budget_and_order(self, scheduler):
        frames = scheduler.schedule_adaptive(12)
        times = [frame.t for frame in frames]
        assert len(frames) == 12
        assert times == sorted(times)
        assert len(set(times)) == 12
        assert set(ANCHOR_TIMES) <= set(times)

    def test_ties_split_in_insertion_order(self, scheduler):
        frames = scheduler.schedule_adaptive(6)
        assert [frame.t for frame in frames] == [0.0, 0.25, 0.5, 0.625, 0.75, 0.875]

    def test_frames_concentrate_where_content_changes(self, scheduler):
        frames = scheduler.schedule_adaptive(12)
        extra = [frame.t for frame in frames if frame.t not in ANCHOR_TIMES]
        assert extra
        assert all(0.5 < t < 1.0 for t in extra)

    def test_grids_match_direct_rendering(self, scheduler, small_viewport):
        for frame in scheduler.schedule_adaptive(5):
            assert np.array_equal(frame.grid, compute_grid_serial(small_viewport, seam_evaluator, frame.t))

    def test_minimum_budget(self, scheduler):
        with pytest.raises(ValueError):
            scheduler.schedule_adaptive(3)

    def test_seam_bisection_stops_at_float_resolution(self, gray_scheme):
        viewport = Viewport(x=0.0, y=0.0, scale=4.0, max_iter=50, x_px=2, y_px=2)
        scheduler = AnimationScheduler(viewport, lambda x, y, max_iter, t=0.0: int(t * 40), gray_scheme,
                                       rasterizer=ParallelRasterizer(1))
        frames = scheduler.schedule_adaptive(70)
        times = [frame.t for frame in frames]
        assert len(frames) == 70
        assert all(0.0 <= t < 1.0 for t in times)
        assert len(set(times)) == 70
        assert times == sorted(times)

    def test_progress_per_frame(self, small_viewport, gray_scheme):
        calls = []
        scheduler = AnimationScheduler(small_viewport, seam_evaluator, gray_scheme,
                                       rasterizer=ParallelRasterizer(2),
                                       progress_callback=lambda done, total: calls.append((done, total)))
        scheduler.schedule_adaptive(7)
        assert calls == [(i, 7) for i in range(1, 8)]

    def test_failure_propagates(self, small_viewport, gray_scheme):
        def evaluator(x, y, max_iter, t):
            if t > 0.6:
                raise OverflowError("diverged")
            return 0

        scheduler = AnimationScheduler(small_viewport, evaluator, gray_scheme, rasterizer=ParallelRasterizer(2))
        with pytest.raises(WorkerError):
            scheduler.schedule_adaptive(8)


class TestUniformSchedule:
    """Evenly spaced frames rendered concurrently."""

    def test_even_spacing(self, scheduler, small_viewport):
        frames = scheduler.schedule_uniform(8)
        assert [frame.t for frame in frames] == [i / 8 for i in range(8)]
        for frame in frames:
            assert np.array_equal(frame.grid, compute_grid_serial(small_viewport, seam_evaluator, frame.t))

    def test_single_frame(self, scheduler):
        frames = scheduler.schedule_uniform(1)
        assert [frame.t for frame in frames] == [0.0]

    def test_minimum_budget(self, scheduler):
        with pytest.raises(ValueError):
            scheduler.schedule_uniform(0)

    def test_schedule_dispatch(self, scheduler):
        assert len(scheduler.schedule(4, 'uniform')) == 4
        assert len(scheduler.schedule(4, 'adaptive')) == 4
        with pytest.raises(ValueError):
            scheduler.schedule(4, 'random')


class TestColorizeFrames:
    """Shared and per-frame coloring of a sequence."""

    @pytest.mark.parametrize("coloring", ['shared', 'per_frame'])
    def test_buffers(self, small_viewport, gray_scheme, coloring):
        scheduler = AnimationScheduler(small_viewport, seam_evaluator, gray_scheme,
                                       rasterizer=ParallelRasterizer(2), coloring=coloring)
        frames = scheduler.schedule_uniform(4)
        images = scheduler.colorize_frames(frames)
        assert len(images) == 4
        for image in images:
            assert image.shape == (4, 4, 3)
            assert image.dtype == np.uint8

    def test_shared_coloring_is_consistent_across_frames(self, gray_scheme):
        viewport = Viewport(x=0.0, y=0.0, scale=4.0, max_iter=10, x_px=4, y_px=4)

        def evaluator(x, y, max_iter, t):
            return 3 if x < 0 else (5 if t < 0.5 else 7)

        scheduler = AnimationScheduler(viewport, evaluator, gray_scheme, rasterizer=ParallelRasterizer(2))
        first, second = scheduler.colorize_frames(scheduler.schedule_uniform(2))
        assert np.array_equal(first[:, :2], second[:, :2])

    def test_unknown_coloring(self, small_viewport, gray_scheme):
        with pytest.raises(ValueError):
            AnimationScheduler(small_viewport, seam_evaluator, gray_scheme, coloring='global')
