"""
Tests for Viewport and CoordinateMapper.
"""

import dataclasses
import math

import numpy as np
import pytest

from fractal_vfr.core.viewport import Viewport, CoordinateMapper, PixelCoordinate


class TestViewportValidation:
    """Viewport fields are validated on construction and frozen afterwards."""

    @pytest.mark.parametrize("fields", [
        {'x_px': 0}, {'y_px': -1}, {'scale': 0.0}, {'scale': -2.0},
        {'scale': float('nan')}, {'scale': float('inf')}, {'max_iter': 0},
        {'x': float('nan')},
    ])
    def test_invalid_fields_rejected(self, fields):
        values = dict(x=0.0, y=0.0, scale=4.0, max_iter=10, x_px=4, y_px=4)
        values.update(fields)
        with pytest.raises(ValueError):
            Viewport(**values)

    def test_viewport_is_immutable(self, small_viewport):
        with pytest.raises(dataclasses.FrozenInstanceError):
            small_viewport.scale = 2.0

    def test_with_changes_validates(self, small_viewport):
        changed = small_viewport.with_changes(max_iter=99)
        assert changed.max_iter == 99
        assert small_viewport.max_iter == 50
        with pytest.raises(ValueError):
            small_viewport.with_changes(x_px=0)

    def test_aspect_ratio_preserved(self):
        viewport = Viewport(x=1.0, y=-1.0, scale=4.0, max_iter=10, x_px=8, y_px=4)
        assert viewport.y_scale == 2.0
        assert viewport.x_offset == -1.0
        assert viewport.y_offset == -2.0
        assert viewport.bounds == (-1.0, 3.0, -2.0, 0.0)


class TestCoordinateMapper:
    """Pixel enumeration order and plane mapping."""

    def test_every_pixel_visited_once(self, wide_viewport):
        mapper = CoordinateMapper(wide_viewport)
        pixels = [(p.px, p.py) for p in mapper.points()]
        assert len(pixels) == wide_viewport.x_px * wide_viewport.y_px == len(mapper)
        assert len(set(pixels)) == len(pixels)

    def test_row_major_order(self, small_viewport):
        pixels = [(p.py, p.px) for p in CoordinateMapper(small_viewport)]
        assert pixels == sorted(pixels)
        assert pixels[:2] == [(0, 0), (0, 1)]

    def test_plane_x_endpoints(self, wide_viewport):
        mapper = CoordinateMapper(wide_viewport)
        assert mapper.plane_x(0) == wide_viewport.x_offset
        last = wide_viewport.x_offset + wide_viewport.x_scale * (wide_viewport.x_px - 1) / wide_viewport.x_px
        assert math.isclose(mapper.plane_x(wide_viewport.x_px - 1), last)

    def test_view_is_centered(self):
        viewport = Viewport(x=2.0, y=3.0, scale=1.0, max_iter=5, x_px=2, y_px=2)
        first = next(iter(CoordinateMapper(viewport)))
        assert first == PixelCoordinate(1.5, 2.5, 0, 0)
        assert viewport.pixel_to_plane(1, 1) == (2.0, 3.0)

    def test_rows_match_points(self, wide_viewport):
        mapper = CoordinateMapper(wide_viewport)
        flat = {(p.plane_x, p.plane_y, p.px, p.py) for p in mapper.points()}
        grouped = {(x, y, px, py) for py, row in mapper.rows() for x, y, px in row}
        assert flat == grouped

    def test_row_has_fixed_plane_y(self, wide_viewport):
        for py, row in CoordinateMapper(wide_viewport).rows():
            assert len(row) == wide_viewport.x_px
            assert {pixel.plane_y for pixel in row} == {row.plane_y}

    def test_sequence_is_restartable(self, small_viewport):
        mapper = CoordinateMapper(small_viewport)
        assert list(mapper) == list(mapper)
        rows = list(mapper.rows())
        _, row = rows[0]
        assert list(row) == list(row)
        assert len(list(mapper.rows())) == small_viewport.y_px

    def test_axes_match_scalar_mapping(self, wide_viewport):
        mapper = CoordinateMapper(wide_viewport)
        xs, ys = mapper.axes()
        assert np.allclose(xs, [mapper.plane_x(px) for px in range(wide_viewport.x_px)])
        assert np.allclose(ys, [mapper.plane_y(py) for py in range(wide_viewport.y_px)])
