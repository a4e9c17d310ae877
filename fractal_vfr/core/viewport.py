"""
Viewport description and pixel-to-plane coordinate mapping.

This module defines the immutable Viewport that every worker shares, and the
CoordinateMapper that enumerates plane coordinates for each pixel, either flat
or grouped by row (the unit of work handed to the rasterizer's workers).
"""

import math
import numpy as np
from typing import Iterator, NamedTuple, Tuple
from dataclasses import dataclass, replace
import logging

logger = logging.getLogger(__name__)


class PixelCoordinate(NamedTuple):
    """Plane coordinate of a single pixel."""
    plane_x: float
    plane_y: float
    px: int
    py: int


class RowPixel(NamedTuple):
    """Plane coordinate of a pixel inside a row; the row's plane_y is fixed."""
    plane_x: float
    plane_y: float
    px: int


@dataclass(frozen=True)
class Viewport:
    """
    Rectangular region of the plane rendered onto a pixel grid.

    The view is centered on (x, y) and is ``scale`` plane units wide; its
    height follows from the pixel aspect ratio.
    """
    x: float
    y: float
    scale: float
    max_iter: int
    x_px: int
    y_px: int

    def __post_init__(self):
        """Validate viewport fields."""
        if self.x_px <= 0 or self.y_px <= 0:
            raise ValueError("x_px and y_px must be positive")
        if not self.scale > 0 or math.isinf(self.scale):
            raise ValueError("scale must be a positive finite number")
        if self.max_iter <= 0:
            raise ValueError("max_iter must be positive")
        if not (math.isfinite(self.x) and math.isfinite(self.y)):
            raise ValueError("center coordinates must be finite")

    @property
    def x_scale(self) -> float:
        return self.scale

    @property
    def y_scale(self) -> float:
        return self.scale * (self.y_px / self.x_px)

    @property
    def x_offset(self) -> float:
        return self.x - self.x_scale / 2.0

    @property
    def y_offset(self) -> float:
        return self.y - self.y_scale / 2.0

    @property
    def pixel_count(self) -> int:
        return self.x_px * self.y_px

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """Plane bounds as (xmin, xmax, ymin, ymax)."""
        return (self.x_offset, self.x_offset + self.x_scale,
                self.y_offset, self.y_offset + self.y_scale)

    def pixel_to_plane(self, px: int, py: int) -> Tuple[float, float]:
        """Convert pixel coordinates to plane coordinates."""
        return (self.x_scale * (px / self.x_px) + self.x_offset,
                self.y_scale * (py / self.y_px) + self.y_offset)

    def with_changes(self, **fields) -> 'Viewport':
        """Return a validated copy with the given fields replaced."""
        return replace(self, **fields)


class CoordinateMapper:
    """Enumerates the plane coordinate of every pixel of a Viewport.

    Both ``points()`` and ``rows()`` return fresh generators, so the mapper
    can be iterated any number of times.
    """

    def __init__(self, viewport: Viewport):
        self.viewport = viewport
        self._x_scale = viewport.x_scale
        self._y_scale = viewport.y_scale
        self._x_offset = viewport.x_offset
        self._y_offset = viewport.y_offset

    def __len__(self) -> int:
        return self.viewport.pixel_count

    def __iter__(self) -> Iterator[PixelCoordinate]:
        return self.points()

    def plane_x(self, px: int) -> float:
        return self._x_scale * (px / self.viewport.x_px) + self._x_offset

    def plane_y(self, py: int) -> float:
        return self._y_scale * (py / self.viewport.y_px) + self._y_offset

    def points(self) -> Iterator[PixelCoordinate]:
        """Yield every pixel in row-major order."""
        for py in range(self.viewport.y_px):
            plane_y = self.plane_y(py)
            for px in range(self.viewport.x_px):
                yield PixelCoordinate(self.plane_x(px), plane_y, px, py)

    def rows(self) -> Iterator[Tuple[int, 'MappedRow']]:
        """Yield (py, row) pairs; each row enumerates its own pixels."""
        for py in range(self.viewport.y_px):
            yield py, MappedRow(self, py)

    def axes(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Get plane coordinate axes for vectorized consumers.

        Returns:
            Tuple of (plane_x per column, plane_y per row) arrays
        """
        xs = self._x_scale * (np.arange(self.viewport.x_px, dtype=np.float64) / self.viewport.x_px) + self._x_offset
        ys = self._y_scale * (np.arange(self.viewport.y_px, dtype=np.float64) / self.viewport.y_px) + self._y_offset
        return xs, ys


class MappedRow:
    """One row of a CoordinateMapper: pixels sharing the same plane_y."""

    def __init__(self, mapper: CoordinateMapper, py: int):
        self._mapper = mapper
        self.py = py
        self.plane_y = mapper.plane_y(py)

    def __len__(self) -> int:
        return self._mapper.viewport.x_px

    def __iter__(self) -> Iterator[RowPixel]:
        plane_x = self._mapper.plane_x
        for px in range(self._mapper.viewport.x_px):
            yield RowPixel(plane_x(px), self.plane_y, px)
