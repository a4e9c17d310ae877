"""
Color schemes and histogram-equalized coloring for escape-time grids.

A ColorScheme is an ordered list of color stops over [0, 1]. Grids are
colored by remapping each iteration count through a cumulative histogram
(histogram equalization), so the gradient is spread evenly regardless of how
skewed the raw iteration counts are.
"""

import math
import threading
import numpy as np
from typing import Dict, List, Tuple, Iterable, NamedTuple, Optional
import logging

logger = logging.getLogger(__name__)

RGB = Tuple[int, int, int]

BACKGROUND: RGB = (0, 0, 0)


class ColorStop(NamedTuple):
    """A color pinned to a gradient position."""
    color: RGB
    position: float


def hex_to_rgb(color: int) -> RGB:
    """Split a 0xRRGGBB integer into an (r, g, b) tuple."""
    if not 0 <= color <= 0xFFFFFF:
        raise ValueError(f"Color must be a 24-bit value, got {color:#x}")
    return ((color >> 16) & 0xFF, (color >> 8) & 0xFF, color & 0xFF)


def _blend(a: RGB, b: RGB, f: float) -> RGB:
    # truncation, not rounding
    return tuple(int(ca * (1.0 - f) + cb * f) for ca, cb in zip(a, b))


class ColorScheme:
    """Gradient defined by color stops kept in ascending position order."""

    def __init__(self, stops: Optional[Iterable[Tuple[RGB, float]]] = None, name: str = "Custom"):
        self.name = name
        self._stops: List[ColorStop] = []
        for color, position in stops or ():
            self.add(color, position)

    @classmethod
    def from_hex_stops(cls, stops: Iterable[Tuple[int, float]], name: str = "Custom") -> 'ColorScheme':
        """Create a scheme from (0xRRGGBB, position) pairs."""
        scheme = cls(name=name)
        for color, position in stops:
            scheme.add_hex(color, position)
        return scheme

    @property
    def stops(self) -> List[ColorStop]:
        return list(self._stops)

    def __len__(self) -> int:
        return len(self._stops)

    def __repr__(self) -> str:
        return f"ColorScheme(name={self.name!r}, stops={len(self._stops)})"

    def add(self, color: RGB, position: float) -> None:
        """Insert a stop before the first existing stop at or past its position."""
        if len(color) != 3 or any(not 0 <= int(c) <= 255 for c in color):
            raise ValueError(f"Invalid color: {color}")
        position = float(position)
        if math.isnan(position):
            raise ValueError("Stop position must not be NaN")
        i = 0
        while i < len(self._stops) and self._stops[i].position < position:
            i += 1
        self._stops.insert(i, ColorStop(tuple(int(c) for c in color), position))

    def add_hex(self, color: int, position: float) -> None:
        self.add(hex_to_rgb(color), position)

    def lookup(self, position: float) -> RGB:
        """
        Interpolate the color at a gradient position.

        Positions past the last stop saturate to the last stop's color;
        positions at or before the first stop give the first stop's color.
        """
        if not self._stops:
            raise ValueError("ColorScheme has no stops")
        if math.isnan(position):
            raise ValueError("Cannot look up a NaN position")

        i = 0
        while i < len(self._stops) and self._stops[i].position < position:
            i += 1
        if i == len(self._stops):
            return self._stops[-1].color

        stop = self._stops[i]
        reference = self._stops[0] if i == 0 else self._stops[i - 1]
        span = reference.position - stop.position
        f = 0.0 if span == 0 else (position - stop.position) / span
        return _blend(stop.color, reference.color, f)

    def build_lut(self, positions: np.ndarray) -> np.ndarray:
        """Color table of shape (len(positions), 3) for a vector of positions."""
        positions = np.asarray(positions, dtype=np.float64)
        lut = np.zeros((positions.shape[0], 3), dtype=np.uint8)
        for i, position in enumerate(positions):
            lut[i] = self.lookup(float(position))
        return lut


# Named presets; stops are (0xRRGGBB, position)
PALETTES: Dict[str, List[Tuple[int, float]]] = {
    'fire': [(0x000000, 0.0), (0xbb2200, 0.8), (0xff7700, 1.0)],
    'ultra': [(0x000764, 0.0), (0x206bcb, 0.16), (0xedffff, 0.42),
              (0xffaa00, 0.6425), (0x000200, 0.8575), (0x000764, 1.0)],
    'gray': [(0x000000, 0.0), (0xffffff, 1.0)],
    'rdpu': [(0x000000, 0.0 / 9), (0x49006a, 1.0 / 9), (0x7a0177, 2.0 / 9),
             (0xae017e, 3.0 / 9), (0xdd3497, 4.0 / 9), (0xf768a1, 5.0 / 9),
             (0xfa9fb5, 6.0 / 9), (0xfcc5c0, 7.0 / 9), (0xfde0dd, 8.0 / 9),
             (0xfff7f3, 9.0 / 9)],
    'sunset': [(0x000000, 0.0), (0x6a1b9a, 0.35), (0xe85285, 0.55),
               (0xffecb3, 0.8), (0xffffff, 1.0)],
    'neon': [(0x00ffff, 0.0), (0xff00ff, 0.5), (0xffffff, 1.0)],
}

DEFAULT_PALETTE = 'fire'


def get_palette(name: str) -> ColorScheme:
    """Build a fresh ColorScheme for a named preset."""
    stops = PALETTES.get(name.lower())
    if stops is None:
        available = ', '.join(PALETTES.keys())
        raise ValueError(f"Unknown color palette '{name}'. Available: {available}")
    return ColorScheme.from_hex_stops(stops, name=name.lower())


def list_palettes() -> List[str]:
    return list(PALETTES.keys())


def iteration_histogram(grid: np.ndarray, max_iter: int) -> np.ndarray:
    """Counts of each non-interior iteration value, length max_iter + 1."""
    values = grid[grid != max_iter].ravel()
    return np.bincount(values, minlength=max_iter + 1)[:max_iter + 1].astype(np.int64)


def contrast_histogram(grid: np.ndarray, max_iter: int) -> np.ndarray:
    """
    Per-bucket neighbor-contrast score.

    For every non-interior pixel, the absolute iteration differences to its
    eight neighbors are summed and credited to the pixel's iteration bucket.
    Borders are edge-replicated, so missing neighbors contribute nothing.

    Args:
        grid: Iteration grid (height, width)
        max_iter: Iteration cap; pixels at the cap are skipped

    Returns:
        Array of length max_iter + 1
    """
    grid = np.asarray(grid, dtype=np.int64)
    height, width = grid.shape
    padded = np.pad(grid, 1, mode='edge')
    contrast = np.zeros((height, width), dtype=np.int64)
    for dy in (-1, 0, 1):
        for dx in (-1, 0, 1):
            if dy == 0 and dx == 0:
                continue
            neighbor = padded[1 + dy:1 + dy + height, 1 + dx:1 + dx + width]
            contrast += np.abs(grid - neighbor)

    escaped = grid != max_iter
    return np.bincount(grid[escaped].ravel(), weights=contrast[escaped].ravel(),
                       minlength=max_iter + 1)[:max_iter + 1].astype(np.int64)


def cumulative_histogram(counts: np.ndarray) -> np.ndarray:
    """Running sum of a histogram; non-decreasing by construction."""
    return np.cumsum(np.asarray(counts, dtype=np.int64))


def equalized_positions(cumulative: np.ndarray) -> np.ndarray:
    """
    Gradient position of every iteration bucket.

    Positions are divided by the escaped-pixel total (the last cumulative
    entry), not by the full pixel count, so the highest escaping bucket always
    reaches 1.0 however many pixels are interior.
    """
    cumulative = np.asarray(cumulative, dtype=np.float64)
    total = cumulative[-1] if cumulative.size else 0.0
    if total <= 0:
        return np.zeros_like(cumulative)
    return cumulative / total


def colorize(grid: np.ndarray, cumulative: np.ndarray, max_iter: int,
             scheme: ColorScheme, background: RGB = BACKGROUND) -> np.ndarray:
    """
    Color an iteration grid against a cumulative histogram.

    Args:
        grid: Iteration grid (height, width) with values in [0, max_iter]
        cumulative: Cumulative histogram of length max_iter + 1
        max_iter: Iteration cap; pixels at the cap get the background color
        scheme: Color scheme to sample
        background: Color for interior points

    Returns:
        RGB buffer (height, width, 3) of uint8
    """
    if len(cumulative) != max_iter + 1:
        raise ValueError(f"Cumulative histogram must have {max_iter + 1} entries, got {len(cumulative)}")
    lut = scheme.build_lut(equalized_positions(cumulative))
    lut[max_iter] = background
    return lut[np.asarray(grid, dtype=np.int64)]


class SharedHistogram:
    """Lock-guarded histogram accumulated across frames."""

    def __init__(self, max_iter: int):
        self.max_iter = max_iter
        self._contrast = np.zeros(max_iter + 1, dtype=np.int64)
        self._counts = np.zeros(max_iter + 1, dtype=np.int64)
        self._lock = threading.Lock()

    def add_grid(self, grid: np.ndarray) -> None:
        contrast = contrast_histogram(grid, self.max_iter)
        counts = iteration_histogram(grid, self.max_iter)
        with self._lock:
            self._contrast += contrast
            self._counts += counts

    def cumulative(self) -> np.ndarray:
        """Shared cumulative distribution; falls back to frequencies when there is no contrast."""
        with self._lock:
            weights = self._contrast if self._contrast.sum() > 0 else self._counts
            return cumulative_histogram(weights)
