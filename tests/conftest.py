import pytest

from fractal_vfr.core.viewport import Viewport
from fractal_vfr.rendering.coloring import ColorScheme


def ramp_evaluator(x, y, max_iter, t=0.0):
    """Escape count growing with distance from the origin, capped at max_iter."""
    return min(max_iter, int((x * x + y * y) * 4))


def seam_evaluator(x, y, max_iter, t=0.0):
    """
    Time-dependent evaluator that only changes over [0.5, 1.0).

    The value ramps from 0 at t=0.5 up to max_iter - 1 at t=0.75 and back down
    to 0 as t approaches 1, and is 0 everywhere on [0, 0.5).
    """
    peak = max_iter - 1
    if 0.5 <= t < 0.75:
        return int((t - 0.5) * 4 * peak)
    if t >= 0.75:
        return int((1.0 - t) * 4 * peak)
    return 0


@pytest.fixture
def small_viewport():
    return Viewport(x=0.0, y=0.0, scale=4.0, max_iter=50, x_px=4, y_px=4)


@pytest.fixture
def wide_viewport():
    return Viewport(x=-0.5, y=0.25, scale=3.0, max_iter=20, x_px=12, y_px=7)


@pytest.fixture
def gray_scheme():
    scheme = ColorScheme(name="gray")
    scheme.add((0, 0, 0), 0.0)
    scheme.add((255, 255, 255), 1.0)
    return scheme
