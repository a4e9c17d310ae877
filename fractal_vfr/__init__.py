"""
Escape-time fractal rendering with adaptive variable-frame-rate animation.

This library renders escape-time fractals from a pluggable iteration formula
on a pool of worker threads, colors them by histogram equalization, and
sequences animations so that frames are concentrated where the picture
changes fastest.

Key Features:
- Row-parallel rasterizer with per-worker histograms merged at a barrier
- Histogram-equalized coloring over arbitrary color-stop gradients
- Adaptive frame scheduling under a fixed frame budget
- Sequence-wide contrast-weighted coloring for flicker-free animations
- Pluggable evaluators, with Numba-compiled built-ins

Example usage:
    >>> from fractal_vfr import FractalRenderer, RenderConfig
    >>> renderer = FractalRenderer(RenderConfig(formula='mandelbrot', center_x=-0.75, scale=3.5))
    >>> image = renderer.render('mandelbrot.png')
"""

__version__ = "1.0.0"

from fractal_vfr.core.viewport import Viewport, CoordinateMapper, PixelCoordinate
from fractal_vfr.core.formulas import EscapeEvaluator, EvaluatorRegistry
from fractal_vfr.rendering.coloring import ColorScheme, ColorStop, get_palette
from fractal_vfr.rendering.image_output import ImageExporter, RenderMetadata
from fractal_vfr.acceleration.rasterizer import ParallelRasterizer, RasterResult
from fractal_vfr.acceleration.workers import WorkerPool, WorkerError
from fractal_vfr.tools.animation import AnimationScheduler, Frame, Interval, frame_difference

# Main API classes
from fractal_vfr.api import FractalRenderer, RenderConfig, AnimationConfig
from fractal_vfr.io.config import ConfigManager

__all__ = [
    "FractalRenderer",
    "RenderConfig",
    "AnimationConfig",
    "Viewport",
    "CoordinateMapper",
    "PixelCoordinate",
    "EscapeEvaluator",
    "EvaluatorRegistry",
    "ColorScheme",
    "ColorStop",
    "get_palette",
    "ImageExporter",
    "RenderMetadata",
    "ParallelRasterizer",
    "RasterResult",
    "WorkerPool",
    "WorkerError",
    "AnimationScheduler",
    "Frame",
    "Interval",
    "frame_difference",
    "ConfigManager",
]
