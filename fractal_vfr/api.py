"""
Main API classes for fractal rendering.

This module ties the viewport, evaluator, rasterizer, scheduler and exporter
together behind two entry points: ``FractalRenderer.render`` for a still image
and ``FractalRenderer.animate`` for a frame sequence.
"""

import numpy as np
from typing import Optional, Dict, Any, Callable, List
from dataclasses import dataclass, field
from pathlib import Path
import logging
import time

from . import __version__
from .core.viewport import Viewport
from .core.formulas import EvaluatorRegistry
from .rendering.coloring import ColorScheme, get_palette, DEFAULT_PALETTE
from .rendering.image_output import ImageExporter, RenderMetadata
from .acceleration.rasterizer import ParallelRasterizer, Evaluator
from .tools.animation import AnimationScheduler, Frame, COLORING_MODES, validate_time

logger = logging.getLogger(__name__)

ANIMATION_MODES = ('adaptive', 'uniform')


@dataclass
class RenderConfig:
    """Configuration for a single render or for every frame of an animation."""

    # View
    center_x: float = 0.0
    center_y: float = 0.0
    scale: float = 4.0
    max_iterations: int = 256

    # Image parameters
    width: int = 1024
    height: int = 1024

    # Evaluator
    formula: str = 'mandelbrot'
    formula_params: Dict[str, Any] = field(default_factory=dict)
    time: Optional[float] = None

    # Coloring
    palette: str = DEFAULT_PALETTE

    # Performance
    num_workers: Optional[int] = None

    def validate(self):
        """Validate configuration parameters."""
        if self.width <= 0 or self.height <= 0:
            raise ValueError("Width and height must be positive")

        if self.max_iterations <= 0:
            raise ValueError("max_iterations must be positive")

        if not self.scale > 0:
            raise ValueError("scale must be positive")

        if self.num_workers is not None and self.num_workers < 1:
            raise ValueError("num_workers must be >= 1")

        if self.time is not None:
            validate_time(self.time)

        EvaluatorRegistry.get(self.formula)
        get_palette(self.palette)

    def to_viewport(self) -> Viewport:
        return Viewport(x=float(self.center_x), y=float(self.center_y), scale=float(self.scale),
                        max_iter=int(self.max_iterations), x_px=int(self.width), y_px=int(self.height))


@dataclass
class AnimationConfig:
    """Configuration for frame sequencing."""

    frame_count: int = 120
    mode: str = 'adaptive'
    coloring: str = 'shared'
    base_name: str = 'frame'

    def validate(self):
        if self.mode not in ANIMATION_MODES:
            raise ValueError(f"Unknown animation mode '{self.mode}'. Available: {', '.join(ANIMATION_MODES)}")
        if self.coloring not in COLORING_MODES:
            raise ValueError(f"Unknown coloring mode '{self.coloring}'. Available: {', '.join(COLORING_MODES)}")
        minimum = 4 if self.mode == 'adaptive' else 1
        if self.frame_count < minimum:
            raise ValueError(f"frame_count must be >= {minimum} in {self.mode} mode")
        if not self.base_name:
            raise ValueError("base_name must not be empty")


class FractalRenderer:
    """Main fractal rendering engine."""

    def __init__(self, config: Optional[RenderConfig] = None,
                 evaluator: Optional[Evaluator] = None,
                 scheme: Optional[ColorScheme] = None):
        """
        Initialize the renderer.

        Args:
            config: Rendering configuration (uses defaults if None)
            evaluator: Escape-time callable; built from config.formula if None
            scheme: Color scheme; built from config.palette if None
        """
        self.config = config or RenderConfig()
        self.config.validate()

        self.viewport = self.config.to_viewport()
        self.evaluator = evaluator or EvaluatorRegistry.create(self.config.formula, **self.config.formula_params)
        self.scheme = scheme or get_palette(self.config.palette)
        self.image_exporter = ImageExporter()

        logger.info(f"FractalRenderer initialized: {self.config.width}x{self.config.height}, "
                    f"formula={self.config.formula}, palette={self.scheme.name}")

    def _rasterizer(self, progress_callback: Optional[Callable[[int, int], None]]) -> ParallelRasterizer:
        return ParallelRasterizer(self.config.num_workers, progress_callback)

    def _metadata(self, render_time: float, num_workers: int) -> RenderMetadata:
        return RenderMetadata(
            formula=self.config.formula,
            center=(self.config.center_x, self.config.center_y),
            scale=self.config.scale,
            resolution=(self.config.width, self.config.height),
            max_iterations=self.config.max_iterations,
            color_palette=self.scheme.name,
            time=self.config.time,
            render_time_seconds=render_time,
            num_workers=num_workers,
            software_version=__version__,
            formula_parameters=dict(self.config.formula_params),
        )

    def render(self, output_path: Optional[Path] = None,
               progress_callback: Optional[Callable[[int, int], None]] = None) -> np.ndarray:
        """
        Render a still image.

        Args:
            output_path: Optional output file path
            progress_callback: Called with (completed_rows, total_rows)

        Returns:
            RGB buffer (height, width, 3) of uint8
        """
        start_time = time.time()
        logger.info(f"Starting render: {self.config.formula}")

        rasterizer = self._rasterizer(progress_callback)
        image = rasterizer.render(self.viewport, self.evaluator, self.scheme, self.config.time)

        if output_path:
            metadata = self._metadata(time.time() - start_time, rasterizer.num_workers)
            self.image_exporter.save_image(image, output_path, metadata)

        logger.info(f"Render complete: {time.time() - start_time:.2f}s")
        return image

    def animate(self, output_dir: Path, animation: Optional[AnimationConfig] = None,
                progress_callback: Optional[Callable[[int, int], None]] = None) -> List[Frame]:
        """
        Render an animation into a directory of numbered frames.

        Args:
            output_dir: Directory receiving the frames and manifest
            animation: Sequencing configuration (uses defaults if None)
            progress_callback: Called with (completed_frames, total_frames)

        Returns:
            Frames in output order
        """
        animation = animation or AnimationConfig()
        animation.validate()

        start_time = time.time()
        rasterizer = self._rasterizer(None)
        scheduler = AnimationScheduler(self.viewport, self.evaluator, self.scheme,
                                       rasterizer=rasterizer, coloring=animation.coloring,
                                       progress_callback=progress_callback)

        frames = scheduler.schedule(animation.frame_count, animation.mode)
        images = scheduler.colorize_frames(frames)

        metadata = self._metadata(time.time() - start_time, rasterizer.num_workers)
        self.image_exporter.create_image_sequence(images, output_dir, [frame.t for frame in frames],
                                                  base_name=animation.base_name, metadata=metadata)

        logger.info(f"Animation complete: {len(frames)} frames in {time.time() - start_time:.2f}s")
        return frames
