"""
Tests for the high-level renderer.
"""

import numpy as np
import pytest
from PIL import Image

from fractal_vfr.api import FractalRenderer, RenderConfig, AnimationConfig
from fractal_vfr.rendering.image_output import ImageExporter

from conftest import seam_evaluator


def left_half_interior(x, y, max_iter, t=0.0):
    return max_iter if x < 0 else 1


class TestRender:
    """Still images."""

    def test_render_and_save(self, gray_scheme, tmp_path):
        config = RenderConfig(width=4, height=4, max_iterations=2, num_workers=2, palette='gray')
        renderer = FractalRenderer(config, evaluator=left_half_interior, scheme=gray_scheme)
        image = renderer.render(tmp_path / "half.png")

        assert not image[:, :2].any()
        assert np.all(image[:, 2:] == 255)
        with Image.open(tmp_path / "half.png") as saved:
            assert saved.size == (4, 4)
        metadata = ImageExporter().extract_metadata_from_image(tmp_path / "half.png")
        assert metadata.resolution == (4, 4)
        assert metadata.num_workers == 2

    def test_builtin_formula(self):
        config = RenderConfig(width=8, height=6, max_iterations=30, num_workers=2)
        image = FractalRenderer(config).render()
        assert image.shape == (6, 8, 3)
        # the view contains the origin, which never escapes
        assert not image.all()

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            FractalRenderer(RenderConfig(width=-1))


class TestAnimate:
    """Frame sequences on disk."""

    @pytest.mark.parametrize("mode", ['adaptive', 'uniform'])
    def test_animate_writes_sequence(self, gray_scheme, tmp_path, mode):
        config = RenderConfig(width=4, height=4, max_iterations=50, num_workers=2)
        renderer = FractalRenderer(config, evaluator=seam_evaluator, scheme=gray_scheme)
        frames = renderer.animate(tmp_path, AnimationConfig(frame_count=6, mode=mode))

        manifest = ImageExporter.load_manifest(tmp_path)
        times = [entry['t'] for entry in manifest['frames']]
        assert manifest['frame_count'] == 6
        assert times == sorted(times)
        assert times == [frame.t for frame in frames]
        assert len(list(tmp_path.glob("frame_*.png"))) == 6

    def test_adaptive_times(self, gray_scheme, tmp_path):
        config = RenderConfig(width=4, height=4, max_iterations=50, num_workers=1)
        renderer = FractalRenderer(config, evaluator=seam_evaluator, scheme=gray_scheme)
        frames = renderer.animate(tmp_path, AnimationConfig(frame_count=6))
        assert [frame.t for frame in frames] == [0.0, 0.25, 0.5, 0.625, 0.75, 0.875]

    def test_progress_callback(self, gray_scheme, tmp_path):
        calls = []
        config = RenderConfig(width=4, height=4, max_iterations=50, num_workers=2)
        renderer = FractalRenderer(config, evaluator=seam_evaluator, scheme=gray_scheme)
        renderer.animate(tmp_path, AnimationConfig(frame_count=5, mode='uniform'),
                         lambda done, total: calls.append(done))
        assert sorted(calls) == [1, 2, 3, 4, 5]
