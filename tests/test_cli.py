"""
Tests for the command-line interface.
"""

import json

import pytest
from click.testing import CliRunner
from PIL import Image

from fractal_vfr import __version__
from fractal_vfr.cli.main import main
from fractal_vfr.io.config import EnvironmentConfig


@pytest.fixture
def runner(monkeypatch):
    monkeypatch.delenv(EnvironmentConfig.WORKERS, raising=False)
    monkeypatch.delenv(EnvironmentConfig.PALETTE, raising=False)
    return CliRunner()


class TestCommands:
    """End-to-end command invocations."""

    def test_version(self, runner):
        result = runner.invoke(main, ['--version'])
        assert result.exit_code == 0
        assert f"fractal-vfr v{__version__}" in result.output

    def test_list(self, runner):
        result = runner.invoke(main, ['list'])
        assert result.exit_code == 0
        for name in ('mandelbrot', 'julia', 'sine', 'fire', 'sine-sweep'):
            assert name in result.output

    def test_render(self, runner, tmp_path):
        output = tmp_path / "mandel.png"
        result = runner.invoke(main, ['-q', 'render', 'mandelbrot', str(output), '-w', '8', '-h', '6',
                                      '--max-iter', '20', '--workers', '2', '--center', '-0.5,0'])
        assert result.exit_code == 0, result.output
        with Image.open(output) as image:
            assert image.size == (8, 6)

    def test_render_with_params_and_time(self, runner, tmp_path):
        output = tmp_path / "julia.png"
        result = runner.invoke(main, ['-q', 'render', 'julia', str(output), '-w', '5', '-h', '5',
                                      '--max-iter', '15', '--param', 'animate=true', '--time', '0.5'])
        assert result.exit_code == 0, result.output
        assert output.exists()

    def test_animate_with_preset(self, runner, tmp_path):
        result = runner.invoke(main, ['-q', '--preset', 'sine-sweep', 'animate', 'sine', str(tmp_path),
                                      '-w', '4', '-h', '4', '--frames', '5', '--workers', '2'])
        assert result.exit_code == 0, result.output
        manifest = json.loads((tmp_path / "frames.json").read_text())
        assert manifest['frame_count'] == 5
        assert manifest['render']['formula'] == 'sine'
        assert len(list(tmp_path.glob("frame_*.png"))) == 5

    def test_animate_from_config_file(self, runner, tmp_path):
        config = tmp_path / "config.json"
        config.write_text(json.dumps({'render': {'width': 4, 'height': 4, 'max_iterations': 10},
                                      'animation': {'mode': 'uniform', 'frame_count': 3}}))
        out = tmp_path / "frames"
        result = runner.invoke(main, ['-q', '--config', str(config), 'animate', 'sine', str(out)])
        assert result.exit_code == 0, result.output
        assert len(list(out.glob("frame_*.png"))) == 3


class TestErrors:
    """Invalid input exits with status 1 and a message."""

    @pytest.mark.parametrize("extra", [['--center', 'left'], ['--time', '1.5'], ['--palette', 'nope']])
    def test_render_errors(self, runner, tmp_path, extra):
        result = runner.invoke(main, ['-q', 'render', 'mandelbrot', str(tmp_path / "x.png"),
                                      '-w', '4', '-h', '4'] + extra)
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_unknown_formula(self, runner, tmp_path):
        result = runner.invoke(main, ['-q', 'animate', 'newton', str(tmp_path)])
        assert result.exit_code == 1
        assert "Unknown formula" in result.output

    def test_adaptive_budget_too_small(self, runner, tmp_path):
        result = runner.invoke(main, ['-q', 'animate', 'sine', str(tmp_path), '-w', '4', '-h', '4',
                                      '--frames', '2'])
        assert result.exit_code == 1
