"""
Configuration files, presets and environment overrides.

A configuration file is a JSON object with optional ``render`` and
``animation`` sections whose keys are the fields of RenderConfig and
AnimationConfig. Settings are layered: defaults, then the named preset, then
the file, then environment variables.
"""

import json
import os
from typing import Dict, Any, Optional, Tuple
from dataclasses import asdict, fields
from pathlib import Path
import logging

from ..api import RenderConfig, AnimationConfig

logger = logging.getLogger(__name__)

PRESETS: Dict[str, Dict[str, Dict[str, Any]]] = {
    'sine-sweep': {
        'render': {'center_x': 0.0, 'center_y': 0.0, 'scale': 12.0, 'max_iterations': 50,
                   'width': 256, 'height': 256, 'formula': 'sine', 'palette': 'fire'},
        'animation': {'frame_count': 3000, 'mode': 'adaptive', 'coloring': 'shared'},
    },
    'mandelbrot': {
        'render': {'center_x': -0.75, 'center_y': 0.0, 'scale': 3.5, 'max_iterations': 500,
                   'width': 1920, 'height': 1080, 'formula': 'mandelbrot', 'palette': 'ultra'},
        'animation': {},
    },
    'julia-orbit': {
        'render': {'center_x': 0.0, 'center_y': 0.0, 'scale': 3.2, 'max_iterations': 300,
                   'width': 720, 'height': 720, 'formula': 'julia',
                   'formula_params': {'animate': True, 'radius': 0.7885}, 'palette': 'rdpu'},
        'animation': {'frame_count': 240, 'mode': 'adaptive', 'coloring': 'shared'},
    },
}


class EnvironmentConfig:
    """Overrides read from environment variables."""

    WORKERS = 'FRACTAL_VFR_WORKERS'
    PALETTE = 'FRACTAL_VFR_PALETTE'

    @classmethod
    def render_overrides(cls, environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        environ = os.environ if environ is None else environ
        overrides: Dict[str, Any] = {}
        if environ.get(cls.WORKERS):
            try:
                overrides['num_workers'] = int(environ[cls.WORKERS])
            except ValueError as e:
                raise ValueError(f"{cls.WORKERS} must be an integer, got {environ[cls.WORKERS]!r}") from e
        if environ.get(cls.PALETTE):
            overrides['palette'] = environ[cls.PALETTE]
        return overrides


def _apply(target, values: Dict[str, Any], section: str) -> None:
    known = {f.name for f in fields(target)}
    for key, value in values.items():
        if key not in known:
            raise ValueError(f"Unknown {section} configuration parameter: {key}")
        setattr(target, key, value)


class ConfigManager:
    """Loads and saves render/animation configurations."""

    def load_config(self, filepath: Path) -> Dict[str, Any]:
        """Read a JSON configuration file."""
        filepath = Path(filepath)
        with open(filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Config file {filepath} must contain a JSON object")
        logger.info(f"Loaded configuration: {filepath}")
        return data

    def save_config(self, filepath: Path, render_config: RenderConfig,
                    animation_config: Optional[AnimationConfig] = None) -> None:
        data: Dict[str, Any] = {'render': asdict(render_config)}
        if animation_config is not None:
            data['animation'] = asdict(animation_config)
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
        logger.info(f"Saved configuration: {filepath}")

    def get_preset(self, name: str) -> Dict[str, Dict[str, Any]]:
        preset = PRESETS.get(name)
        if preset is None:
            available = ', '.join(PRESETS.keys())
            raise ValueError(f"Unknown preset '{name}'. Available: {available}")
        return preset

    def build(self, data: Optional[Dict[str, Any]] = None,
              preset: Optional[str] = None,
              environ: Optional[Dict[str, str]] = None) -> Tuple[RenderConfig, AnimationConfig]:
        """
        Layer preset, file data and environment overrides over the defaults.

        Returns:
            Validated (RenderConfig, AnimationConfig)
        """
        render_config = RenderConfig()
        animation_config = AnimationConfig()

        for layer in (self.get_preset(preset) if preset else {}, data or {}):
            unknown = set(layer) - {'render', 'animation'}
            if unknown:
                raise ValueError(f"Unknown configuration sections: {', '.join(sorted(unknown))}")
            _apply(render_config, dict(layer.get('render', {})), 'render')
            _apply(animation_config, dict(layer.get('animation', {})), 'animation')

        _apply(render_config, EnvironmentConfig.render_overrides(environ), 'render')

        render_config.validate()
        animation_config.validate()
        return render_config, animation_config


def load_config_from_args(config_file: Optional[str] = None,
                          preset: Optional[str] = None) -> Tuple[RenderConfig, AnimationConfig]:
    """Build configurations from CLI-level --config and --preset options."""
    manager = ConfigManager()
    data = manager.load_config(Path(config_file)) if config_file else None
    return manager.build(data, preset)
