"""
Command-line interface for fractal rendering.

Commands:
    render   render a still image
    animate  render an adaptive or uniform frame sequence
    list     show available formulas, palettes and presets
"""

import click
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
import logging
import time

from .. import __version__
from ..api import FractalRenderer, RenderConfig, AnimationConfig
from ..core.formulas import EvaluatorRegistry
from ..rendering.coloring import list_palettes
from ..io.config import load_config_from_args, PRESETS

logger = logging.getLogger(__name__)


def _parse_center(value: str) -> Tuple[float, float]:
    try:
        parts = [float(x.strip()) for x in value.split(',')]
    except ValueError:
        parts = []
    if len(parts) != 2:
        raise click.BadParameter("Use 'x,y'", param_hint='--center')
    return parts[0], parts[1]


def _parse_params(values: Tuple[str, ...]) -> Dict[str, Any]:
    params = {}
    for item in values:
        if '=' not in item:
            raise click.BadParameter(f"'{item}' is not key=value", param_hint='--param')
        key, raw = item.split('=', 1)
        try:
            params[key.strip()] = json.loads(raw)
        except json.JSONDecodeError:
            params[key.strip()] = raw
    return params


def _apply_overrides(config: RenderConfig, formula: str, options: Dict[str, Any]) -> RenderConfig:
    if formula != config.formula:
        config.formula_params = {}
    config.formula = formula
    if options.get('center'):
        config.center_x, config.center_y = _parse_center(options['center'])
    mapping = {'scale': 'scale', 'max_iter': 'max_iterations', 'width': 'width',
               'height': 'height', 'palette': 'palette', 'time': 'time', 'workers': 'num_workers'}
    for option, attribute in mapping.items():
        if options.get(option) is not None:
            setattr(config, attribute, options[option])
    if options.get('param'):
        config.formula_params = {**config.formula_params, **_parse_params(options['param'])}
    config.validate()
    return config


def view_options(func):
    """Options shared by render and animate."""
    decorators = [
        click.option('--center', type=str, help='View center: "x,y"'),
        click.option('--scale', type=float, help='Plane-unit width of the view'),
        click.option('--max-iter', type=int, help='Maximum iterations'),
        click.option('--width', '-w', type=int, help='Image width'),
        click.option('--height', '-h', type=int, help='Image height'),
        click.option('--palette', help='Color palette name'),
        click.option('--workers', type=int, help='Number of worker threads'),
        click.option('--param', multiple=True, help='Formula parameter key=value (repeatable)'),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


@click.group(invoke_without_command=True)
@click.option('--version', is_flag=True, help='Show version information')
@click.option('--config', type=click.Path(exists=True), help='Configuration file path')
@click.option('--preset', help='Configuration preset to use')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--quiet', '-q', is_flag=True, help='Suppress most output')
@click.pass_context
def main(ctx, version, config, preset, verbose, quiet):
    """
    fractal-vfr - escape-time fractal images and variable-frame-rate animations.
    """
    if quiet:
        logging.basicConfig(level=logging.ERROR)
    elif verbose:
        logging.basicConfig(level=logging.DEBUG,
                            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    else:
        logging.basicConfig(level=logging.INFO,
                            format='%(levelname)s: %(message)s')

    if version:
        click.echo(f"fractal-vfr v{__version__}")
        click.echo(f"Python: {sys.version}")
        if ctx.invoked_subcommand is None:
            ctx.exit(0)

    ctx.ensure_object(dict)
    ctx.obj['config_file'] = config
    ctx.obj['preset'] = preset
    ctx.obj['verbose'] = verbose
    ctx.obj['quiet'] = quiet


def _fail(ctx, e: Exception) -> None:
    click.echo(f"Error: {e}", err=True)
    if ctx.obj.get('verbose'):
        import traceback
        traceback.print_exc()
    sys.exit(1)


@main.command()
@click.argument('formula', type=str)
@click.argument('output', type=click.Path())
@view_options
@click.option('--time', 'time', type=float, help='Time value in [0, 1) passed to the formula')
@click.pass_context
def render(ctx, formula, output, **kwargs):
    """
    Render a single image.

    FORMULA: Escape-time formula (see `list`)
    OUTPUT: Output image file path (.png, .jpg, .tif)
    """
    try:
        render_config, _ = load_config_from_args(ctx.obj.get('config_file'), ctx.obj.get('preset'))
        render_config = _apply_overrides(render_config, formula, kwargs)
        renderer = FractalRenderer(render_config)

        start_time = time.time()
        with click.progressbar(length=render_config.height, label='Rendering rows',
                               hidden=ctx.obj.get('quiet', False)) as bar:
            renderer.render(Path(output), lambda completed, total: bar.update(1))

        click.echo(f"Render complete: {time.time() - start_time:.2f}s")
        click.echo(f"Saved: {output}")
    except Exception as e:
        _fail(ctx, e)


@main.command()
@click.argument('formula', type=str)
@click.argument('output_dir', type=click.Path(file_okay=False))
@view_options
@click.option('--frames', '-n', type=int, help='Total frame budget')
@click.option('--mode', type=click.Choice(['adaptive', 'uniform']), help='Frame scheduling mode')
@click.option('--coloring', type=click.Choice(['shared', 'per_frame']),
              help='Equalize over the whole sequence or per frame')
@click.pass_context
def animate(ctx, formula, output_dir, frames, mode, coloring, **kwargs):
    """
    Render an animation as a directory of numbered frames.

    FORMULA: Escape-time formula (see `list`)
    OUTPUT_DIR: Directory receiving frame_NNNNNN.png files and frames.json
    """
    try:
        render_config, animation_config = load_config_from_args(ctx.obj.get('config_file'),
                                                                ctx.obj.get('preset'))
        render_config = _apply_overrides(render_config, formula, kwargs)
        if frames is not None:
            animation_config.frame_count = frames
        if mode is not None:
            animation_config.mode = mode
        if coloring is not None:
            animation_config.coloring = coloring
        animation_config.validate()

        renderer = FractalRenderer(render_config)

        click.echo(f"Rendering {animation_config.frame_count} frames ({animation_config.mode})...")
        start_time = time.time()
        with click.progressbar(length=animation_config.frame_count, label='Rendering frames',
                               hidden=ctx.obj.get('quiet', False)) as bar:
            rendered = renderer.animate(Path(output_dir), animation_config,
                                        lambda completed, total: bar.update(1))

        click.echo(f"Animation complete: {len(rendered)} frames in {time.time() - start_time:.2f}s")
        click.echo(f"Frames saved to: {output_dir}")
    except Exception as e:
        _fail(ctx, e)


@main.command(name='list')
def list_available():
    """List formulas, palettes and presets."""
    click.echo("Formulas:")
    for name, description in EvaluatorRegistry.list_evaluators().items():
        click.echo(f"  {name}: {description}")
    click.echo("Palettes:")
    for name in list_palettes():
        click.echo(f"  {name}")
    click.echo("Presets:")
    for name in PRESETS:
        click.echo(f"  {name}")


if __name__ == '__main__':
    main()
