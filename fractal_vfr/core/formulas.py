"""
Escape-time evaluators and their registry.

An evaluator is any thread-safe callable ``(plane_x, plane_y, max_iter[, t])``
returning an iteration count in ``[0, max_iter]``; ``max_iter`` means the
point never escaped. The classes here are the built-in evaluators, each backed
by a Numba kernel compiled with ``nogil=True`` so that rasterizer threads run
them concurrently.

Every kernel short-circuits to ``max_iter`` when two consecutive iterates are
bit-identical, so orbits that settle on a fixed point never spin until the cap.
"""

import math
from typing import Dict, Any, Optional, Tuple
from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging

from numba import jit

logger = logging.getLogger(__name__)


@jit(nopython=True, nogil=True, cache=True)
def mandelbrot_kernel(x0, y0, max_iter, z0_real, z0_imag):
    """Iterate z = z^2 + c from z0 with c = (x0, y0)."""
    x = z0_real
    y = z0_imag
    n = 0
    while x * x + y * y < 4.0 and n < max_iter:
        xt = x * x - y * y + x0
        yt = 2.0 * x * y + y0
        if xt == x and yt == y:
            return max_iter
        x = xt
        y = yt
        n += 1
    return n


@jit(nopython=True, nogil=True, cache=True)
def julia_kernel(x0, y0, max_iter, c_real, c_imag):
    """Iterate z = z^2 + c from z = (x0, y0)."""
    x = x0
    y = y0
    n = 0
    while x * x + y * y < 4.0 and n < max_iter:
        xt = x * x - y * y + c_real
        yt = 2.0 * x * y + c_imag
        if xt == x and yt == y:
            return max_iter
        x = xt
        y = yt
        n += 1
    return n


@jit(nopython=True, nogil=True, cache=True)
def sine_kernel(x0, y0, max_iter, c_real, c_imag, bound):
    """Iterate z = c * sin(z); escape once |Im z| reaches the bound."""
    x = x0
    y = y0
    n = 0
    while abs(y) < bound and n < max_iter:
        sr = math.sin(x) * math.cosh(y)
        si = math.cos(x) * math.sinh(y)
        xt = c_real * sr - c_imag * si
        yt = c_real * si + c_imag * sr
        if xt == x and yt == y:
            return max_iter
        x = xt
        y = yt
        n += 1
    return n


@dataclass
class EvaluatorParameters:
    """Base class for evaluator parameters with validation."""

    def validate(self) -> None:
        """Validate parameter values."""
        pass

    def to_dict(self) -> Dict[str, Any]:
        """Convert parameters to dictionary."""
        return {k: v for k, v in self.__dict__.items() if not k.startswith('_')}


def _require_number(params: EvaluatorParameters, *names: str) -> None:
    for name in names:
        value = getattr(params, name)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{name} must be numeric")
        if not math.isfinite(value):
            raise ValueError(f"{name} must be finite")


class EscapeEvaluator(ABC):
    """Abstract base class for built-in escape-time evaluators."""

    def __init__(self, name: str, parameters: EvaluatorParameters):
        self.name = name
        self.parameters = parameters
        self.parameters.validate()

    @abstractmethod
    def __call__(self, plane_x: float, plane_y: float, max_iter: int, t: float = 0.0) -> int:
        """Return the escape iteration count of one plane point."""

    @abstractmethod
    def get_recommended_view(self) -> Tuple[float, float, float]:
        """Get a recommended (center_x, center_y, scale) for this evaluator."""

    def get_description(self) -> str:
        return f"{self.name} evaluator"


@dataclass
class MandelbrotParameters(EvaluatorParameters):
    """Parameters for the Mandelbrot set."""

    z0_real: float = 0.0
    z0_imag: float = 0.0

    def validate(self) -> None:
        _require_number(self, 'z0_real', 'z0_imag')


class MandelbrotEvaluator(EscapeEvaluator):
    """Mandelbrot set; the time parameter is ignored."""

    def __init__(self, parameters: Optional[MandelbrotParameters] = None):
        super().__init__("Mandelbrot", parameters or MandelbrotParameters())

    def __call__(self, plane_x: float, plane_y: float, max_iter: int, t: float = 0.0) -> int:
        return int(mandelbrot_kernel(float(plane_x), float(plane_y), int(max_iter),
                                     float(self.parameters.z0_real), float(self.parameters.z0_imag)))

    def get_recommended_view(self) -> Tuple[float, float, float]:
        return (-0.75, 0.0, 3.5)

    def get_description(self) -> str:
        return ("Mandelbrot set: z_{n+1} = z_n^2 + c, where c is the plane coordinate "
                "and z_0 = " + str(complex(self.parameters.z0_real, self.parameters.z0_imag)))


@dataclass
class JuliaParameters(EvaluatorParameters):
    """Parameters for Julia sets, optionally orbiting c over time."""

    c_real: float = -0.8
    c_imag: float = 0.156
    animate: bool = False
    radius: float = 0.7885
    phase: float = 0.0

    def validate(self) -> None:
        _require_number(self, 'c_real', 'c_imag', 'radius', 'phase')
        if not isinstance(self.animate, bool):
            raise ValueError("animate must be a boolean")

    def c_at(self, t: float) -> Tuple[float, float]:
        """Julia constant at time t."""
        if not self.animate:
            return self.c_real, self.c_imag
        angle = 2.0 * math.pi * (t + self.phase)
        return self.radius * math.cos(angle), self.radius * math.sin(angle)


class JuliaEvaluator(EscapeEvaluator):
    """Julia set of z^2 + c."""

    def __init__(self, parameters: Optional[JuliaParameters] = None):
        super().__init__("Julia", parameters or JuliaParameters())

    def __call__(self, plane_x: float, plane_y: float, max_iter: int, t: float = 0.0) -> int:
        c_real, c_imag = self.parameters.c_at(t)
        return int(julia_kernel(float(plane_x), float(plane_y), int(max_iter),
                                float(c_real), float(c_imag)))

    def get_recommended_view(self) -> Tuple[float, float, float]:
        return (0.0, 0.0, 4.0)

    def get_description(self) -> str:
        if self.parameters.animate:
            return f"Julia set: z_{{n+1}} = z_n^2 + c, c orbiting |c| = {self.parameters.radius}"
        return f"Julia set: z_{{n+1}} = z_n^2 + c, c = {complex(self.parameters.c_real, self.parameters.c_imag)}"


@dataclass
class SineParameters(EvaluatorParameters):
    """Parameters for the sine map z = c*sin(z) with c = amplitude*(sin(pi t), cos(pi t))."""

    amplitude: float = 1.0
    escape_bound: float = 50.0

    def validate(self) -> None:
        _require_number(self, 'amplitude', 'escape_bound')
        if self.escape_bound <= 0:
            raise ValueError("escape_bound must be positive")


class SineEvaluator(EscapeEvaluator):
    """Transcendental sine map swept over time."""

    def __init__(self, parameters: Optional[SineParameters] = None):
        super().__init__("Sine", parameters or SineParameters())

    def __call__(self, plane_x: float, plane_y: float, max_iter: int, t: float = 0.0) -> int:
        a = self.parameters.amplitude
        c_real = a * math.sin(math.pi * t)
        c_imag = a * math.cos(math.pi * t)
        return int(sine_kernel(float(plane_x), float(plane_y), int(max_iter),
                               c_real, c_imag, float(self.parameters.escape_bound)))

    def get_recommended_view(self) -> Tuple[float, float, float]:
        return (0.0, 0.0, 12.0)

    def get_description(self) -> str:
        return "Sine map: z_{n+1} = c sin(z_n), c = (sin(pi t), cos(pi t))"


class EvaluatorRegistry:
    """Registry for managing available evaluators."""

    _evaluators: Dict[str, Tuple[type, type]] = {
        'mandelbrot': (MandelbrotEvaluator, MandelbrotParameters),
        'julia': (JuliaEvaluator, JuliaParameters),
        'sine': (SineEvaluator, SineParameters),
    }

    @classmethod
    def register(cls, name: str, evaluator_class: type, parameters_class: type) -> None:
        """
        Register a new evaluator type.

        Args:
            name: Unique identifier for the evaluator
            evaluator_class: Class implementing EscapeEvaluator
            parameters_class: Parameters dataclass it is constructed with
        """
        if not issubclass(evaluator_class, EscapeEvaluator):
            raise ValueError("Evaluator class must inherit from EscapeEvaluator")
        if not issubclass(parameters_class, EvaluatorParameters):
            raise ValueError("Parameters class must inherit from EvaluatorParameters")
        cls._evaluators[name.lower()] = (evaluator_class, parameters_class)
        logger.info(f"Registered evaluator: {name}")

    @classmethod
    def get(cls, name: str) -> Tuple[type, type]:
        entry = cls._evaluators.get(name.lower())
        if entry is None:
            available = ', '.join(cls._evaluators.keys())
            raise ValueError(f"Unknown formula '{name}'. Available: {available}")
        return entry

    @classmethod
    def list_evaluators(cls) -> Dict[str, str]:
        """Get a dictionary of available evaluators and their descriptions."""
        return {name: evaluator_class().get_description()
                for name, (evaluator_class, _) in cls._evaluators.items()}

    @classmethod
    def create(cls, name: str, **params) -> EscapeEvaluator:
        """
        Create an evaluator instance with the given parameters.

        Args:
            name: Evaluator name
            **params: Fields of the evaluator's parameters dataclass

        Returns:
            Configured evaluator instance
        """
        evaluator_class, parameters_class = cls.get(name)
        try:
            parameters = parameters_class(**params)
        except TypeError as e:
            raise ValueError(f"Invalid parameters for formula '{name}': {e}") from e
        return evaluator_class(parameters)
