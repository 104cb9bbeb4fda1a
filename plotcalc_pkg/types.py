"""Type definitions, result dataclasses and exceptions shared across the engine."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from .config import (
    ABS_EPS,
    ABS_LIMIT,
    INTERSECTION_EPS,
    INTERSECTION_MAX_ITER,
    MAX_DEPTH,
    MIN_STEP_DIVISOR,
    REL_EPS,
    ROOT_SEGMENTS,
    SAMPLING_PRESETS,
)


class _Gap:
    """Marker for a drawn break in a polyline.

    A single instance (``GAP``) exists; it is neither NaN nor ``None`` so
    consumers must handle it explicitly. It serializes to JSON ``null``.
    """

    _instance: _Gap | None = None

    def __new__(cls) -> _Gap:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "GAP"

    def __reduce__(self):
        return (_Gap, ())


GAP = _Gap()

SampleValue = Union[float, _Gap]


def is_gap(value: Any) -> bool:
    return value is GAP


@dataclass(frozen=True)
class SampleSet:
    """Parallel x/y sequences of a sampled curve (x non-decreasing)."""

    x: tuple[float, ...]
    y: tuple[SampleValue, ...]

    def __post_init__(self) -> None:
        if len(self.x) != len(self.y):
            raise ValueError("SampleSet x and y must have the same length")

    def __len__(self) -> int:
        return len(self.x)

    @classmethod
    def from_points(cls, points: list[tuple[float, SampleValue]]) -> SampleSet:
        return cls(
            x=tuple(p[0] for p in points),
            y=tuple(p[1] for p in points),
        )

    def gap_positions(self) -> list[float]:
        """Return the x coordinates of every gap marker."""
        return [x for x, y in zip(self.x, self.y) if y is GAP]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization (gaps become null)."""
        return {
            "x": list(self.x),
            "y": [None if y is GAP else y for y in self.y],
        }


@dataclass(frozen=True)
class SurfaceGrid:
    """Fixed-resolution z(x, y) grid; ``z[j][i]`` is the value at (x[i], y[j])."""

    x: tuple[float, ...]
    y: tuple[float, ...]
    z: tuple[tuple[float | None, ...], ...]

    @property
    def resolution(self) -> int:
        return len(self.x)

    def null_count(self) -> int:
        return sum(1 for row in self.z for value in row if value is None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "x": list(self.x),
            "y": list(self.y),
            "z": [list(row) for row in self.z],
        }


@dataclass(frozen=True)
class Point2D:
    """A located root, intersection or extremum."""

    x: float
    y: float | None
    type: str | None = None
    f2: float | None = None

    def to_dict(self) -> dict[str, Any]:
        result_dict: dict[str, Any] = {"x": self.x, "y": self.y}
        if self.type is not None:
            result_dict["type"] = self.type
            result_dict["f2"] = self.f2
        return result_dict


@dataclass(frozen=True)
class SamplingOptions:
    """Tunables for adaptive sampling and root finding."""

    abs_limit: float = ABS_LIMIT
    max_depth: int = MAX_DEPTH
    min_step: float = 1.0 / MIN_STEP_DIVISOR
    abs_eps: float = ABS_EPS
    rel_eps: float = REL_EPS
    segments: int = ROOT_SEGMENTS
    intersection_eps: float = INTERSECTION_EPS
    intersection_max_iter: int = INTERSECTION_MAX_ITER

    # wire name -> attribute name
    _WIRE_NAMES = {
        "absLimit": "abs_limit",
        "maxDepth": "max_depth",
        "minStep": "min_step",
        "absEps": "abs_eps",
        "relEps": "rel_eps",
        "segments": "segments",
        "intersectionEps": "intersection_eps",
        "intersectionMaxIter": "intersection_max_iter",
    }

    @classmethod
    def for_domain(
        cls, x_min: float, x_max: float, options: dict[str, Any] | None = None
    ) -> SamplingOptions:
        """Build options for a domain from a request's ``options`` dict.

        Starts from the named ``preset`` (default "default"), derives
        ``minStep`` from the domain width, then applies any explicit fields.
        Unknown keys are ignored.

        Raises:
            BoundsError: If an explicit field is not a finite number
        """
        options = dict(options) if isinstance(options, Mapping) else {}
        preset_name = options.pop("preset", None)
        if not isinstance(preset_name, str):
            preset_name = "default"
        preset = SAMPLING_PRESETS.get(preset_name, SAMPLING_PRESETS["default"])
        span = abs(x_max - x_min) or 1.0
        values: dict[str, Any] = {
            "abs_limit": float(preset["absLimit"]),
            "max_depth": int(preset["maxDepth"]),
            "min_step": span / float(preset["minStepDivisor"]),
            "abs_eps": float(preset["absEps"]),
            "rel_eps": float(preset["relEps"]),
        }
        for wire_name, attr in cls._WIRE_NAMES.items():
            raw = options.get(wire_name)
            if raw is None:
                continue
            try:
                number = float(raw)
            except (TypeError, ValueError):
                number = math.nan
            if isinstance(raw, bool) or not math.isfinite(number):
                raise BoundsError(
                    f"Sampling option '{wire_name}' must be a finite number",
                    "INVALID_OPTION",
                )
            values[attr] = int(number) if isinstance(getattr(cls, attr), int) else number
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return {
            wire_name: getattr(self, attr)
            for wire_name, attr in self._WIRE_NAMES.items()
        }


@dataclass
class PlotResult:
    """Result of a ``compute`` request."""

    ok: bool
    mode: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result_dict: dict[str, Any] = {"ok": self.ok}
        if self.mode is not None:
            result_dict["mode"] = self.mode
        if self.ok:
            result_dict.update(self.data)
        if self.error is not None:
            result_dict["error"] = self.error
        return result_dict

    def __repr__(self) -> str:
        if not self.ok:
            return f"PlotResult(ok=False, error={self.error!r})"
        return f"PlotResult(ok=True, mode={self.mode!r}, keys={sorted(self.data)!r})"


@dataclass
class IntegralResult:
    """Result of a ``computeIntegral`` request."""

    ok: bool
    mode: str | None = None
    value: float | None = None
    a: float | None = None
    b: float | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result_dict: dict[str, Any] = {"ok": self.ok}
        if self.mode is not None:
            result_dict["mode"] = self.mode
        if self.value is not None:
            result_dict["value"] = self.value
        if self.a is not None:
            result_dict["a"] = self.a
        if self.b is not None:
            result_dict["b"] = self.b
        if self.error is not None:
            result_dict["error"] = self.error
        return result_dict

    def __repr__(self) -> str:
        if not self.ok:
            return f"IntegralResult(ok=False, error={self.error!r})"
        return f"IntegralResult(ok=True, mode={self.mode!r}, value={self.value!r})"


class PlotCalcError(Exception):
    """Base class for errors surfaced to the caller as an ``error`` response."""

    default_code = "PLOTCALC_ERROR"

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        self.code = code or self.default_code
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class ParseError(PlotCalcError):
    """Raised when parsing fails."""

    default_code = "PARSE_ERROR"


class CompilationError(ParseError):
    """Raised when expression text cannot be turned into an evaluable callable."""


class BoundsError(PlotCalcError):
    """Raised for non-finite or inverted bounds, or an unusable resolution."""

    default_code = "INVALID_BOUNDS"


class DegenerateResultError(PlotCalcError):
    """Raised when a computation finished but produced nothing usable."""

    default_code = "DEGENERATE_RESULT"


class IntegrandUndefinedError(PlotCalcError):
    """Raised when a fail-fast integral meets an undefined integrand sample."""

    default_code = "INTEGRAND_UNDEFINED"


class EvaluationFailure(Exception):
    """Raised by ``CompiledExpression.evaluate`` for a single failed sample.

    Never surfaced to callers of the engine: the scalar evaluator turns it
    into the invalid marker.
    """
