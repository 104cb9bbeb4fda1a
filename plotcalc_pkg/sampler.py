"""Curve sampling: adaptive cartesian polylines and uniform parametric/polar sweeps.

The adaptive sampler allocates points where a function departs from linear,
splits the polyline with ``GAP`` markers around singularities and undefined
stretches, and never emits a value with ``|y| > abs_limit``.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from .boundary import find_first_finite_after, find_last_finite_before
from .config import (
    CURVE_POINTS,
    DEFAULT_INITIAL_POINTS,
    PARAMETRIC_T_RANGE,
    POLAR_T_RANGE,
    REL_EPS_FLOOR,
)
from .evaluator import evaluate, is_valid
from .logging_config import get_logger
from .parser import CompiledExpression
from .types import GAP, SampleSet, SampleValue, SamplingOptions

logger = get_logger("sampler")

Point = tuple[float, SampleValue]


class AdaptiveSampler:
    """Recursive subdivision sampler for one compiled expression.

    Holds only what one request needs (expression, options, scope); every
    call is a pure function of its arguments.
    """

    def __init__(
        self,
        compiled: CompiledExpression,
        options: SamplingOptions,
        scope: Mapping[str, float] | None = None,
        variable: str = "x",
    ):
        self.compiled = compiled
        self.options = options
        self.scope = dict(scope or {})
        self.variable = variable

    def f(self, x: float) -> float | None:
        return evaluate(self.compiled, x, self.scope, self.variable)

    def valid(self, y: float | None) -> bool:
        return is_valid(y, self.options.abs_limit)

    def _at_limit(self, x1: float, x2: float, depth: int) -> bool:
        return depth >= self.options.max_depth or (x2 - x1) <= self.options.min_step

    def sample_adaptively(
        self, x1: float, x2: float, y1: float, y2: float, depth: int = 0
    ) -> list[Point]:
        """Sample ``[x1, x2]`` (both ends included) between two valid endpoints."""
        x_mid = (x1 + x2) / 2
        y_mid = self.f(x_mid)
        at_limit = self._at_limit(x1, x2, depth)

        if not self.valid(y_mid):
            if at_limit:
                return [(x1, y1), (x_mid, GAP), (x2, y2)]
            left = find_last_finite_before(self.f, x1, x_mid, y1, self.options)
            right = find_first_finite_after(self.f, x_mid, x2, y2, self.options)
            if left.x > x1:
                left_part = self.sample_adaptively(x1, left.x, y1, left.y, depth + 1)
            else:
                left_part = [(x1, y1)]
            if right.x < x2:
                right_part = self.sample_adaptively(right.x, x2, right.y, y2, depth + 1)
            else:
                right_part = [(x2, y2)]
            gap_x = (left.x + right.x) / 2
            return left_part + [(gap_x, GAP)] + right_part

        error = abs(y_mid - (y1 + y2) / 2)
        rel_error = error / (abs(y2 - y1) + REL_EPS_FLOOR)
        if at_limit or (error <= self.options.abs_eps and rel_error <= self.options.rel_eps):
            return [(x1, y1), (x2, y2)]

        left_part = self.sample_adaptively(x1, x_mid, y1, y_mid, depth + 1)
        right_part = self.sample_adaptively(x_mid, x2, y_mid, y2, depth + 1)
        return left_part + right_part[1:]

    def generate_samples(
        self, x_min: float, x_max: float, initial_points: int = DEFAULT_INITIAL_POINTS
    ) -> SampleSet:
        """Sample ``[x_min, x_max]`` over ``initial_points`` coarse cells."""
        cells = max(1, int(initial_points))
        dx = (x_max - x_min) / cells
        xs = [x_min + i * dx for i in range(cells)] + [x_max]
        ys = [self.f(x) for x in xs]

        points: list[Point] = []
        for i in range(cells):
            xa, xb = xs[i], xs[i + 1]
            ya, yb = ys[i], ys[i + 1]
            valid_a, valid_b = self.valid(ya), self.valid(yb)
            if valid_a and valid_b:
                _extend(points, self.sample_adaptively(xa, xb, ya, yb, 0))
            elif valid_a:
                edge = find_last_finite_before(self.f, xa, xb, ya, self.options)
                if edge.x > xa:
                    _extend(points, self.sample_adaptively(xa, edge.x, ya, edge.y, 0))
                else:
                    _extend(points, [(xa, ya)])
                _extend(points, [(xb, GAP)])
            elif valid_b:
                edge = find_first_finite_after(self.f, xa, xb, yb, self.options)
                _extend(points, [(xa, GAP)])
                if edge.x < xb:
                    _extend(points, self.sample_adaptively(edge.x, xb, edge.y, yb, 0))
                else:
                    _extend(points, [(xb, yb)])
            else:
                _extend(points, [(xa, GAP), (xb, GAP)])

        self._pin_trailing_edge(points, x_max)
        logger.debug(
            "Sampled %s over [%g, %g]: %d points", self.compiled, x_min, x_max, len(points)
        )
        return SampleSet.from_points(points)

    def _pin_trailing_edge(self, points: list[Point], x_max: float) -> None:
        """Make the last sample sit exactly at ``x_max`` without dangling values."""
        if not points or points[-1][0] != x_max:
            y_end = self.f(x_max)
            points.append((x_max, y_end if y_end is not None else GAP))
        x_last, y_last = points[-1]
        if y_last is not GAP and abs(y_last) > self.options.abs_limit:
            points[-1] = (x_last, GAP)
            if len(points) > 1:
                x_prev, y_prev = points[-2]
                if y_prev is not GAP and abs(y_prev) > self.options.abs_limit:
                    points[-2] = (x_prev, GAP)


def _extend(points: list[Point], segment: list[Point]) -> None:
    """Append ``segment``, dropping a leading point that repeats the last one."""
    for x, y in segment:
        if points:
            x_last, y_last = points[-1]
            if x == x_last and (y is y_last or (y is not GAP and y_last is not GAP and y == y_last)):
                continue
        points.append((x, y))


def generate_samples(
    compiled: CompiledExpression,
    x_min: float,
    x_max: float,
    initial_points: int = DEFAULT_INITIAL_POINTS,
    options: SamplingOptions | None = None,
    scope: Mapping[str, float] | None = None,
) -> SampleSet:
    """Adaptively sample ``compiled`` over ``[x_min, x_max]``."""
    if options is None:
        options = SamplingOptions.for_domain(x_min, x_max)
    return AdaptiveSampler(compiled, options, scope).generate_samples(
        x_min, x_max, initial_points
    )


def _uniform_parameter(t_min: float, t_max: float, points: int) -> list[float]:
    steps = max(1, int(points))
    dt = (t_max - t_min) / steps
    return [t_min + i * dt for i in range(steps + 1)]


def sample_parametric(
    x_compiled: CompiledExpression,
    y_compiled: CompiledExpression,
    t_min: float = PARAMETRIC_T_RANGE[0],
    t_max: float = PARAMETRIC_T_RANGE[1],
    points: int = CURVE_POINTS,
    scope: Mapping[str, float] | None = None,
) -> dict[str, list[Any]]:
    """Uniformly sample ``(x(t), y(t))``; both coordinates are null where either fails."""
    xs: list[float | None] = []
    ys: list[float | None] = []
    for t in _uniform_parameter(t_min, t_max, points):
        xv = evaluate(x_compiled, t, scope, "t")
        yv = evaluate(y_compiled, t, scope, "t")
        if xv is None or yv is None:
            xs.append(None)
            ys.append(None)
        else:
            xs.append(xv)
            ys.append(yv)
    return {"x": xs, "y": ys}


def sample_polar(
    r_compiled: CompiledExpression,
    t_min: float = POLAR_T_RANGE[0],
    t_max: float = POLAR_T_RANGE[1],
    points: int = CURVE_POINTS,
    scope: Mapping[str, float] | None = None,
) -> dict[str, list[Any]]:
    """Uniformly sample ``r(t)``; theta is reported in degrees, null where r fails."""
    rs: list[float | None] = []
    thetas: list[float | None] = []
    for t in _uniform_parameter(t_min, t_max, points):
        rv = evaluate(r_compiled, t, scope, "t")
        rs.append(rv)
        thetas.append(math.degrees(t) if rv is not None else None)
    return {"r": rs, "theta": thetas}


def sample_uniform(
    compiled: CompiledExpression,
    t_min: float,
    t_max: float,
    points: int = CURVE_POINTS,
    scope: Mapping[str, float] | None = None,
    variable: str = "t",
) -> tuple[list[float], list[float | None]]:
    """Uniform sweep of one expression, used for derivative curves."""
    ts = _uniform_parameter(t_min, t_max, points)
    return ts, [evaluate(compiled, t, scope, variable) for t in ts]
