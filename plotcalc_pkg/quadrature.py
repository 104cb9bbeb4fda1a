"""Composite quadrature for plane curves, parametric arcs, polar sectors and surfaces.

Simpson's 1/3 rule is the primary method. The plane-curve and double
integrals tolerate undefined samples (trapezoid fallback, zero-valued cells);
the parametric and polar integrals refuse to produce a number over an
undefined integrand.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping

from .config import (
    CURVE_INTEGRAL_STEPS,
    DOUBLE_INTEGRAL_GRID,
    FD_MIN_STEP,
    FD_STEP_DIVISOR,
    INTEGRAL_STEPS,
    MIN_CURVE_INTEGRAL_STEPS,
    MIN_INTEGRAL_STEPS,
)
from .evaluator import evaluate, evaluate_bindings
from .logging_config import get_logger
from .parser import CompiledExpression
from .surface import check_range
from .types import CompilationError, IntegrandUndefinedError

logger = get_logger("quadrature")


def _check_interval(a: float, b: float) -> None:
    check_range(a, b, "Integration")


def simpson_weight(i: int, n: int) -> int:
    if i == 0 or i == n:
        return 1
    return 4 if i % 2 else 2


def trapezoidal_integral(
    compiled: CompiledExpression,
    a: float,
    b: float,
    scope: Mapping[str, float] | None = None,
    steps: int = INTEGRAL_STEPS,
    variable: str = "x",
) -> float:
    """Trapezoidal rule where undefined samples contribute zero."""
    n = max(1, int(steps))
    h = (b - a) / n
    total = 0.0
    for i in range(n + 1):
        y = evaluate(compiled, a + i * h, scope, variable)
        if y is None:
            continue
        total += y if 0 < i < n else y / 2
    return total * h


def compute_definite_integral(
    compiled: CompiledExpression,
    a: float,
    b: float,
    scope: Mapping[str, float] | None = None,
    steps: int = INTEGRAL_STEPS,
    variable: str = "x",
) -> float:
    """Integrate ``compiled`` over ``[a, b]`` with composite Simpson.

    ``steps`` is raised to at least ``MIN_INTEGRAL_STEPS`` and bumped to the
    next even count. If an endpoint or any interior sample is undefined the
    whole interval is redone with ``trapezoidal_integral``.

    Raises:
        BoundsError: If the bounds are non-finite or ``a >= b``
    """
    _check_interval(a, b)
    n = max(int(steps), MIN_INTEGRAL_STEPS)
    if n % 2:
        n += 1
    h = (b - a) / n

    total = 0.0
    for i in range(n + 1):
        y = evaluate(compiled, a + i * h, scope, variable)
        if y is None:
            logger.debug(
                "Undefined sample at %g in %s, using trapezoid fallback",
                a + i * h,
                compiled,
            )
            return trapezoidal_integral(compiled, a, b, scope, n, variable)
        total += simpson_weight(i, n) * y
    return total * h / 3


def _simpson_strict(
    integrand: Callable[[float], float | None], a: float, b: float, steps: int
) -> float:
    n = max(int(steps), MIN_CURVE_INTEGRAL_STEPS)
    if n % 2:
        n += 1
    h = (b - a) / n

    f0, fn = integrand(a), integrand(b)
    if f0 is None or fn is None:
        raise IntegrandUndefinedError("Integrand is undefined at an integration bound")
    total = f0 + fn
    for i in range(1, n):
        ft = integrand(a + i * h)
        if ft is None:
            raise IntegrandUndefinedError(
                f"Integrand is undefined inside the interval (t = {a + i * h:g})"
            )
        total += simpson_weight(i, n) * ft
    return total * h / 3


def _finite(value: float | None) -> float | None:
    if value is None or not math.isfinite(value):
        return None
    return value


def parametric_area(
    x_compiled: CompiledExpression,
    y_compiled: CompiledExpression,
    a: float,
    b: float,
    scope: Mapping[str, float] | None = None,
    steps: int = CURVE_INTEGRAL_STEPS,
) -> float:
    """Signed area under a parametric arc: integral of ``y(t) * x'(t)`` dt.

    ``x'(t)`` is analytic when SymPy can differentiate ``x(t)``, otherwise a
    centered finite difference.

    Raises:
        BoundsError: For bad bounds
        IntegrandUndefinedError: On any undefined sample
    """
    _check_interval(a, b)
    try:
        dxdt_compiled = x_compiled.derivative("t")
    except CompilationError as e:
        logger.debug("Using finite differences for x'(t) of %s: %s", x_compiled, e)
        dxdt_compiled = None
    h = max(FD_MIN_STEP, abs(b - a) / FD_STEP_DIVISOR)

    def dxdt(t: float) -> float | None:
        if dxdt_compiled is not None:
            return evaluate(dxdt_compiled, t, scope, "t")
        xm = evaluate(x_compiled, t - h, scope, "t")
        xp = evaluate(x_compiled, t + h, scope, "t")
        if xm is None or xp is None:
            return None
        return (xp - xm) / (2 * h)

    def integrand(t: float) -> float | None:
        yv = evaluate(y_compiled, t, scope, "t")
        dx = dxdt(t)
        if yv is None or dx is None:
            return None
        return _finite(yv * dx)

    return _simpson_strict(integrand, a, b, steps)


def polar_area(
    r_compiled: CompiledExpression,
    a: float,
    b: float,
    scope: Mapping[str, float] | None = None,
    steps: int = CURVE_INTEGRAL_STEPS,
) -> float:
    """Area swept by ``r(t)`` between angles ``a`` and ``b``: integral of r^2/2.

    Raises:
        BoundsError: For bad bounds
        IntegrandUndefinedError: On any undefined sample
    """
    _check_interval(a, b)

    def integrand(t: float) -> float | None:
        r = evaluate(r_compiled, t, scope, "t")
        if r is None:
            return None
        return _finite(0.5 * r * r)

    return _simpson_strict(integrand, a, b, steps)


def double_integral(
    compiled: CompiledExpression,
    x_range: tuple[float, float],
    y_range: tuple[float, float],
    scope: Mapping[str, float] | None = None,
    grid: int = DOUBLE_INTEGRAL_GRID,
) -> float:
    """Volume under ``z(x, y)`` over a rectangle by nested trapezoids.

    Undefined cells contribute zero.
    """
    check_range(x_range[0], x_range[1], "x")
    check_range(y_range[0], y_range[1], "y")
    nx = ny = max(1, int(grid))
    hx = (x_range[1] - x_range[0]) / nx
    hy = (y_range[1] - y_range[0]) / ny
    bindings = dict(scope or {})

    def f(x: float, y: float) -> float:
        bindings["x"] = x
        bindings["y"] = y
        z = evaluate_bindings(compiled, bindings)
        return 0.0 if z is None else z

    inner = []
    for i in range(nx + 1):
        x = x_range[0] + i * hx
        sum_y = 0.0
        for j in range(ny + 1):
            w = 1 if j in (0, ny) else 2
            sum_y += w * f(x, y_range[0] + j * hy)
        inner.append(hy / 2 * sum_y)

    sum_x = sum((1 if i in (0, nx) else 2) * v for i, v in enumerate(inner))
    return hx / 2 * sum_x
