"""Scan-and-bisect root isolation for zeros, extrema and curve intersections.

A coarse scan over ``segments`` equal sub-intervals looks for sign changes of
``f1 - f2``; each bracket is then bisected. Roots closer than half a scan
interval to an already accepted root are dropped, so two genuine roots that
close together come back as one.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping

from .config import EXTREMUM_EPS
from .evaluator import evaluate
from .logging_config import get_logger
from .parser import CompiledExpression
from .types import CompilationError, Point2D, SamplingOptions

logger = get_logger("roots")


def _bisect(
    fn: Callable[[float], float | None],
    a: float,
    b: float,
    fa: float,
    fb: float,
    eps: float,
    max_iter: int,
) -> float | None:
    """Isolate a sign change in ``[a, b]``; ``None`` if the bracket hits an undefined point."""
    if fa == 0:
        return a
    if fb == 0:
        return b
    for _ in range(max_iter):
        mid = (a + b) / 2
        fm = fn(mid)
        if fm is None:
            return None
        if fm == 0 or (b - a) / 2 < eps:
            return mid
        if fa * fm < 0:
            b, fb = mid, fm
        else:
            a, fa = mid, fm
    return (a + b) / 2


def find_intersections(
    f1: CompiledExpression,
    f2: CompiledExpression | None,
    x_min: float,
    x_max: float,
    y_min: float,
    y_max: float,
    segments: int | None = None,
    options: SamplingOptions | None = None,
    scope: Mapping[str, float] | None = None,
) -> list[Point2D]:
    """Find points where ``f1(x) == f2(x)`` inside the viewing window.

    ``f2=None`` stands for the constant zero function. The y of each point is
    ``f1`` evaluated at the root and must lie in ``[y_min, y_max]``.
    """
    if options is None:
        options = SamplingOptions.for_domain(x_min, x_max)
    count = max(1, int(segments or options.segments))
    dx = (x_max - x_min) / count
    min_separation = dx / 2

    def diff(x: float) -> float | None:
        a = evaluate(f1, x, scope)
        if a is None:
            return None
        if f2 is None:
            return a
        b = evaluate(f2, x, scope)
        if b is None:
            return None
        return a - b

    found: list[Point2D] = []
    x_prev = x_min
    d_prev = diff(x_prev)
    for i in range(1, count + 1):
        x_cur = x_max if i == count else x_min + i * dx
        d_cur = diff(x_cur)
        if d_prev is not None and d_cur is not None and d_prev * d_cur <= 0:
            root = _bisect(
                diff,
                x_prev,
                x_cur,
                d_prev,
                d_cur,
                options.intersection_eps,
                options.intersection_max_iter,
            )
            if root is not None and x_min <= root <= x_max:
                y = evaluate(f1, root, scope)
                if (
                    y is not None
                    and y_min <= y <= y_max
                    and not any(abs(p.x - root) < min_separation for p in found)
                ):
                    found.append(Point2D(root, y))
        x_prev, d_prev = x_cur, d_cur
    return found


def find_zeros(
    f: CompiledExpression,
    x_min: float,
    x_max: float,
    y_min: float,
    y_max: float,
    options: SamplingOptions | None = None,
    scope: Mapping[str, float] | None = None,
) -> list[Point2D]:
    """Roots of ``f`` (intersections with the zero function)."""
    return find_intersections(
        f, None, x_min, x_max, y_min, y_max, options=options, scope=scope
    )


def classify_extremum(f2_value: float | None) -> str:
    if f2_value is None:
        return "unknown"
    if f2_value > EXTREMUM_EPS:
        return "min"
    if f2_value < -EXTREMUM_EPS:
        return "max"
    return "flat"


def find_extrema(
    f: CompiledExpression,
    x_min: float,
    x_max: float,
    y_min: float,
    y_max: float,
    options: SamplingOptions | None = None,
    scope: Mapping[str, float] | None = None,
    first: CompiledExpression | None = None,
) -> list[Point2D]:
    """Critical points of ``f``, each classified by the sign of ``f''``.

    Roots are searched on ``f'`` (so the window check applies to the
    derivative's value); the reported y is re-evaluated on ``f``.
    """
    if first is None:
        first = f.derivative("x")
    try:
        second = first.derivative("x")
    except CompilationError as e:
        logger.debug("No second derivative for %s: %s", f, e)
        second = None

    critical = find_intersections(
        first, None, x_min, x_max, y_min, y_max, options=options, scope=scope
    )
    extrema = []
    for point in critical:
        f2_value = evaluate(second, point.x, scope) if second is not None else None
        extrema.append(
            Point2D(
                point.x,
                evaluate(f, point.x, scope),
                type=classify_extremum(f2_value),
                f2=f2_value,
            )
        )
    return extrema
