"""Public API for plotcalc - returns structured objects without side effects.

Every function runs the request in-process and converts the dispatcher's
response into a result dataclass; user errors come back as ``ok=False``
results instead of exceptions.
"""

from __future__ import annotations

from typing import Any

from .config import DEFAULT_SURFACE_RANGE, DEFAULT_SURFACE_RESOLUTION
from .logging_config import get_logger
from .parser import compile_expression
from .types import IntegralResult, PlotCalcError, PlotResult
from .worker import handle_message

logger = get_logger("api")


def _run(kind: str, payload: dict[str, Any]) -> dict[str, Any]:
    response = handle_message({"type": kind, "payload": payload})
    if response is None:
        return {"type": "error", "payload": {"message": f"Unsupported request: {kind}"}}
    return response


def _plot_result(response: dict[str, Any]) -> PlotResult:
    payload = dict(response.get("payload") or {})
    if response.get("type") == "error":
        return PlotResult(ok=False, error=payload.get("message") or "Unknown error")
    mode = payload.pop("mode", None)
    return PlotResult(ok=True, mode=mode, data=payload)


def _range_dict(bounds: tuple[float, float] | None) -> dict[str, float] | None:
    if bounds is None:
        return None
    return {"min": bounds[0], "max": bounds[1]}


def plot(
    expression: str,
    x_min: float = -10.0,
    x_max: float = 10.0,
    y_min: float | None = None,
    y_max: float | None = None,
    expression2: str | None = None,
    zeros: bool = False,
    extrema: bool = False,
    intersections: bool = False,
    derivative: bool = False,
    initial_points: int | None = None,
    options: dict[str, Any] | None = None,
    scope: dict[str, float] | None = None,
) -> PlotResult:
    """Sample a cartesian function ``y = f(x)`` and optional analyses.

    Args:
        expression: Function of ``x`` (e.g. "sin(x)/x", "a*x^2")
        x_min, x_max: Domain to sample
        y_min, y_max: Viewing window for roots/extrema (unbounded when omitted)
        expression2: Optional second function, needed for ``intersections``
        zeros, extrema, intersections, derivative: Analyses to include
        initial_points: Coarse cell count (default 50)
        options: Sampling options by wire name, plus ``preset``
        scope: User parameter values

    Returns:
        PlotResult whose ``data`` holds ``samples1``, ``samples2``,
        ``zeros``, ``extrema``, ``intersections``, ``derivative`` and
        ``derivativeSamples``

    Example:
        >>> from plotcalc_pkg.api import plot
        >>> result = plot("x^2 - 1", -3, 3, zeros=True)
        >>> [round(p["x"], 6) for p in result.data["zeros"]]
        [-1.0, 1.0]
    """
    payload: dict[str, Any] = {
        "mode": "cartesian",
        "expression": expression,
        "expression2": expression2,
        "xMin": x_min,
        "xMax": x_max,
        "yMin": y_min,
        "yMax": y_max,
        "initialPoints": initial_points,
        "options": options or {},
        "calculateZeros": zeros,
        "calculateExtrema": extrema,
        "calculateIntersections": intersections,
        "calculateDerivativePlot": derivative,
        "scope": scope or {},
    }
    return _plot_result(_run("compute", payload))


def plot_parametric(
    x_expr: str,
    y_expr: str,
    t_min: float | None = None,
    t_max: float | None = None,
    points: int | None = None,
    derivative: bool = False,
    scope: dict[str, float] | None = None,
) -> PlotResult:
    """Sample a parametric curve ``(x(t), y(t))`` uniformly."""
    payload = {
        "mode": "parametric",
        "xExpr": x_expr,
        "yExpr": y_expr,
        "tMin": t_min,
        "tMax": t_max,
        "initialPoints": points,
        "calculateDerivativePlot": derivative,
        "scope": scope or {},
    }
    return _plot_result(_run("compute", payload))


def plot_polar(
    r_expr: str,
    t_min: float | None = None,
    t_max: float | None = None,
    points: int | None = None,
    derivative: bool = False,
    scope: dict[str, float] | None = None,
) -> PlotResult:
    """Sample a polar curve ``r(t)``; theta comes back in degrees."""
    payload = {
        "mode": "polar",
        "rExpr": r_expr,
        "tMin": t_min,
        "tMax": t_max,
        "initialPoints": points,
        "calculateDerivativePlot": derivative,
        "scope": scope or {},
    }
    return _plot_result(_run("compute", payload))


def plot_surface(
    expr: str,
    x_range: tuple[float, float] = DEFAULT_SURFACE_RANGE,
    y_range: tuple[float, float] = DEFAULT_SURFACE_RANGE,
    resolution: int = DEFAULT_SURFACE_RESOLUTION,
    scope: dict[str, float] | None = None,
) -> PlotResult:
    """Sample ``z = f(x, y)`` on a square grid (``data`` holds x, y and z)."""
    payload = {
        "mode": "3d",
        "expr": expr,
        "xRange": _range_dict(x_range),
        "yRange": _range_dict(y_range),
        "resolution": resolution,
        "scope": scope or {},
    }
    return _plot_result(_run("compute", payload))


def integrate(
    expression: str,
    a: float | None = None,
    b: float | None = None,
    mode: str = "cartesian",
    y_expression: str | None = None,
    x_range: tuple[float, float] | None = None,
    y_range: tuple[float, float] | None = None,
    scope: dict[str, float] | None = None,
) -> IntegralResult:
    """Compute a definite integral.

    Args:
        expression: f(x) for "cartesian", x(t) for "parametric", r(t) for
            "polar", z(x, y) for "3d"
        a, b: Integration bounds (x or t); unused for "3d"
        mode: "cartesian", "parametric", "polar" or "3d"
        y_expression: y(t), required for "parametric"
        x_range, y_range: Rectangle for "3d"
        scope: User parameter values

    Example:
        >>> from plotcalc_pkg.api import integrate
        >>> round(integrate("x^2", 0, 1).value, 6)
        0.333333
    """
    payload: dict[str, Any] = {"mode": mode, "a": a, "b": b, "scope": scope or {}}
    if mode == "parametric":
        payload.update(xExpr=expression, yExpr=y_expression)
    elif mode == "polar":
        payload["rExpr"] = expression
    elif mode == "3d":
        payload.update(
            expr=expression, xRange=_range_dict(x_range), yRange=_range_dict(y_range)
        )
    else:
        payload["expression"] = expression

    response = _run("computeIntegral", payload)
    data = response.get("payload") or {}
    if response.get("type") == "error":
        return IntegralResult(ok=False, mode=mode, error=data.get("message"))
    return IntegralResult(
        ok=True,
        mode=data.get("mode", mode),
        value=data.get("value"),
        a=data.get("a"),
        b=data.get("b"),
    )


def auto_range(expression: str, scope: dict[str, float] | None = None) -> PlotResult:
    """Suggest x and y viewing ranges for ``expression``.

    ``data`` holds ``xRange`` and ``yRange`` (``None`` when no y window could
    be derived).
    """
    response = _run("autoRange", {"expression": expression, "scope": scope or {}})
    return _plot_result(response)


def validate_expression(
    expression: str, variables: tuple[str, ...] = ("x",)
) -> tuple[bool, str | None]:
    """Validate an expression without sampling it.

    Returns:
        Tuple of (is_valid, error_message)

    Example:
        >>> from plotcalc_pkg.api import validate_expression
        >>> validate_expression("sin(x)/x")
        (True, None)
        >>> validate_expression("import os")
        (False, 'Expression contains forbidden token: import')
    """
    try:
        compile_expression(expression, variables)
        return True, None
    except PlotCalcError as e:
        return False, e.message
    except (TypeError, AttributeError) as e:
        logger.warning("Unexpected validation error: %s", e, exc_info=True)
        return False, f"Validation error: {e}"
