"""Heuristics that pick a sensible viewing window for a cartesian plot."""

from __future__ import annotations

from collections.abc import Mapping

import numpy as np

from .config import (
    AUTO_RANGE_DEFAULT,
    AUTO_RANGE_PERIODS,
    AUTO_RANGE_Y_LIMIT,
    AUTO_RANGE_Y_SAMPLES,
)
from .evaluator import evaluate
from .logging_config import get_logger
from .parser import CompiledExpression
from .types import CompilationError

logger = get_logger("autorange")

_PERIOD_STEP = 0.1
_PERIOD_TOLERANCE = 1e-3
_SCAN_LIMIT = 50.0
_SCAN_STEP = 0.5
_FLAT_THRESHOLD = 0.1


def _round2(value: float) -> float:
    return round(value * 100) / 100


def detect_periodicity(
    compiled: CompiledExpression,
    max_test: float = 100,
    scope: Mapping[str, float] | None = None,
) -> float | None:
    """Estimate the period from the spacing of sign changes on ``[0, max_test]``.

    Returns the mean gap between consecutive crossings when at least two gaps
    are found, otherwise ``None``.
    """
    samples = []
    for i in range(int(round(max_test / _PERIOD_STEP)) + 1):
        x = i * _PERIOD_STEP
        y = evaluate(compiled, x, scope)
        if y is not None:
            samples.append((x, y))

    crossings = [
        x
        for (_, y_prev), (x, y) in zip(samples, samples[1:])
        if (y_prev <= 0 < y) or (y_prev >= 0 > y)
    ]
    periods = [
        b - a for a, b in zip(crossings, crossings[1:]) if b - a > _PERIOD_TOLERANCE
    ]
    if len(periods) >= 2:
        return sum(periods) / len(periods)
    return None


def find_interesting_x_range(
    compiled: CompiledExpression, scope: Mapping[str, float] | None = None
) -> tuple[float, float]:
    """Pick an x window around the function's zeros and flat spots."""
    period = detect_periodicity(compiled, 100, scope)
    if period:
        half = period * AUTO_RANGE_PERIODS / 2
        return _round2(-half), _round2(half)

    try:
        derivative = compiled.derivative("x")
    except CompilationError as e:
        logger.debug("Auto range without derivative for %s: %s", compiled, e)
        derivative = None

    hits = []
    steps = int(round(2 * _SCAN_LIMIT / _SCAN_STEP))
    for i in range(steps + 1):
        x = -_SCAN_LIMIT + i * _SCAN_STEP
        y = evaluate(compiled, x, scope)
        dy = evaluate(derivative, x, scope) if derivative is not None else None
        if (y is not None and abs(y) < _FLAT_THRESHOLD) or (
            dy is not None and abs(dy) < _FLAT_THRESHOLD
        ):
            hits.append(x)

    if not hits:
        return AUTO_RANGE_DEFAULT
    lo, hi = min(hits), max(hits)
    padding = max(2.0, (hi - lo) * 0.2)
    return _round2(lo - padding), _round2(hi + padding)


def find_y_range(
    compiled: CompiledExpression,
    x_min: float,
    x_max: float,
    scope: Mapping[str, float] | None = None,
) -> tuple[float, float] | None:
    """Robust y window from the 2.5th/97.5th percentiles of a uniform sweep.

    Returns ``None`` when no usable sample exists.
    """
    step = (x_max - x_min) / AUTO_RANGE_Y_SAMPLES
    ys = []
    for i in range(AUTO_RANGE_Y_SAMPLES + 1):
        y = evaluate(compiled, x_min + i * step, scope)
        if y is not None and abs(y) < AUTO_RANGE_Y_LIMIT:
            ys.append(y)
    if not ys:
        return None

    values = np.asarray(ys, dtype=float)
    low = float(np.percentile(values, 2.5, method="lower"))
    high = float(np.percentile(values, 97.5, method="lower"))
    if low < high:
        padding = 0.05 * (high - low)
        return _round2(low - padding), _round2(high + padding)

    # Percentiles collapsed; fall back to min/max of the leading samples
    trimmed = values[:1000]
    min_v, max_v = float(trimmed.min()), float(trimmed.max())
    if min_v >= max_v:
        return None
    padding = max(0.1, 0.05 * (max_v - min_v))
    return _round2(min_v - padding), _round2(max_v + padding)


def auto_range(
    compiled: CompiledExpression, scope: Mapping[str, float] | None = None
) -> dict:
    """Combine the x and y heuristics into a ``rangeResult`` payload."""
    x_min, x_max = find_interesting_x_range(compiled, scope)
    y_range = find_y_range(compiled, x_min, x_max, scope)
    return {
        "xRange": {"min": x_min, "max": x_max},
        "yRange": {"min": y_range[0], "max": y_range[1]} if y_range else None,
    }
