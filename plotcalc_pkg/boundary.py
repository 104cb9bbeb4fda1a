"""Bisection that pins a valid/invalid transition to sub-resolution precision.

Both searches are bounded by ``options.max_depth`` iterations and stop early
once the bracket is narrower than ``options.min_step``. They are an
approximation of the boundary, not an exact one: ``Boundary.converged`` tells
the caller whether the width target was reached before the iteration cap.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from .evaluator import is_valid
from .types import SamplingOptions


@dataclass(frozen=True)
class Boundary:
    """Closest confirmed-valid point to a transition."""

    x: float
    y: float
    converged: bool


def find_last_finite_before(
    f: Callable[[float], float | None],
    x_valid_left: float,
    x_invalid_right: float,
    y_at_left: float,
    options: SamplingOptions,
) -> Boundary:
    """Walk right from a valid point towards an invalid one.

    Returns the rightmost point found valid inside
    ``[x_valid_left, x_invalid_right)``.
    """
    lo, hi = x_valid_left, x_invalid_right
    best_x, best_y = x_valid_left, y_at_left
    for _ in range(options.max_depth):
        if hi - lo <= options.min_step:
            return Boundary(best_x, best_y, True)
        mid = (lo + hi) / 2
        y_mid = f(mid)
        if is_valid(y_mid, options.abs_limit):
            lo = mid
            best_x, best_y = mid, y_mid
        else:
            hi = mid
    return Boundary(best_x, best_y, hi - lo <= options.min_step)


def find_first_finite_after(
    f: Callable[[float], float | None],
    x_invalid_left: float,
    x_valid_right: float,
    y_at_right: float,
    options: SamplingOptions,
) -> Boundary:
    """Walk left from a valid point towards an invalid one.

    Returns the leftmost point found valid inside
    ``(x_invalid_left, x_valid_right]``.
    """
    lo, hi = x_invalid_left, x_valid_right
    best_x, best_y = x_valid_right, y_at_right
    for _ in range(options.max_depth):
        if hi - lo <= options.min_step:
            return Boundary(best_x, best_y, True)
        mid = (lo + hi) / 2
        y_mid = f(mid)
        if is_valid(y_mid, options.abs_limit):
            hi = mid
            best_x, best_y = mid, y_mid
        else:
            lo = mid
    return Boundary(best_x, best_y, hi - lo <= options.min_step)
