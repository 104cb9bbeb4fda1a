"""Fixed-resolution z(x, y) grid sampling for 3-D surfaces."""

from __future__ import annotations

import math
from collections.abc import Mapping

import numpy as np

from .config import SURFACE_Z_LIMIT
from .evaluator import evaluate_bindings
from .logging_config import get_logger
from .parser import CompiledExpression
from .types import BoundsError, DegenerateResultError, SurfaceGrid

logger = get_logger("surface")


def check_range(lo: float, hi: float, name: str) -> None:
    """Reject non-finite or inverted bounds before any computation."""
    if lo is None or hi is None or not (math.isfinite(lo) and math.isfinite(hi)):
        raise BoundsError(f"{name} bounds must be finite numbers")
    if lo >= hi:
        raise BoundsError(f"{name} minimum must be less than maximum")


def generate_3d_surface(
    compiled: CompiledExpression,
    x_range: tuple[float, float],
    y_range: tuple[float, float],
    resolution: int,
    scope: Mapping[str, float] | None = None,
) -> SurfaceGrid:
    """Evaluate ``compiled`` on a ``resolution`` x ``resolution`` grid.

    Cells are null where evaluation fails or ``|z| >= SURFACE_Z_LIMIT``.

    Raises:
        BoundsError: For bad ranges or ``resolution < 2``
        DegenerateResultError: If every cell is null
    """
    check_range(x_range[0], x_range[1], "x")
    check_range(y_range[0], y_range[1], "y")
    if resolution is None or int(resolution) < 2:
        raise BoundsError("Surface resolution must be at least 2")
    resolution = int(resolution)

    xs = np.linspace(x_range[0], x_range[1], resolution).tolist()
    ys = np.linspace(y_range[0], y_range[1], resolution).tolist()
    bindings = dict(scope or {})

    z_rows = []
    valid_cells = 0
    for y in ys:
        bindings["y"] = y
        row = []
        for x in xs:
            bindings["x"] = x
            z = evaluate_bindings(compiled, bindings)
            if z is None or abs(z) >= SURFACE_Z_LIMIT:
                row.append(None)
            else:
                row.append(z)
                valid_cells += 1
        z_rows.append(tuple(row))

    if valid_cells == 0:
        raise DegenerateResultError(
            "Function is undefined everywhere on the selected x/y range"
        )
    logger.debug(
        "Surface %s: %d/%d valid cells", compiled, valid_cells, resolution * resolution
    )
    return SurfaceGrid(x=tuple(xs), y=tuple(ys), z=tuple(z_rows))
