"""Non-throwing scalar evaluation and the validity oracle."""

from __future__ import annotations

import math
from collections.abc import Mapping

from .parser import CompiledExpression
from .types import EvaluationFailure


def evaluate_bindings(
    compiled: CompiledExpression, bindings: Mapping[str, float]
) -> float | None:
    """Evaluate with an explicit binding map; ``None`` marks an invalid sample."""
    try:
        value = compiled.evaluate(bindings)
    except EvaluationFailure:
        return None
    if not math.isfinite(value):
        return None
    return value


def evaluate(
    compiled: CompiledExpression,
    x: float,
    extra_bindings: Mapping[str, float] | None = None,
    variable: str = "x",
) -> float | None:
    """Evaluate ``compiled`` at ``variable = x`` on top of ``extra_bindings``.

    The variable always wins over a scope entry with the same name. Any
    evaluation failure becomes ``None``; nothing is raised.
    """
    bindings = dict(extra_bindings) if extra_bindings else {}
    bindings[variable] = x
    return evaluate_bindings(compiled, bindings)


def is_valid(y: float | None, abs_limit: float) -> bool:
    """True iff ``y`` is a finite number with ``|y| <= abs_limit``."""
    return y is not None and math.isfinite(y) and abs(y) <= abs_limit
