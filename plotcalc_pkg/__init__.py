"""plotcalc package: numeric plotting engine with sampler, quadrature, root finder, worker and CLI."""

__all__ = [
    "config",
    "parser",
    "evaluator",
    "boundary",
    "sampler",
    "surface",
    "roots",
    "quadrature",
    "autorange",
    "worker",
    "cli",
    "types",
    "api",
    "logging_config",
]

# Public API exports

__api_exports__ = [
    "plot",
    "plot_parametric",
    "plot_polar",
    "plot_surface",
    "integrate",
    "auto_range",
    "validate_expression",
]
