"""Centralized configuration for plotcalc.

This module defines:
- Adaptive sampling defaults (magnitude limit, recursion depth, tolerances)
- Root finding and quadrature resolution
- Sampling quality presets
- Worker settings (process mode, timeouts)
- Input validation limits (length, depth, node count)
- Allowed SymPy names and parser transformations

Configuration can be overridden via:
- CLI flags (see cli.py)
- Environment variables (prefixed with PLOTCALC_)
"""

import os

import sympy as sp
from sympy.parsing.sympy_parser import (
    convert_xor,
    implicit_multiplication_application,
    standard_transformations,
)

# Version is defined in pyproject.toml [project] section
try:
    import importlib.metadata

    VERSION = importlib.metadata.version("plotcalc")
except Exception:
    # Fallback if package not installed
    VERSION = "1.0.0"

# Worker configuration
WORKER_TIMEOUT = int(os.getenv("PLOTCALC_WORKER_TIMEOUT", "60"))
ENABLE_WORKER_PROCESS = (
    os.getenv("PLOTCALC_ENABLE_WORKER_PROCESS", "true").lower() == "true"
)

# Adaptive curve sampling defaults
ABS_LIMIT = float(os.getenv("PLOTCALC_ABS_LIMIT", "1e5"))  # max |y| treated as finite
MAX_DEPTH = int(os.getenv("PLOTCALC_MAX_DEPTH", "16"))  # recursion cap
MIN_STEP_DIVISOR = float(
    os.getenv("PLOTCALC_MIN_STEP_DIVISOR", "500000")
)  # minStep = domain width / divisor
ABS_EPS = float(os.getenv("PLOTCALC_ABS_EPS", "1e-3"))
REL_EPS = float(os.getenv("PLOTCALC_REL_EPS", "1e-2"))
REL_EPS_FLOOR = 1e-12  # added to |y2 - y1| before normalizing
DEFAULT_INITIAL_POINTS = int(os.getenv("PLOTCALC_DEFAULT_INITIAL_POINTS", "50"))

# Parametric / polar uniform sampling
CURVE_POINTS = int(os.getenv("PLOTCALC_CURVE_POINTS", "800"))
PARAMETRIC_T_RANGE = (-6.28, 6.28)
POLAR_T_RANGE = (0.0, 6.28)

# Root / intersection finding
ROOT_SEGMENTS = int(os.getenv("PLOTCALC_ROOT_SEGMENTS", "400"))
INTERSECTION_EPS = float(os.getenv("PLOTCALC_INTERSECTION_EPS", "1e-8"))
INTERSECTION_MAX_ITER = int(os.getenv("PLOTCALC_INTERSECTION_MAX_ITER", "60"))
EXTREMUM_EPS = float(
    os.getenv("PLOTCALC_EXTREMUM_EPS", "1e-6")
)  # |f''| below this is classified as flat

# Quadrature
MIN_INTEGRAL_STEPS = 100
INTEGRAL_STEPS = int(os.getenv("PLOTCALC_INTEGRAL_STEPS", "2000"))  # plane curve
CURVE_INTEGRAL_STEPS = int(
    os.getenv("PLOTCALC_CURVE_INTEGRAL_STEPS", "2000")
)  # parametric / polar
MIN_CURVE_INTEGRAL_STEPS = 200
DOUBLE_INTEGRAL_GRID = int(os.getenv("PLOTCALC_DOUBLE_INTEGRAL_GRID", "120"))
FD_MIN_STEP = 1e-5  # centered difference step floor for x'(t)
FD_STEP_DIVISOR = 1e6

# 3-D surfaces
SURFACE_Z_LIMIT = float(os.getenv("PLOTCALC_SURFACE_Z_LIMIT", "1e6"))
DEFAULT_SURFACE_RESOLUTION = int(
    os.getenv("PLOTCALC_DEFAULT_SURFACE_RESOLUTION", "50")
)
DEFAULT_SURFACE_RANGE = (-5.0, 5.0)

# Auto range detection
AUTO_RANGE_DEFAULT = (-10.0, 10.0)
AUTO_RANGE_Y_SAMPLES = 500
AUTO_RANGE_Y_LIMIT = 1e6
AUTO_RANGE_PERIODS = 4

# Sampling presets; minStep is expressed as a divisor of the domain width
SAMPLING_PRESETS = {
    "fast": {
        "absLimit": 1e5,
        "maxDepth": 12,
        "minStepDivisor": 200000,
        "absEps": 2e-3,
        "relEps": 2e-2,
    },
    "default": {
        "absLimit": 1e5,
        "maxDepth": 16,
        "minStepDivisor": 500000,
        "absEps": 1e-3,
        "relEps": 1e-2,
    },
    "quality": {
        "absLimit": 1e5,
        "maxDepth": 20,
        "minStepDivisor": 2000000,
        "absEps": 5e-4,
        "relEps": 5e-3,
    },
}

# Input validation limits
MAX_INPUT_LENGTH = int(os.getenv("PLOTCALC_MAX_INPUT_LENGTH", "2000"))  # characters
MAX_EXPRESSION_DEPTH = int(
    os.getenv("PLOTCALC_MAX_EXPRESSION_DEPTH", "100")
)  # tree depth
MAX_EXPRESSION_NODES = int(
    os.getenv("PLOTCALC_MAX_EXPRESSION_NODES", "5000")
)  # total nodes

OUTPUT_PRECISION = int(os.getenv("PLOTCALC_OUTPUT_PRECISION", "6"))

ALLOWED_SYMPY_NAMES = {
    "pi": sp.pi,
    "e": sp.E,
    "E": sp.E,
    "sqrt": sp.sqrt,
    "cbrt": sp.cbrt,
    "sin": sp.sin,
    "cos": sp.cos,
    "tan": sp.tan,
    "asin": sp.asin,
    "acos": sp.acos,
    "atan": sp.atan,
    "sinh": sp.sinh,
    "cosh": sp.cosh,
    "tanh": sp.tanh,
    "exp": sp.exp,
    "log": sp.log,
    "ln": sp.log,
    "log10": lambda arg: sp.log(arg, 10),
    "Abs": sp.Abs,
    "abs": sp.Abs,  # lowercase alias for convenience
    "floor": sp.floor,
    "ceil": sp.ceiling,
    "sign": sp.sign,
    "Mod": sp.Mod,
    "mod": sp.Mod,
    "gamma": sp.gamma,
    "min": sp.Min,
    "max": sp.Max,
}

# Function classes allowed to appear in a parsed expression tree
ALLOWED_FUNCTION_CLASSES = (
    sp.sin,
    sp.cos,
    sp.tan,
    sp.asin,
    sp.acos,
    sp.atan,
    sp.sinh,
    sp.cosh,
    sp.tanh,
    sp.exp,
    sp.log,
    sp.Abs,
    sp.floor,
    sp.ceiling,
    sp.sign,
    sp.Mod,
    sp.gamma,
    sp.Min,
    sp.Max,
)

TRANSFORMATIONS = standard_transformations + (
    implicit_multiplication_application,
    convert_xor,
)
