"""Expression preprocessing, parsing and compilation.

This module handles:
- Input sanitization and validation
- Expression preprocessing (unicode symbols, exponent handling)
- SymPy expression parsing with security validation
- Compilation into a fast scalar callable (``CompiledExpression``)
- Analytic derivatives of compiled expressions

The rest of the engine only sees ``compile_expression`` and the
``CompiledExpression.evaluate`` / ``derivative`` methods, so the underlying
parser can be swapped without touching the numeric code.
"""

from __future__ import annotations

import io
import math
import tokenize
from collections.abc import Iterable, Mapping
from typing import Any

import sympy as sp
from sympy import parse_expr

from .config import (
    ALLOWED_FUNCTION_CLASSES,
    ALLOWED_SYMPY_NAMES,
    MAX_EXPRESSION_DEPTH,
    MAX_EXPRESSION_NODES,
    MAX_INPUT_LENGTH,
    OUTPUT_PRECISION,
    TRANSFORMATIONS,
)
from .logging_config import get_logger
from .types import CompilationError, EvaluationFailure

logger = get_logger("parser")

# Basic denylist to avoid dangerous tokens before SymPy parsing
FORBIDDEN_TOKENS = (
    "__",
    "import",
    "lambda",
    "eval",
    "exec",
    "open",
    "os.",
    "sys.",
    "subprocess",
    "builtins",
    "getattr",
    "setattr",
    "delattr",
    "compile",
    "globals",
    "locals",
    "memoryview",
    "bytes",
    "bytearray",
)

_LAMBDIFY_MODULES = ["math", "mpmath"]


def format_number(val: Any, precision: int = OUTPUT_PRECISION) -> str:
    """Format a numeric value with specified precision.

    Args:
        val: Numeric value to format
        precision: Number of significant digits (default: OUTPUT_PRECISION)

    Returns:
        Formatted string representation of the number
    """
    try:
        fmt = "{:." + str(int(precision)) + "g}"
        return fmt.format(float(val))
    except (ValueError, TypeError, OverflowError):
        return str(val)


def is_balanced(input_str: str) -> tuple[bool, int | None]:
    """Check if parentheses/brackets are balanced. Returns (is_balanced, error_position)."""
    pairs = {"(": ")", "[": "]", "{": "}"}
    stack: list[tuple[str, int]] = []  # (char, position)
    for i, char in enumerate(input_str):
        if char in pairs:
            stack.append((char, i))
        elif char in pairs.values():
            if not stack:
                return False, i
            opening, pos = stack.pop()
            if pairs[opening] != char:
                return False, i
    if stack:
        return False, stack[0][1]  # Return position of first unmatched
    return True, None


def preprocess(input_str: str) -> str:
    """Preprocess input string for parsing.

    Applies transformations:
    - Validates input length, forbidden tokens and bracket balance
    - Standardizes mathematical symbols (unicode variants to ASCII)
    - Converts exponents (^ to **)

    Args:
        input_str: Raw expression text

    Returns:
        Sanitized string ready for SymPy parsing

    Raises:
        CompilationError: If input is empty, too long, contains forbidden
                          tokens, or has unbalanced parentheses/brackets
    """
    input_str = input_str.strip() if input_str else ""
    if not input_str:
        raise CompilationError("Expression cannot be empty", "EMPTY_INPUT")
    if len(input_str) > MAX_INPUT_LENGTH:
        raise CompilationError(
            f"Expression too long (>{MAX_INPUT_LENGTH} characters)", "TOO_LONG"
        )

    lowered = input_str.lower()
    for tok in FORBIDDEN_TOKENS:
        if tok in lowered:
            logger.warning(
                "Blocked input containing forbidden token %r (length %d)",
                tok,
                len(input_str),
            )
            raise CompilationError(
                f"Expression contains forbidden token: {tok}", "FORBIDDEN_TOKEN"
            )

    balanced, position = is_balanced(input_str)
    if not balanced:
        raise CompilationError(
            f"Unbalanced parentheses or brackets at position {position}",
            "UNBALANCED",
        )

    processed_str = input_str.replace("−", "-").replace("–", "-")
    processed_str = processed_str.replace("π", "pi")
    processed_str = processed_str.replace("×", "*").replace("·", "*")
    processed_str = processed_str.replace("√", "sqrt")
    processed_str = processed_str.replace("^", "**")
    return processed_str


def _validate_expression_tree(expr: Any, depth: int = 0, node_count: list[int] | None = None) -> None:
    """Validate expression tree structure and reject non-whitelisted functions."""
    if node_count is None:
        node_count = [0]
    node_count[0] += 1
    if node_count[0] > MAX_EXPRESSION_NODES:
        raise CompilationError(
            f"Expression too complex (>{MAX_EXPRESSION_NODES} nodes)", "TOO_COMPLEX"
        )
    if depth > MAX_EXPRESSION_DEPTH:
        raise CompilationError(
            f"Expression too deeply nested (>{MAX_EXPRESSION_DEPTH} levels)",
            "TOO_DEEP",
        )

    if isinstance(expr, (sp.Symbol, sp.Number, sp.NumberSymbol)):
        return
    if isinstance(expr, sp.Function):
        if not isinstance(expr, ALLOWED_FUNCTION_CLASSES):
            func_name = getattr(expr.func, "__name__", str(expr.func))
            logger.warning("Blocked forbidden function %r", func_name)
            raise CompilationError(
                f"Function '{func_name}' not allowed", "FORBIDDEN_FUNCTION"
            )
    elif not isinstance(expr, sp.Expr):
        raise CompilationError(
            "Expression must be a single real-valued formula", "NOT_SCALAR"
        )
    for arg in expr.args:
        _validate_expression_tree(arg, depth + 1, node_count)


def _build_local_dict(names: Iterable[str]) -> dict[str, Any]:
    local_dict: dict[str, Any] = dict(ALLOWED_SYMPY_NAMES)
    for name in names:
        # Whitelisted functions and constants keep their meaning
        if name in ALLOWED_SYMPY_NAMES:
            continue
        local_dict[name] = sp.Symbol(name, real=True)
    return local_dict


def _check_function_calls(expr_str: str, names: Iterable[str]) -> None:
    """Reject ``name(`` unless ``name`` is whitelisted or a bound symbol.

    Implicit multiplication would otherwise read ``f(x)`` as ``f*x``.
    """
    known = set(ALLOWED_SYMPY_NAMES) | set(names)
    try:
        tokens = list(tokenize.generate_tokens(io.StringIO(expr_str).readline))
    except (tokenize.TokenError, SyntaxError):
        # left for parse_expr to report
        return
    for tok, nxt in zip(tokens, tokens[1:]):
        if (
            tok.type == tokenize.NAME
            and nxt.type == tokenize.OP
            and nxt.string == "("
            and tok.string not in known
        ):
            logger.warning("Blocked unknown function %r", tok.string)
            raise CompilationError(
                f"Function '{tok.string}' not allowed", "FORBIDDEN_FUNCTION"
            )


def parse_preprocessed(expr_str: str, names: Iterable[str] = ()) -> sp.Expr:
    """Parse and validate a preprocessed expression string.

    Args:
        expr_str: Output of ``preprocess``
        names: Variable and parameter names to treat as real symbols

    Raises:
        CompilationError: If SymPy cannot parse the text or the tree fails validation
    """
    names = list(names)
    _check_function_calls(expr_str, names)
    local_dict = _build_local_dict(names)
    try:
        expr = parse_expr(
            expr_str,
            local_dict=local_dict,
            transformations=TRANSFORMATIONS,
            evaluate=True,
        )
    except (SyntaxError, TypeError, ValueError, AttributeError, sp.SympifyError) as e:
        logger.debug("Parse error for %r: %s", expr_str, e)
        raise CompilationError(f"Invalid expression: {expr_str}", "PARSE_ERROR") from e
    except Exception as e:
        # tokenize.TokenError and friends
        logger.debug("Tokenize error for %r: %s", expr_str, e)
        raise CompilationError(f"Invalid expression: {expr_str}", "PARSE_ERROR") from e
    _validate_expression_tree(expr)
    return expr


class CompiledExpression:
    """An immutable, evaluable form of one expression.

    Evaluation binds every free symbol by name from a mapping; any failure
    (missing name, domain error, division by zero, complex result) raises
    ``EvaluationFailure``.
    """

    __slots__ = ("source", "expr", "symbols", "_func")

    def __init__(self, expr: sp.Expr, source: str | None = None):
        self.source = source if source is not None else str(expr)
        self.expr = expr
        self.symbols: tuple[str, ...] = tuple(
            sorted(str(s) for s in expr.free_symbols)
        )
        ordered = sorted(expr.free_symbols, key=str)
        try:
            self._func = sp.lambdify(ordered, expr, modules=_LAMBDIFY_MODULES)
        except (TypeError, ValueError, NameError, SyntaxError, KeyError) as e:
            raise CompilationError(
                f"Cannot compile expression: {self.source}", "PARSE_ERROR"
            ) from e

    def __repr__(self) -> str:
        return f"CompiledExpression({self.source!r})"

    def __str__(self) -> str:
        return str(self.expr)

    def evaluate(self, bindings: Mapping[str, float]) -> float:
        try:
            args = [bindings[name] for name in self.symbols]
        except KeyError as e:
            raise EvaluationFailure(f"Undefined symbol: {e.args[0]}") from e
        try:
            value = self._func(*args)
            result = float(value)
        except (ArithmeticError, ValueError, TypeError) as e:
            raise EvaluationFailure(str(e)) from e
        except Exception as e:
            # mpmath and lambdified code can raise library-specific errors
            raise EvaluationFailure(f"{type(e).__name__}: {e}") from e
        if math.isnan(result):
            raise EvaluationFailure("Result is not a number")
        return result

    def derivative(self, variable: str) -> CompiledExpression:
        """Return the analytic derivative with respect to ``variable``."""
        symbol = sp.Symbol(variable, real=True)
        try:
            derived = sp.diff(self.expr, symbol)
        except (ValueError, TypeError, NotImplementedError, AttributeError) as e:
            raise CompilationError(
                f"Cannot differentiate {self.source} with respect to {variable}",
                "DIFF_ERROR",
            ) from e
        if derived.has(sp.Derivative, sp.Subs):
            raise CompilationError(
                f"No closed-form derivative of {self.source} with respect to {variable}",
                "DIFF_ERROR",
            )
        return CompiledExpression(derived)


def compile_expression(
    text: str,
    variables: Iterable[str] = ("x",),
    scope_names: Iterable[str] = (),
) -> CompiledExpression:
    """Compile expression text into a ``CompiledExpression``.

    Args:
        text: Raw expression text (e.g. "sin(x)/x", "a*t^2")
        variables: Evaluation variable names (e.g. ("x",), ("t",), ("x", "y"))
        scope_names: User parameter names supplied via the request scope

    Raises:
        CompilationError: If the text is unparseable or uses forbidden constructs
    """
    if not isinstance(text, str):
        raise CompilationError("Expression must be text", "PARSE_ERROR")
    pre = preprocess(text)
    names = list(variables) + [n for n in scope_names if n not in variables]
    expr = parse_preprocessed(pre, names)
    logger.debug("Compiled %r -> %s", text, expr)
    return CompiledExpression(expr, source=text)
