"""Tests for the scalar evaluator, validity oracle and boundary locator."""

import math

import pytest

from plotcalc_pkg.boundary import find_first_finite_after, find_last_finite_before
from plotcalc_pkg.evaluator import evaluate, evaluate_bindings, is_valid
from plotcalc_pkg.parser import compile_expression
from plotcalc_pkg.types import SamplingOptions


class TestEvaluate:
    def test_plain_value(self):
        assert evaluate(compile_expression("x^2"), 3.0) == 9.0

    def test_failures_become_none(self):
        assert evaluate(compile_expression("1/x"), 0.0) is None
        assert evaluate(compile_expression("sqrt(x)"), -4.0) is None
        assert evaluate(compile_expression("exp(x)"), 1000.0) is None

    def test_scope_binding(self):
        compiled = compile_expression("a*x", scope_names=["a"])
        assert evaluate(compiled, 2.0, {"a": 3.0}) == 6.0

    def test_missing_scope_is_invalid(self):
        compiled = compile_expression("a*x", scope_names=["a"])
        assert evaluate(compiled, 2.0) is None

    def test_variable_wins_over_scope(self):
        assert evaluate(compile_expression("x"), 2.0, {"x": 100.0}) == 2.0

    def test_other_variable(self):
        compiled = compile_expression("t + 1", variables=("t",))
        assert evaluate(compiled, 1.5, variable="t") == 2.5

    def test_bindings_form(self):
        compiled = compile_expression("x*y", variables=("x", "y"))
        assert evaluate_bindings(compiled, {"x": 2.0, "y": 4.0}) == 8.0
        assert evaluate_bindings(compiled, {"x": 2.0}) is None


class TestIsValid:
    def test_classification(self):
        assert is_valid(3.0, 1e5)
        assert is_valid(-1e5, 1e5)
        assert not is_valid(None, 1e5)
        assert not is_valid(1e6, 1e5)
        assert not is_valid(math.inf, 1e5)
        assert not is_valid(math.nan, 1e5)


class TestBoundaryLocator:
    @pytest.fixture
    def sqrt_left(self):
        # valid for x <= 1
        compiled = compile_expression("sqrt(1 - x)")
        return lambda x: evaluate(compiled, x)

    @pytest.fixture
    def sqrt_right(self):
        # valid for x >= 0
        compiled = compile_expression("sqrt(x)")
        return lambda x: evaluate(compiled, x)

    def test_last_finite_before_converges(self, sqrt_left):
        options = SamplingOptions(max_depth=40, min_step=1e-6)
        boundary = find_last_finite_before(sqrt_left, 0.0, 2.0, 1.0, options)
        assert boundary.converged
        assert 1.0 - 1e-5 < boundary.x <= 1.0
        assert is_valid(sqrt_left(boundary.x), options.abs_limit)
        assert boundary.y == sqrt_left(boundary.x)

    def test_first_finite_after_converges(self, sqrt_right):
        options = SamplingOptions(max_depth=40, min_step=1e-6)
        boundary = find_first_finite_after(sqrt_right, -1.0, 1.0, 1.0, options)
        assert boundary.converged
        assert 0.0 <= boundary.x < 1e-5
        assert is_valid(sqrt_right(boundary.x), options.abs_limit)

    def test_iteration_cap_reported(self, sqrt_left):
        options = SamplingOptions(max_depth=3, min_step=1e-9)
        boundary = find_last_finite_before(sqrt_left, 0.0, 2.0, 1.0, options)
        assert not boundary.converged
        # still a confirmed valid point
        assert is_valid(sqrt_left(boundary.x), options.abs_limit)

    def test_default_options_point_is_valid(self, sqrt_left):
        options = SamplingOptions.for_domain(-1.0, 3.0)
        boundary = find_last_finite_before(sqrt_left, 0.0, 2.0, 1.0, options)
        assert boundary.x <= 1.0
        assert is_valid(boundary.y, options.abs_limit)

    def test_magnitude_limit_is_a_boundary(self):
        compiled = compile_expression("1/x")
        f = lambda x: evaluate(compiled, x)  # noqa: E731
        options = SamplingOptions(abs_limit=100.0, max_depth=60, min_step=1e-12)
        boundary = find_last_finite_before(f, -1.0, 0.0, -1.0, options)
        assert boundary.converged
        assert abs(boundary.y) <= 100.0
        assert boundary.x == pytest.approx(-0.01, abs=1e-9)
