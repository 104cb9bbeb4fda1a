"""Tests for the quadrature engine."""

import math

import pytest

from plotcalc_pkg import quadrature
from plotcalc_pkg.parser import CompiledExpression, compile_expression
from plotcalc_pkg.quadrature import (
    compute_definite_integral,
    double_integral,
    parametric_area,
    polar_area,
    simpson_weight,
    trapezoidal_integral,
)
from plotcalc_pkg.types import BoundsError, CompilationError, IntegrandUndefinedError


def _t(text):
    return compile_expression(text, variables=("t",))


def _xy(text):
    return compile_expression(text, variables=("x", "y"))


class TestPlaneCurve:
    def test_simpson_is_exact_for_quadratic(self):
        value = compute_definite_integral(compile_expression("x^2"), 0.0, 1.0)
        assert abs(value - 1 / 3) < 1e-6

    def test_odd_step_count_is_bumped(self):
        value = compute_definite_integral(compile_expression("x^3"), 0.0, 2.0, steps=101)
        assert value == pytest.approx(4.0, abs=1e-9)

    def test_minimum_step_count(self):
        value = compute_definite_integral(compile_expression("sin(x)"), 0.0, math.pi, steps=2)
        assert value == pytest.approx(2.0, abs=1e-6)

    def test_removable_singularity_falls_back_to_trapezoid(self, monkeypatch):
        calls = []
        original = quadrature.trapezoidal_integral

        def spy(*args, **kwargs):
            calls.append(args)
            return original(*args, **kwargs)

        monkeypatch.setattr(quadrature, "trapezoidal_integral", spy)
        value = compute_definite_integral(compile_expression("sin(x)/x"), 0.0, 1.0, steps=2000)
        assert len(calls) == 1
        # Si(1); the skipped endpoint costs about h/2
        assert value == pytest.approx(0.946083070367183, abs=1e-3)

    def test_trapezoid_counts_invalid_as_zero(self):
        value = trapezoidal_integral(compile_expression("sqrt(x)"), -1.0, 1.0, steps=2000)
        assert value == pytest.approx(2 / 3, abs=1e-3)

    def test_scope(self):
        compiled = compile_expression("k*x", scope_names=["k"])
        value = compute_definite_integral(compiled, 0.0, 1.0, {"k": 4.0})
        assert value == pytest.approx(2.0)

    @pytest.mark.parametrize("a,b", [(1.0, 0.0), (0.0, 0.0), (0.0, math.inf), (math.nan, 1.0)])
    def test_bad_bounds(self, a, b):
        with pytest.raises(BoundsError):
            compute_definite_integral(compile_expression("x"), a, b)

    def test_simpson_weights(self):
        assert [simpson_weight(i, 4) for i in range(5)] == [1, 4, 2, 4, 1]


class TestCurveAreas:
    def test_parametric_circle(self):
        value = parametric_area(_t("cos(t)"), _t("sin(t)"), 0.0, 2 * math.pi)
        assert value == pytest.approx(-math.pi, abs=1e-6)

    def test_parametric_without_analytic_derivative(self, monkeypatch):
        def no_derivative(self, variable):
            raise CompilationError("no derivative", "DIFF_ERROR")

        monkeypatch.setattr(CompiledExpression, "derivative", no_derivative)
        # integral of t * 2t over [0, 1] with a finite-difference x'(t)
        value = parametric_area(_t("t^2"), _t("t"), 0.0, 1.0)
        assert value == pytest.approx(2 / 3, abs=1e-6)

    def test_parametric_fails_fast_inside(self):
        with pytest.raises(IntegrandUndefinedError):
            parametric_area(_t("t"), _t("sqrt(abs(t - 1) - 0.1)"), 0.0, 2.0)

    def test_parametric_fails_fast_at_bound(self):
        with pytest.raises(IntegrandUndefinedError):
            parametric_area(_t("t"), _t("sqrt(1 - t)"), 0.0, 2.0)

    def test_polar_unit_circle(self):
        assert polar_area(_t("1"), 0.0, 2 * math.pi) == pytest.approx(math.pi, abs=1e-9)

    def test_polar_cardioid(self):
        value = polar_area(_t("1 + cos(t)"), 0.0, 2 * math.pi)
        assert value == pytest.approx(1.5 * math.pi, abs=1e-6)

    def test_polar_fails_fast(self):
        with pytest.raises(IntegrandUndefinedError) as exc:
            polar_area(_t("sqrt(t - 1)"), 0.0, 2.0)
        assert exc.value.code == "INTEGRAND_UNDEFINED"

    def test_curve_bounds_checked_first(self):
        with pytest.raises(BoundsError):
            polar_area(_t("sqrt(t - 1)"), 2.0, 0.0)


class TestDoubleIntegral:
    def test_bilinear_is_exact(self):
        value = double_integral(_xy("x*y + 1"), (0.0, 1.0), (0.0, 1.0))
        assert value == pytest.approx(1.25, abs=1e-9)

    def test_quadratic(self):
        value = double_integral(_xy("x^2"), (0.0, 1.0), (0.0, 1.0))
        assert value == pytest.approx(1 / 3, abs=1e-4)

    def test_invalid_cells_contribute_zero(self):
        assert double_integral(_xy("log(x)"), (-2.0, -1.0), (0.0, 1.0)) == 0.0

    def test_undefined_half_plane(self):
        # sqrt(x) is undefined for x < 0; the left half contributes nothing
        full = double_integral(_xy("sqrt(x)"), (0.0, 1.0), (0.0, 1.0))
        half = double_integral(_xy("sqrt(x)"), (-1.0, 1.0), (0.0, 1.0), grid=240)
        assert half == pytest.approx(full, abs=1e-3)

    def test_bad_range(self):
        with pytest.raises(BoundsError):
            double_integral(_xy("x"), (0.0, 1.0), (1.0, 1.0))
