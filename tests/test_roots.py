"""Tests for zeros, extrema and intersections."""

import math

import pytest

from plotcalc_pkg.parser import compile_expression
from plotcalc_pkg.roots import (
    classify_extremum,
    find_extrema,
    find_intersections,
    find_zeros,
)
from plotcalc_pkg.types import SamplingOptions


class TestFindIntersections:
    def test_identity_meets_zero_once(self):
        points = find_intersections(
            compile_expression("x"), compile_expression("0"), -5.0, 5.0, -5.0, 5.0
        )
        assert len(points) == 1
        assert abs(points[0].x) <= 1e-8
        assert abs(points[0].y) <= 1e-8

    def test_parabola_and_line(self):
        points = find_intersections(
            compile_expression("x^2"), compile_expression("x + 2"), -5.0, 5.0, -10.0, 10.0
        )
        assert [p.x for p in points] == pytest.approx([-1.0, 2.0], abs=1e-7)
        assert [p.y for p in points] == pytest.approx([1.0, 4.0], abs=1e-6)

    @pytest.mark.parametrize("text", ["sin(50x)", "sin(300x)"])
    def test_results_are_separated(self, text):
        segments = 400
        points = find_intersections(
            compile_expression(text), None, -5.0, 5.0, -2.0, 2.0, segments=segments
        )
        xs = sorted(p.x for p in points)
        half_width = (10.0 / segments) / 2
        assert xs
        assert all(b - a >= half_width for a, b in zip(xs, xs[1:]))

    def test_y_window_filters(self):
        # the root at x = 1 has y = 0, below the window
        points = find_intersections(
            compile_expression("x - 1"), None, -5.0, 5.0, 1.0, 2.0
        )
        assert points == []

    def test_undefined_side_is_skipped(self):
        # 1/x changes sign at the pole but never crosses zero
        points = find_intersections(
            compile_expression("1/x"), None, -1.0, 1.0, -10.0, 10.0, segments=10
        )
        assert points == []

    def test_segment_count_from_options(self):
        options = SamplingOptions(segments=4)
        points = find_intersections(
            compile_expression("sin(x)"), None, -10.0, 10.0, -2.0, 2.0, options=options
        )
        # four wide segments cannot resolve every root of sin on [-10, 10]
        assert 0 < len(points) < 7

    def test_scope(self):
        compiled = compile_expression("x - c", scope_names=["c"])
        points = find_intersections(
            compiled, None, -5.0, 5.0, -5.0, 5.0, scope={"c": 1.5}
        )
        assert len(points) == 1
        assert points[0].x == pytest.approx(1.5, abs=1e-7)


class TestZerosAndExtrema:
    def test_zeros_of_quadratic(self):
        zeros = find_zeros(compile_expression("x^2 - 1"), -3.0, 3.0, -10.0, 10.0)
        assert [z.x for z in zeros] == pytest.approx([-1.0, 1.0], abs=1e-7)

    def test_zeros_of_sine(self):
        zeros = find_zeros(compile_expression("sin(x)"), -4.0, 4.0, -2.0, 2.0)
        assert [z.x for z in zeros] == pytest.approx([-math.pi, 0.0, math.pi], abs=1e-7)

    def test_extrema_are_classified(self):
        extrema = find_extrema(compile_expression("x^3 - 3x"), -3.0, 3.0, -10.0, 10.0)
        assert [p.x for p in extrema] == pytest.approx([-1.0, 1.0], abs=1e-7)
        assert [p.y for p in extrema] == pytest.approx([2.0, -2.0], abs=1e-6)
        assert [p.type for p in extrema] == ["max", "min"]
        assert extrema[0].f2 == pytest.approx(-6.0, abs=1e-5)
        assert extrema[0].to_dict()["type"] == "max"

    def test_extrema_with_precomputed_derivative(self):
        compiled = compile_expression("cos(x)")
        extrema = find_extrema(
            compiled, 1.0, 4.0, -2.0, 2.0, first=compiled.derivative("x")
        )
        assert [p.type for p in extrema] == ["min"]
        assert extrema[0].x == pytest.approx(math.pi, abs=1e-7)

    def test_classify(self):
        assert classify_extremum(None) == "unknown"
        assert classify_extremum(1e-7) == "flat"
        assert classify_extremum(-1e-7) == "flat"
        assert classify_extremum(2.0) == "min"
        assert classify_extremum(-2.0) == "max"
