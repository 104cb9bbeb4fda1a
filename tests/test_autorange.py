"""Tests for automatic viewing-range detection."""

import math

import pytest

from plotcalc_pkg.autorange import (
    auto_range,
    detect_periodicity,
    find_interesting_x_range,
    find_y_range,
)
from plotcalc_pkg.parser import compile_expression


class TestPeriodicity:
    def test_sine_period(self):
        period = detect_periodicity(compile_expression("sin(x)"))
        assert period == pytest.approx(math.pi, abs=0.1)

    def test_parabola_is_not_periodic(self):
        assert detect_periodicity(compile_expression("x^2")) is None

    def test_scope_frequency(self):
        compiled = compile_expression("sin(k*x)", scope_names=["k"])
        period = detect_periodicity(compiled, scope={"k": 2.0})
        assert period == pytest.approx(math.pi / 2, abs=0.1)


class TestXRange:
    def test_periodic_window_is_symmetric(self):
        x_min, x_max = find_interesting_x_range(compile_expression("sin(x)"))
        assert x_min == -x_max
        assert x_max == pytest.approx(2 * math.pi, abs=0.3)

    def test_padding_floor(self):
        assert find_interesting_x_range(compile_expression("x^2")) == (-2.0, 2.0)

    def test_relative_padding(self):
        # exp(x) is flat below about -2.3; the scan starts at -50
        assert find_interesting_x_range(compile_expression("exp(x)")) == (-59.5, 7.0)

    def test_nothing_interesting_uses_default(self):
        compiled = compile_expression("sqrt(-1 - x^2)")
        assert find_interesting_x_range(compiled) == (-10.0, 10.0)


class TestYRange:
    def test_percentile_window(self):
        y_range = find_y_range(compile_expression("x"), -10.0, 10.0)
        assert y_range == pytest.approx((-10.47, 10.43), abs=0.011)

    def test_outliers_are_trimmed(self):
        y_range = find_y_range(compile_expression("1/x"), -10.0, 10.0)
        assert y_range is not None
        assert y_range[1] < 1000
        assert y_range[0] > -1000

    def test_constant_has_no_range(self):
        assert find_y_range(compile_expression("3"), -1.0, 1.0) is None

    def test_undefined_everywhere(self):
        assert find_y_range(compile_expression("sqrt(-1 - x^2)"), -1.0, 1.0) is None


def test_auto_range_payload():
    result = auto_range(compile_expression("x^2"))
    assert result["xRange"] == {"min": -2.0, "max": 2.0}
    assert set(result["yRange"]) == {"min", "max"}
    assert result["yRange"]["min"] < 0 < result["yRange"]["max"]


def test_auto_range_without_y_window():
    result = auto_range(compile_expression("3"))
    assert result["yRange"] is None
    assert result["xRange"]["min"] < result["xRange"]["max"]
