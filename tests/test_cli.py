"""Tests for the command-line interface."""

import io
import json
import logging
import subprocess
import sys

import pytest

from plotcalc_pkg.cli import main_entry, print_response, serve
from plotcalc_pkg.config import VERSION


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger("plotcalc")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)


def test_version(capsys):
    assert main_entry(["-v"]) == 0
    assert capsys.readouterr().out.strip() == VERSION


def test_no_action_prints_help(capsys):
    assert main_entry([]) == 1
    assert "usage:" in capsys.readouterr().out


def test_eval_human(capsys):
    code = main_entry(
        ["-e", "x^2 - 1", "--x-min", "-3", "--x-max", "3", "--zeros", "--extrema", "--worker-mode", "inline"]
    )
    out = capsys.readouterr().out
    assert code == 0
    assert "Samples:" in out
    assert "Zeros: (-1, " in out
    assert ") min" in out


def test_eval_with_integral(capsys):
    code = main_entry(["-e", "x^2", "--integrate", "0", "1", "--worker-mode", "inline"])
    assert code == 0
    assert "Integral over [0, 1]: 0.333333" in capsys.readouterr().out


def test_eval_json_with_auto_range(capsys):
    code = main_entry(["-e", "x^2", "--auto-range", "--format", "json", "--worker-mode", "inline"])
    assert code == 0
    responses = json.loads(capsys.readouterr().out)
    assert [r["type"] for r in responses] == ["rangeResult", "result"]
    # the computed samples follow the suggested range
    assert responses[1]["payload"]["samples1"]["x"][0] == -2.0
    assert responses[1]["payload"]["samples1"]["x"][-1] == 2.0


def test_eval_error_exit_code(capsys):
    assert main_entry(["-e", "x +* 2", "--worker-mode", "inline"]) == 1
    assert capsys.readouterr().out.startswith("Error:")


def test_single_request(capsys):
    request = json.dumps(
        {"type": "autoRange", "requestId": 3, "payload": {"expression": "x^2"}}
    )
    assert main_entry(["--request", request, "--format", "json", "--worker-mode", "inline"]) == 0
    response = json.loads(capsys.readouterr().out)
    assert response["type"] == "rangeResult"
    assert response["requestId"] == 3


def test_single_request_unknown_kind(capsys):
    request = json.dumps({"type": "render", "payload": {}})
    assert main_entry(["--request", request, "--worker-mode", "inline"]) == 1


def test_serve_lines(monkeypatch, capsys):
    lines = "\n".join(
        [
            json.dumps({"type": "computeIntegral", "requestId": "a", "payload": {"expression": "x", "a": 0, "b": 2}}),
            json.dumps({"type": "ping", "requestId": "b"}),
            "",
            "{not json",
            json.dumps({"type": "compute", "requestId": "c", "payload": {"expression": "x", "xMin": 1, "xMax": 0}}),
        ]
    )
    monkeypatch.setattr(sys, "stdin", io.StringIO(lines + "\n"))
    assert main_entry(["--serve", "--worker-mode", "inline"]) == 0
    responses = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert [r["type"] for r in responses] == ["integralResult", "error", "error"]
    assert responses[0]["payload"]["value"] == pytest.approx(2.0)
    assert responses[1]["payload"]["code"] == "INVALID_JSON"
    assert responses[2]["requestId"] == "c"
    assert responses[2]["payload"]["code"] == "INVALID_BOUNDS"


def test_serve_function_writes_to_stream():
    out = io.StringIO()
    request = json.dumps({"type": "autoRange", "requestId": 1, "payload": {"expression": "3"}})
    serve(io.StringIO(request + "\n"), out, timeout=10, use_process=False)
    response = json.loads(out.getvalue())
    assert response["payload"]["yRange"] is None


def test_serve_survives_malformed_type():
    out = io.StringIO()
    lines = [
        json.dumps({"type": ["compute"], "requestId": 1, "payload": {}}),
        json.dumps({"type": "computeIntegral", "requestId": [2], "payload": {"expression": "x", "a": 0, "b": 2}}),
        json.dumps({"type": "autoRange", "requestId": 3, "payload": {"expression": "x^2"}}),
    ]
    serve(io.StringIO("\n".join(lines) + "\n"), out, timeout=10, use_process=False)
    responses = [json.loads(line) for line in out.getvalue().splitlines()]
    assert [r["requestId"] for r in responses] == [[2], 3]
    assert responses[0]["payload"]["value"] == pytest.approx(2.0)


def test_serve_divergent_integral_stays_strict_json():
    out = io.StringIO()
    request = json.dumps(
        {"type": "computeIntegral", "requestId": 1, "payload": {"expression": "exp(x)", "a": 0, "b": 800}}
    )
    serve(io.StringIO(request + "\n"), out, timeout=10, use_process=False)
    assert "Infinity" not in out.getvalue()
    response = json.loads(out.getvalue())
    assert response["payload"]["code"] == "DEGENERATE_RESULT"


class TestPrintResponse:
    def _print(self, response):
        out = io.StringIO()
        print_response(response, "human", out)
        return out.getvalue()

    def test_error(self):
        text = self._print({"type": "error", "payload": {"message": "bad", "code": "X"}})
        assert text == "Error: bad\n"

    def test_range_without_y(self):
        text = self._print(
            {"type": "rangeResult", "payload": {"xRange": {"min": -2.0, "max": 2.0}, "yRange": None}}
        )
        assert text == "x range: [-2, 2]\ny range: undetermined\n"

    def test_surface_summary(self):
        payload = {"mode": "3d", "x": [0.0, 1.0], "y": [0.0, 1.0], "z": [[None, 1.0], [1.0, 2.0]]}
        text = self._print({"type": "result", "payload": payload})
        assert text == "Surface: 2x2 grid, 1 undefined cells\n"

    def test_none_prints_nothing(self):
        assert self._print(None) == ""


def test_module_entry_point():
    completed = subprocess.run(
        [sys.executable, "-m", "plotcalc_pkg", "--version"],
        capture_output=True,
        text=True,
        timeout=120,
    )
    assert completed.returncode == 0
    assert completed.stdout.strip() == VERSION
