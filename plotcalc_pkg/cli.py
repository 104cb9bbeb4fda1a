from __future__ import annotations

import argparse
import json
import sys
from typing import Any, TextIO

from .config import VERSION
from .logging_config import get_logger, setup_logging
from .parser import format_number
from .worker import dispatch, shutdown_worker

logger = get_logger("cli")


def _format_points(points: list[dict[str, Any]]) -> str:
    parts = []
    for p in points:
        text = f"({format_number(p['x'])}, {format_number(p['y']) if p['y'] is not None else 'undefined'})"
        if p.get("type"):
            text += f" {p['type']}"
        parts.append(text)
    return ", ".join(parts) if parts else "none"


def _describe_samples(samples: dict[str, Any] | None) -> str:
    if not samples:
        return "none"
    ys = samples.get("y") or []
    gaps = sum(1 for y in ys if y is None)
    return f"{len(ys)} points, {gaps} gaps"


def print_response(response: dict[str, Any] | None, output_format: str = "human", out: TextIO | None = None) -> None:
    """Print a dispatcher response in the requested format.

    Args:
        response: Response message (``None`` prints nothing)
        output_format: "json" for JSON output, "human" for human-readable
    """
    out = out or sys.stdout
    if response is None:
        return
    if output_format == "json":
        print(json.dumps(response, indent=2, ensure_ascii=False), file=out)
        return

    kind = response.get("type")
    payload = response.get("payload") or {}
    if kind == "error":
        print("Error:", payload.get("message"), file=out)
        return
    if kind == "integralResult":
        bounds = ""
        if payload.get("a") is not None and payload.get("b") is not None:
            bounds = f" over [{format_number(payload['a'])}, {format_number(payload['b'])}]"
        print(f"Integral{bounds}: {format_number(payload.get('value'))}", file=out)
        return
    if kind == "rangeResult":
        x_range = payload.get("xRange") or {}
        print(f"x range: [{format_number(x_range.get('min'))}, {format_number(x_range.get('max'))}]", file=out)
        y_range = payload.get("yRange")
        if y_range:
            print(f"y range: [{format_number(y_range['min'])}, {format_number(y_range['max'])}]", file=out)
        else:
            print("y range: undetermined", file=out)
        return

    mode = payload.get("mode")
    if mode == "cartesian":
        print("Samples:", _describe_samples(payload.get("samples1")), file=out)
        if payload.get("samples2"):
            print("Samples (second):", _describe_samples(payload["samples2"]), file=out)
            print("Intersections:", _format_points(payload.get("intersections") or []), file=out)
        print("Zeros:", _format_points(payload.get("zeros") or []), file=out)
        print("Extrema:", _format_points(payload.get("extrema") or []), file=out)
        if payload.get("derivative"):
            print("Derivative:", payload["derivative"], file=out)
    elif mode == "parametric":
        print("Samples:", _describe_samples(payload.get("samples1")), file=out)
    elif mode == "polar":
        print("Samples:", _describe_samples({"y": payload.get("r")}), file=out)
    elif mode == "3d":
        z = payload.get("z") or []
        nulls = sum(1 for row in z for value in row if value is None)
        print(f"Surface: {len(payload.get('x') or [])}x{len(payload.get('y') or [])} grid, {nulls} undefined cells", file=out)


def serve(
    in_stream: TextIO,
    out_stream: TextIO,
    timeout: float,
    use_process: bool,
) -> int:
    """Answer one JSON request per input line with one JSON response line."""
    for line in in_stream:
        line = line.strip()
        if not line:
            continue
        try:
            msg = json.loads(line)
        except json.JSONDecodeError as e:
            logger.warning("Discarding malformed request line: %s", e)
            response: dict[str, Any] | None = {
                "type": "error",
                "requestId": None,
                "payload": {"message": f"Invalid JSON request: {e}", "code": "INVALID_JSON"},
            }
        else:
            response = dispatch(msg, timeout=timeout, use_process=use_process)
        if response is not None:
            out_stream.write(json.dumps(response) + "\n")
            out_stream.flush()
    return 0


def _expression_messages(args: argparse.Namespace) -> list[dict[str, Any]]:
    """Build the request messages for the ``-e`` convenience flags."""
    messages: list[dict[str, Any]] = []
    if args.auto_range:
        messages.append({"type": "autoRange", "payload": {"expression": args.eval_expr}})
    options = {"preset": args.preset} if args.preset else {}
    messages.append(
        {
            "type": "compute",
            "payload": {
                "mode": "cartesian",
                "expression": args.eval_expr,
                "xMin": args.x_min,
                "xMax": args.x_max,
                "options": options,
                "calculateZeros": args.zeros,
                "calculateExtrema": args.extrema,
            },
        }
    )
    if args.integrate:
        a, b = args.integrate
        messages.append(
            {
                "type": "computeIntegral",
                "payload": {"mode": "cartesian", "expression": args.eval_expr, "a": a, "b": b},
            }
        )
    return messages


def main_entry(argv: list[str] | None = None) -> int:
    """
    Main entry point for plotcalc CLI.

    Args:
        argv: Optional command-line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    parser = argparse.ArgumentParser(
        prog="plotcalc",
        description="Sample, integrate and analyse mathematical functions for plotting",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Read JSON requests from stdin, one per line, and answer on stdout",
    )
    parser.add_argument("--request", type=str, help="Answer one JSON request and exit")
    parser.add_argument(
        "-e",
        "--eval",
        type=str,
        help="Plot one cartesian expression and exit (non-interactive)",
        dest="eval_expr",
    )
    parser.add_argument("--x-min", type=float, default=-10.0, help="Domain start (default: -10)")
    parser.add_argument("--x-max", type=float, default=10.0, help="Domain end (default: 10)")
    parser.add_argument("--zeros", action="store_true", help="Report zeros of the expression")
    parser.add_argument("--extrema", action="store_true", help="Report classified extrema")
    parser.add_argument(
        "--integrate",
        type=float,
        nargs=2,
        metavar=("A", "B"),
        help="Also integrate the expression over [A, B]",
    )
    parser.add_argument(
        "--auto-range",
        action="store_true",
        help="Pick the x range automatically (overrides --x-min/--x-max)",
    )
    parser.add_argument(
        "--format",
        type=str,
        choices=["json", "human"],
        default="human",
        help="Output format: json (machine-readable) or human (human-readable)",
    )
    parser.add_argument(
        "--preset",
        type=str,
        choices=["fast", "default", "quality"],
        help="Sampling quality preset",
    )
    parser.add_argument(
        "--worker-mode",
        type=str,
        choices=["process", "inline"],
        help="Run requests in a worker process or in this process (default: process)",
    )
    parser.add_argument(
        "-t", "--timeout", type=float, help="Override worker timeout (seconds)"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: PLOTCALC_LOG_LEVEL or WARNING)",
    )
    parser.add_argument("--log-file", type=str, help="Write logs to file")
    parser.add_argument(
        "-v", "--version", action="store_true", help="Show program version"
    )
    args = parser.parse_args(argv)

    if args.version:
        print(VERSION)
        return 0

    setup_logging(level=args.log_level, log_file=args.log_file)

    # Apply CLI configuration overrides
    import plotcalc_pkg.config as _config

    timeout = float(args.timeout) if args.timeout and args.timeout > 0 else _config.WORKER_TIMEOUT
    if args.worker_mode:
        use_process = args.worker_mode == "process"
    else:
        use_process = _config.ENABLE_WORKER_PROCESS

    try:
        if args.serve:
            return serve(sys.stdin, sys.stdout, timeout, use_process)

        if args.request:
            try:
                msg = json.loads(args.request)
            except json.JSONDecodeError as e:
                print(f"Error: invalid JSON request: {e}")
                return 1
            response = dispatch(msg, timeout=timeout, use_process=use_process)
            if response is None:
                print("Error: unsupported request type")
                return 1
            print_response(response, args.format)
            return 1 if response.get("type") == "error" else 0

        if args.eval_expr:
            exit_code = 0
            collected = []
            for msg in _expression_messages(args):
                if msg["type"] == "compute" and collected and collected[0].get("type") == "rangeResult":
                    x_range = collected[0]["payload"]["xRange"]
                    msg["payload"]["xMin"] = x_range["min"]
                    msg["payload"]["xMax"] = x_range["max"]
                response = dispatch(msg, timeout=timeout, use_process=use_process)
                collected.append(response)
                if response is None or response.get("type") == "error":
                    exit_code = 1
            if args.format == "json":
                print(json.dumps([r for r in collected if r is not None], indent=2, ensure_ascii=False))
            else:
                for response in collected:
                    print_response(response, "human")
            return exit_code

        parser.print_help()
        return 1
    finally:
        shutdown_worker()


if __name__ == "__main__":
    """Allow running the CLI module directly with python -m plotcalc_pkg.cli"""
    sys.exit(main_entry())
