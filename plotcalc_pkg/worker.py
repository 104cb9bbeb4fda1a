"""Request dispatcher and the worker process that runs it.

Messages are plain dicts ``{"type": kind, "requestId": id, "payload": {...}}``.
``handle_message`` answers exactly one success or one error per known kind and
nothing for unknown kinds. ``dispatch`` sends a message to the worker process
(or runs it in-process when the process is disabled or cannot start).
"""

from __future__ import annotations

import logging
import math
import queue
import time
import uuid
from collections.abc import Hashable, Mapping
from typing import Any

from .autorange import auto_range
from .config import (
    CURVE_INTEGRAL_STEPS,
    CURVE_POINTS,
    DEFAULT_INITIAL_POINTS,
    DEFAULT_SURFACE_RANGE,
    DEFAULT_SURFACE_RESOLUTION,
    ENABLE_WORKER_PROCESS,
    INTEGRAL_STEPS,
    PARAMETRIC_T_RANGE,
    POLAR_T_RANGE,
    WORKER_TIMEOUT,
)
from .logging_config import current_level, get_logger, setup_logging
from .parser import CompiledExpression, compile_expression
from .quadrature import (
    compute_definite_integral,
    double_integral,
    parametric_area,
    polar_area,
)
from .roots import find_extrema, find_intersections, find_zeros
from .sampler import generate_samples, sample_parametric, sample_polar, sample_uniform
from .surface import check_range, generate_3d_surface
from .types import (
    BoundsError,
    CompilationError,
    DegenerateResultError,
    PlotCalcError,
    SamplingOptions,
)

logger = get_logger("worker")

try:
    from multiprocessing import Event, Process, Queue
except ImportError:
    Process = None  # type: ignore
    Queue = None  # type: ignore
    Event = None  # type: ignore

INTEGRAL_ERROR_PREFIX = "Integral computation failed: "

REQUEST_KINDS = ("compute", "computeIntegral", "autoRange")


def _number(value: Any, default: float | None) -> float | None:
    """Return ``value`` as a finite float, or ``default`` if it is not one."""
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def _required_number(payload: Mapping[str, Any], key: str) -> float:
    number = _number(payload.get(key), None)
    if number is None:
        raise BoundsError(f"'{key}' must be a finite number")
    return number


def _scope(payload: Mapping[str, Any]) -> dict[str, float]:
    """Numeric user parameters from ``payload["scope"]``; other entries are dropped."""
    raw = payload.get("scope") or {}
    if not isinstance(raw, Mapping):
        return {}
    scope = {}
    for name, value in raw.items():
        number = _number(value, None)
        if isinstance(name, str) and name.isidentifier() and number is not None:
            scope[name] = number
    return scope


def _range(value: Any, default: tuple[float, float] | None) -> tuple[float, float]:
    """Read a ``{"min": a, "max": b}`` range, filling missing ends from ``default``."""
    value = value if isinstance(value, Mapping) else {}
    lo_default, hi_default = default if default is not None else (None, None)
    lo = _number(value.get("min"), lo_default)
    hi = _number(value.get("max"), hi_default)
    if lo is None or hi is None:
        raise BoundsError("Range needs finite 'min' and 'max'")
    return lo, hi


def _compile(text: Any, variables: tuple[str, ...], scope: Mapping[str, float]) -> CompiledExpression:
    return compile_expression(text if text is not None else "", variables, scope)


def _derivative_or_none(compiled: CompiledExpression, variable: str) -> CompiledExpression | None:
    try:
        return compiled.derivative(variable)
    except CompilationError as e:
        logger.debug("Derivative of %s unavailable: %s", compiled, e)
        return None


def _compute_cartesian(payload: Mapping[str, Any]) -> dict[str, Any]:
    scope = _scope(payload)
    x_min = _required_number(payload, "xMin")
    x_max = _required_number(payload, "xMax")
    check_range(x_min, x_max, "x")
    y_min = _number(payload.get("yMin"), -math.inf)
    y_max = _number(payload.get("yMax"), math.inf)
    initial_points = int(_number(payload.get("initialPoints"), None) or DEFAULT_INITIAL_POINTS)
    options = SamplingOptions.for_domain(x_min, x_max, payload.get("options"))

    compiled1 = _compile(payload.get("expression"), ("x",), scope)
    samples1 = generate_samples(compiled1, x_min, x_max, initial_points, options, scope)

    samples2 = None
    intersections = []
    if payload.get("expression2"):
        compiled2 = _compile(payload["expression2"], ("x",), scope)
        samples2 = generate_samples(compiled2, x_min, x_max, initial_points, options, scope)
        if payload.get("calculateIntersections"):
            intersections = find_intersections(
                compiled1, compiled2, x_min, x_max, y_min, y_max,
                options=options, scope=scope,
            )

    zeros = []
    if payload.get("calculateZeros"):
        zeros = find_zeros(compiled1, x_min, x_max, y_min, y_max, options, scope)

    first = None
    if payload.get("calculateExtrema") or payload.get("calculateDerivativePlot"):
        first = _derivative_or_none(compiled1, "x")

    extrema = []
    if payload.get("calculateExtrema") and first is not None:
        extrema = find_extrema(
            compiled1, x_min, x_max, y_min, y_max, options, scope, first=first
        )

    derivative = ""
    derivative_samples = None
    if payload.get("calculateDerivativePlot") and first is not None:
        derivative = str(first)
        derivative_samples = generate_samples(
            first, x_min, x_max, initial_points, options, scope
        ).to_dict()

    return {
        "mode": "cartesian",
        "samples1": samples1.to_dict(),
        "samples2": samples2.to_dict() if samples2 is not None else None,
        "intersections": [p.to_dict() for p in intersections],
        "zeros": [p.to_dict() for p in zeros],
        "extrema": [p.to_dict() for p in extrema],
        "derivative": derivative,
        "derivativeSamples": derivative_samples,
    }


def _t_bounds(payload: Mapping[str, Any], default: tuple[float, float]) -> tuple[float, float]:
    t_min = _number(payload.get("tMin"), default[0])
    t_max = _number(payload.get("tMax"), default[1])
    check_range(t_min, t_max, "t")
    return t_min, t_max


def _compute_parametric(payload: Mapping[str, Any]) -> dict[str, Any]:
    scope = _scope(payload)
    t_min, t_max = _t_bounds(payload, PARAMETRIC_T_RANGE)
    points = int(_number(payload.get("initialPoints"), None) or CURVE_POINTS)
    x_compiled = _compile(payload.get("xExpr"), ("t",), scope)
    y_compiled = _compile(payload.get("yExpr"), ("t",), scope)
    samples = sample_parametric(x_compiled, y_compiled, t_min, t_max, points, scope)

    derivative = {"dx": "", "dy": ""}
    samples_dx = samples_dy = None
    if payload.get("calculateDerivativePlot"):
        dx = _derivative_or_none(x_compiled, "t")
        dy = _derivative_or_none(y_compiled, "t")
        if dx is not None and dy is not None:
            derivative = {"dx": str(dx), "dy": str(dy)}
            ts, dx_values = sample_uniform(dx, t_min, t_max, points, scope)
            _, dy_values = sample_uniform(dy, t_min, t_max, points, scope)
            samples_dx = {"t": ts, "value": dx_values}
            samples_dy = {"t": ts, "value": dy_values}

    return {
        "mode": "parametric",
        "samples1": samples,
        "tMin": t_min,
        "tMax": t_max,
        "derivative": derivative,
        "derivativeSamplesX": samples_dx,
        "derivativeSamplesY": samples_dy,
    }


def _compute_polar(payload: Mapping[str, Any]) -> dict[str, Any]:
    scope = _scope(payload)
    t_min, t_max = _t_bounds(payload, POLAR_T_RANGE)
    points = int(_number(payload.get("initialPoints"), None) or CURVE_POINTS)
    r_expr = payload.get("rExpr")
    r_compiled = _compile(r_expr, ("t",), scope)
    samples = sample_polar(r_compiled, t_min, t_max, points, scope)

    derivative = ""
    samples_dr = None
    if payload.get("calculateDerivativePlot"):
        dr = _derivative_or_none(r_compiled, "t")
        if dr is not None:
            derivative = str(dr)
            ts, dr_values = sample_uniform(dr, t_min, t_max, points, scope)
            samples_dr = {"theta": [math.degrees(t) for t in ts], "value": dr_values}

    return {
        "mode": "polar",
        "polar": True,
        "r": samples["r"],
        "theta": samples["theta"],
        "rExpr": r_expr,
        "tMin": t_min,
        "tMax": t_max,
        "derivative": derivative,
        "derivativeSamplesR": samples_dr,
    }


def _compute_3d(payload: Mapping[str, Any]) -> dict[str, Any]:
    scope = _scope(payload)
    x_range = _range(payload.get("xRange"), DEFAULT_SURFACE_RANGE)
    y_range = _range(payload.get("yRange"), DEFAULT_SURFACE_RANGE)
    resolution = payload.get("resolution")
    if resolution is None:
        resolution = DEFAULT_SURFACE_RESOLUTION
    resolution = _number(resolution, None)
    if resolution is None:
        raise BoundsError("Surface resolution must be a number")
    compiled = _compile(payload.get("expr"), ("x", "y"), scope)
    grid = generate_3d_surface(compiled, x_range, y_range, int(resolution), scope)
    return {"mode": "3d", **grid.to_dict()}


_COMPUTE_MODES = {
    "cartesian": _compute_cartesian,
    "parametric": _compute_parametric,
    "polar": _compute_polar,
    "3d": _compute_3d,
}


def compute(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Run a ``compute`` request and return the ``result`` payload.

    Raises:
        PlotCalcError: For compilation, bounds or degenerate-result failures
    """
    mode = payload.get("mode") or "cartesian"
    handler = _COMPUTE_MODES.get(mode)
    if handler is None:
        raise PlotCalcError(f"Unknown plot mode: {mode}", "UNKNOWN_MODE")
    return handler(payload)


def _finite_value(value: float) -> float:
    # responses only ever carry finite integral values
    if not math.isfinite(value):
        raise DegenerateResultError("Integral does not converge to a finite value")
    return value


def compute_integral(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Run a ``computeIntegral`` request and return the ``integralResult`` payload."""
    mode = payload.get("mode") or "cartesian"
    scope = _scope(payload)
    if mode == "cartesian":
        a, b = _required_number(payload, "a"), _required_number(payload, "b")
        expression = payload.get("expression")
        compiled = _compile(expression, ("x",), scope)
        value = _finite_value(compute_definite_integral(compiled, a, b, scope, INTEGRAL_STEPS))
        return {"value": value, "a": a, "b": b, "expression": expression, "mode": mode}
    if mode == "parametric":
        a, b = _required_number(payload, "a"), _required_number(payload, "b")
        x_expr, y_expr = payload.get("xExpr"), payload.get("yExpr")
        x_compiled = _compile(x_expr, ("t",), scope)
        y_compiled = _compile(y_expr, ("t",), scope)
        value = _finite_value(
            parametric_area(x_compiled, y_compiled, a, b, scope, CURVE_INTEGRAL_STEPS)
        )
        return {"value": value, "a": a, "b": b, "mode": mode, "xExpr": x_expr, "yExpr": y_expr}
    if mode == "polar":
        a, b = _required_number(payload, "a"), _required_number(payload, "b")
        r_expr = payload.get("rExpr")
        r_compiled = _compile(r_expr, ("t",), scope)
        value = _finite_value(polar_area(r_compiled, a, b, scope, CURVE_INTEGRAL_STEPS))
        return {"value": value, "a": a, "b": b, "mode": mode, "rExpr": r_expr}
    if mode == "3d":
        x_range = _range(payload.get("xRange"), None)
        y_range = _range(payload.get("yRange"), None)
        expr = payload.get("expr")
        compiled = _compile(expr, ("x", "y"), scope)
        value = _finite_value(double_integral(compiled, x_range, y_range, scope))
        return {
            "value": value,
            "mode": mode,
            "xRange": {"min": x_range[0], "max": x_range[1]},
            "yRange": {"min": y_range[0], "max": y_range[1]},
            "expr": expr,
        }
    raise PlotCalcError(f"Unknown integral mode: {mode}", "UNKNOWN_MODE")


def compute_auto_range(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Run an ``autoRange`` request and return the ``rangeResult`` payload."""
    scope = _scope(payload)
    compiled = _compile(payload.get("expression"), ("x",), scope)
    return auto_range(compiled, scope)


_HANDLERS = {
    "compute": ("result", compute, ""),
    "computeIntegral": ("integralResult", compute_integral, INTEGRAL_ERROR_PREFIX),
    "autoRange": ("rangeResult", compute_auto_range, ""),
}


def _error_response(request_id: Any, message: str, code: str) -> dict[str, Any]:
    return {
        "type": "error",
        "requestId": request_id,
        "payload": {"message": message, "code": code},
    }


def _with_request_id(response: dict[str, Any], request_id: Any) -> dict[str, Any]:
    if response.get("requestId") == request_id:
        return response
    return {**response, "requestId": request_id}


def request_id_of(msg: Mapping[str, Any]) -> Any:
    payload = msg.get("payload")
    if msg.get("requestId") is not None:
        return msg["requestId"]
    if isinstance(payload, Mapping):
        return payload.get("requestId")
    return None


def handle_message(msg: Any) -> dict[str, Any] | None:
    """Answer one request message.

    Returns exactly one ``result``/``integralResult``/``rangeResult`` or
    ``error`` response for a known kind, and ``None`` for anything else.
    """
    if not isinstance(msg, Mapping):
        logger.debug("Ignoring non-mapping message of type %s", type(msg).__name__)
        return None
    kind = msg.get("type")
    if not isinstance(kind, str) or kind not in _HANDLERS:
        logger.debug("Ignoring message of unknown kind %r", kind)
        return None

    request_id = request_id_of(msg)
    response_kind, handler, error_prefix = _HANDLERS[kind]
    payload = msg.get("payload")
    if not isinstance(payload, Mapping):
        payload = {}

    log_extra = {"request_id": request_id}
    start = time.perf_counter()
    try:
        result = handler(payload)
    except PlotCalcError as e:
        logger.debug("%s failed: [%s] %s", kind, e.code, e.message, extra=log_extra)
        return _error_response(request_id, error_prefix + e.message, e.code)
    except Exception as e:
        logger.exception("Unexpected error handling %s", kind, extra=log_extra)
        return _error_response(request_id, error_prefix + (str(e) or type(e).__name__), "INTERNAL_ERROR")
    logger.debug(
        "%s done in %.1f ms", kind, (time.perf_counter() - start) * 1000, extra=log_extra
    )
    return {"type": response_kind, "requestId": request_id, "payload": result}


class _WorkerManager:
    """Owns the single worker process and correlates responses by ``requestId``."""

    def __init__(self) -> None:
        self.proc = None
        self.req_q = None
        self.res_q = None
        self.stop_event = None
        self._resp_buffer: dict[Any, dict[str, Any]] = {}
        self._abandoned: set[Any] = set()

    def start(self) -> None:
        if Process is None or self.is_alive():
            return
        self.req_q = Queue()
        self.res_q = Queue()
        self.stop_event = Event()
        self._resp_buffer = {}
        self._abandoned = set()
        self.proc = Process(
            target=_worker_daemon_main,
            args=(self.req_q, self.res_q, self.stop_event, current_level()),
            daemon=True,
        )
        self.proc.start()
        logger.debug("Started worker process pid=%s", self.proc.pid)

    def is_alive(self) -> bool:
        return bool(self.proc is not None and self.proc.is_alive())

    def stop(self) -> None:
        """Stop the worker process gracefully."""
        try:
            if self.stop_event is not None:
                self.stop_event.set()
            if self.proc is not None:
                self.proc.join(timeout=1.0)
                if self.proc.is_alive():
                    self.proc.terminate()
        except (OSError, ValueError, AttributeError) as e:
            logger.warning("Error stopping worker process: %s", e)
        finally:
            self.proc = None
            self.req_q = None
            self.res_q = None
            self.stop_event = None

    def post(self, msg: Mapping[str, Any]) -> Any:
        """Send a message without waiting; returns its ``requestId``."""
        if not self.is_alive():
            self.start()
        request_id = request_id_of(msg)
        # queue correlation needs a hashable id; the caller still gets its own back
        if request_id is None or not isinstance(request_id, Hashable):
            request_id = str(uuid.uuid4())
            msg = {**msg, "requestId": request_id}
        self.req_q.put(dict(msg))
        return request_id

    def request(self, msg: Mapping[str, Any], timeout: float = WORKER_TIMEOUT) -> dict[str, Any] | None:
        """Send ``msg`` and wait for its response.

        Returns ``None`` if the worker cannot be used; the caller then runs
        the request in-process. A timeout yields an ``error`` response and
        the late answer is discarded when it arrives.
        """
        original_id = request_id_of(msg)
        try:
            self.start()
            if not self.is_alive():
                return None
            request_id = self.post(msg)
        except (OSError, ValueError, AttributeError) as e:
            logger.warning("Worker process unavailable, running in-process: %s", e)
            self.stop()
            return None

        if request_id in self._resp_buffer:
            return _with_request_id(self._resp_buffer.pop(request_id), original_id)

        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self._abandoned.add(request_id)
                logger.warning("Request %s timed out after %ss", request_id, timeout)
                return _error_response(
                    original_id, f"Request timed out after {timeout:g}s", "TIMEOUT"
                )
            try:
                response = self.res_q.get(timeout=min(0.5, remaining))
            except queue.Empty:
                if not self.is_alive():
                    logger.error("Worker process died while handling %s", request_id)
                    self.stop()
                    return _error_response(original_id, "Worker process died", "WORKER_DIED")
                continue
            response_id = response.get("requestId")
            if response_id == request_id:
                return _with_request_id(response, original_id)
            if response_id in self._abandoned:
                self._abandoned.discard(response_id)
                logger.debug("Discarding late response for %s", response_id)
                continue
            self._resp_buffer[response_id] = response


def _worker_daemon_main(req_q: Any, res_q: Any, stop_event: Any, log_level: int = logging.WARNING) -> None:
    """Worker process main loop: one request at a time, run to completion."""
    # spawned children start unconfigured; forked ones would log twice
    setup_logging(log_level)
    while not stop_event.is_set():
        try:
            msg = req_q.get(timeout=0.1)
        except queue.Empty:
            continue
        except (KeyboardInterrupt, SystemExit):
            stop_event.set()
            break
        response = handle_message(msg)
        if response is not None:
            res_q.put(response)


_WORKER_MANAGER = _WorkerManager()


def dispatch(
    msg: Mapping[str, Any],
    timeout: float = WORKER_TIMEOUT,
    use_process: bool | None = None,
) -> dict[str, Any] | None:
    """Answer ``msg`` through the worker process, falling back to in-process."""
    if use_process is None:
        use_process = ENABLE_WORKER_PROCESS
    if not isinstance(msg, Mapping) or msg.get("type") not in REQUEST_KINDS:
        return handle_message(msg)
    if use_process:
        response = _WORKER_MANAGER.request(msg, timeout)
        if response is not None:
            return response
    return handle_message(msg)


def shutdown_worker() -> None:
    _WORKER_MANAGER.stop()
