"""Structured logging configuration for plotcalc.

Everything logs under the ``plotcalc`` hierarchy to stderr; stdout is the
JSON channel in serve mode. Records may carry a ``request_id`` attribute
(``logger.debug(..., extra={"request_id": rid})``) which the formatter
appends so one request can be followed across the CLI and the worker process.
"""

import logging
import os
import sys
from datetime import datetime
from typing import Any, Optional

ROOT_LOGGER = "plotcalc"
DEFAULT_LEVEL = os.getenv("PLOTCALC_LOG_LEVEL", "WARNING").upper()


class StructuredFormatter(logging.Formatter):
    """``<iso timestamp> [LEVEL] name: message [request=<id>]`` plus traceback."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).isoformat()
        line = f"{timestamp} [{record.levelname}] {record.name}: {record.getMessage()}"
        request_id = getattr(record, "request_id", None)
        if request_id is not None:
            line = f"{line} [request={request_id}]"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _level_of(level: Any) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, str(level or DEFAULT_LEVEL).upper(), logging.WARNING)


def setup_logging(
    level: Any = None, log_file: Optional[str] = None
) -> logging.Logger:
    """Configure the ``plotcalc`` logger.

    Args:
        level: Level name or number (default: ``PLOTCALC_LOG_LEVEL`` or WARNING)
        log_file: Optional file that receives the same records as stderr

    Returns:
        The configured ``plotcalc`` logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(_level_of(level))
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(StructuredFormatter())
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(StructuredFormatter())
        logger.addHandler(file_handler)

    return logger


def current_level() -> int:
    """Effective level of the ``plotcalc`` logger, handed to the worker process."""
    return logging.getLogger(ROOT_LOGGER).getEffectiveLevel()


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Logger for a module, e.g. ``get_logger("sampler")`` -> ``plotcalc.sampler``."""
    if name == ROOT_LOGGER:
        return logging.getLogger(ROOT_LOGGER)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
