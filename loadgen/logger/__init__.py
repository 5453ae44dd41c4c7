"""Logger module for ea-loadgen

Structured key/value logging on top of structlog.

Usage:
    from loadgen.logger import session_logger as logger

    logger.info("loadgen.start", vus=1, duration_seconds=60.0)
"""

import logging

import structlog
from structlog.typing import FilteringBoundLogger

from .console_logger import configure_logging, parse_level

Logger = FilteringBoundLogger

configure_logging(level=logging.DEBUG)

# Shared logger instance for modules that just need basic console logging
session_logger: Logger = structlog.get_logger("loadgen")

__all__ = [
    "Logger",
    "configure_logging",
    "parse_level",
    "session_logger",
]
