from __future__ import annotations

import logging
import sys

import structlog


def configure_logging(level: int = logging.INFO, *, json_output: bool = False) -> None:
    """Configure structlog for console output on stderr.

    ``json_output`` switches the renderer to one JSON object per line, which is
    what log shippers in the staging cluster expect.
    """

    renderer: structlog.typing.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def parse_level(name: str) -> int:
    level = logging.getLevelName(name.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"unknown log level: {name!r}")
    return level
