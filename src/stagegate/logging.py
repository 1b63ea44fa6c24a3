"\"\"\"Logging utilities for the screening pipeline.\"\"\""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog


def configure_logging(level: str = "INFO", *, stream: TextIO | None = None) -> None:
    """Configure structlog with JSON output.

    Logs go to stderr by default so command output on stdout stays parseable.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    target = stream or sys.stderr

    logging.basicConfig(level=log_level, format="%(message)s", stream=target)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(file=target),
        cache_logger_on_first_use=True,
    )
