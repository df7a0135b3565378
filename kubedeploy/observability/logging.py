"""Structured logging for kubedeploy.

Each event is written as one JSON object with ``ts``, ``level`` and
``component`` keys. Events emitted while a deployment run is in progress
also carry ``run_id``: the orchestrator binds it with :func:`bind_run`
before creating the run's task, and every task spawned from there inherits
the binding through contextvars.
"""

from __future__ import annotations

import logging
import sys
from contextlib import AbstractContextManager
from typing import Any, TextIO

import structlog

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def setup_logging(level: str = "info", stream: TextIO | None = None) -> None:
    """Configure structlog for JSON output.

    Args:
        level:  Minimum level name; one of debug, info, warning, error, critical.
        stream: Destination file object. Defaults to stderr.

    Raises:
        ValueError: *level* is not a known level name.
    """
    try:
        log_level = _LEVELS[level.lower()]
    except KeyError:
        raise ValueError(f"Invalid log level: {level}. Must be one of {sorted(_LEVELS)}") from None

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.format_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            structlog.processors.JSONRenderer(sort_keys=True),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stderr),
        # Module-level loggers exist before setup runs; do not pin them to the default config.
        cache_logger_on_first_use=False,
    )


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound with a component name."""
    return structlog.get_logger(component=component)  # type: ignore[return-value]


def bind_run(run_id: str, **extra: Any) -> AbstractContextManager[Any]:
    """Bind *run_id* (and *extra*) to every event logged in this context."""
    return structlog.contextvars.bound_contextvars(run_id=run_id, **extra)
