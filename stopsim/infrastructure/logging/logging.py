"""Logging setup using structlog.

- API process: JSON events on stdout (one per line).
- CLI: events go to stderr so the simulation JSON printed on stdout stays clean.
  ``console=True`` switches to the human-readable renderer.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Optional, TextIO

import structlog


def configure_logging(
    log_level: str = "INFO",
    *,
    stream: Optional[TextIO] = None,
    console: bool = False,
) -> None:
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stdout,
        level=level,
        force=True,
    )

    renderer: Any = structlog.dev.ConsoleRenderer() if console else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(component: str, **kwargs: Any) -> Any:
    """Lazy logger with fixed context; module-level loggers pick up configure_logging() on first use."""
    return structlog.get_logger(component=component, **kwargs)
