from __future__ import annotations

import logging
import sys

import structlog

from merchant_twin import config


def configure_logging(force: bool = False) -> None:
    """
    Configure structlog for the service and CLI.
    LOG_FORMAT=json emits one JSON object per line; anything else renders for a console.
    Only the first call takes effect unless `force` is set.
    """
    if structlog.is_configured() and not force:
        return

    level = logging.getLevelName(config.log_level())
    if not isinstance(level, int):
        level = logging.INFO

    renderer = (
        structlog.processors.JSONRenderer()
        if config.log_format() == "json"
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
