"""
indexkit Structured Logging

structlog configuration for applications embedding the client. Output goes to
the ``indexkit`` stdlib logger only; the root logger and the host
application's handlers are left alone.
"""

import logging
import sys
from typing import IO, Optional

import structlog

from indexkit.platform.config import Settings, settings as default_settings

LOGGER_NAME = "indexkit"


def configure_logging(settings: Settings | None = None, stream: Optional[IO[str]] = None) -> logging.Logger:
    """
    Configure structured logging for the client.

    Calling this again replaces the handler it installed before, so level or
    stream changes take effect without duplicating output.

    Args:
        settings: Source of ``LOG_LEVEL`` and ``APP_ENV`` (defaults to env)
        stream: Destination for log lines (defaults to stderr)

    Returns:
        The ``indexkit`` stdlib logger records are routed to
    """
    settings = settings or default_settings

    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
            if settings.APP_ENV == "production"
            else structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    package_logger = logging.getLogger(LOGGER_NAME)
    for handler in list(package_logger.handlers):
        if getattr(handler, "_indexkit", False):
            package_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler._indexkit = True
    package_logger.addHandler(handler)
    package_logger.setLevel(log_level)
    package_logger.propagate = False
    return package_logger


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
