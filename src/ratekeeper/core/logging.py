"""
Logging configuration module for structured logging.

This module configures logging for ratekeeper using structlog. It provides
JSON output for production and human-readable console output for development.

The logging configuration includes:
- Timestamp formatting
- Log level inclusion and filtering
- JSON/Console output based on settings
- Standard library logger factory
"""

import logging
from typing import Optional

import structlog

from ratekeeper.core.config import get_settings


def configure_logging(log_level: Optional[str] = None, json_logs: Optional[bool] = None) -> None:
    """
    Configures structlog for the package.

    Arguments left as ``None`` are taken from `RatekeeperSettings`
    (``RATEKEEPER_LOG_LEVEL`` / ``RATEKEEPER_LOG_JSON``).
    """
    settings = get_settings()
    level_name = (log_level or settings.LOG_LEVEL).upper()
    use_json = settings.LOG_JSON if json_logs is None else json_logs

    logging.basicConfig(format="%(message)s", level=getattr(logging, level_name, logging.INFO))

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.add_log_level,
        structlog.processors.JSONRenderer() if use_json else structlog.dev.ConsoleRenderer(),
    ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
