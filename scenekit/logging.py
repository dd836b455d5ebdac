"""
Structured logging setup.

Modules get their logger with ``structlog.get_logger(__name__)``; applications
call ``configure_logging()`` once at startup. JSON output for production,
coloured console output for development.
"""

import logging
import sys
from typing import Optional

import structlog

from .config import get_settings


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        level: Log level name, defaults to the LOG_LEVEL setting
        fmt: "json" or "console", defaults to the LOG_FORMAT setting, or
            json when ENVIRONMENT is production and console otherwise
    """
    settings = get_settings()
    level = (level or settings.log_level).upper()
    fmt = fmt or settings.log_format
    if fmt is None:
        fmt = "json" if settings.environment == "production" else "console"

    renderer = (
        structlog.processors.JSONRenderer()
        if fmt == "json"
        else structlog.dev.ConsoleRenderer()
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
