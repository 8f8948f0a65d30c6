"""Structured logging setup."""

import logging
import os
import sys
import structlog
from typing import Any

from ..domain.interfaces import Logger

def setup_logging(level: str = "INFO") -> None:
    """Set up structured logging."""
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level.upper())

    # Console output for local runs, JSON for log shipping
    use_json = os.getenv("LOG_FORMAT", "console") == "json"

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso" if use_json else "%Y-%m-%d %H:%M:%S"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if use_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

class StructLogger(Logger):
    """Structured logger implementation."""

    def __init__(self, component: str = "talaria-client", **context: Any):
        """Initialize logger."""
        self.logger = structlog.get_logger(component=component, **context)

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message."""
        self.logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info message."""
        self.logger.info(message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        """Log error message."""
        self.logger.error(message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message."""
        self.logger.warning(message, **kwargs)
