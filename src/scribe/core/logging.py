"""structlog setup.

Call ``configure_logging`` once at process start; modules keep using a
module-level ``log = structlog.get_logger()``.
"""

import logging
from typing import Optional

import structlog

from scribe.core.config import LoggingConfig


def configure_logging(config: Optional[LoggingConfig] = None) -> None:
    """Configure structlog from a LoggingConfig.

    Args:
        config: Level and renderer. ``format="json"`` emits one JSON object
            per line, ``format="console"`` emits coloured key/value lines.
    """
    config = config or LoggingConfig()

    if config.format == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(config.level)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
