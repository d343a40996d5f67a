"""
structlog setup for the zkface system.

Modules obtain their loggers with ``structlog.get_logger(__name__)`` at
import time; configure_logging() only decides how the events are rendered
and which levels pass.
"""

import logging
import sys
from typing import Optional

import structlog

from . import config


def configure_logging(
    level: Optional[str] = None, structured: Optional[bool] = None
) -> None:
    """
    Configure structlog rendering and level filtering.

    Parameters
    ----------
    level : str, optional
        Minimum log level name. Defaults to config.LOG_LEVEL.
    structured : bool, optional
        Emit JSON lines when True, human-readable console output otherwise.
        Defaults to config.STRUCTURED_LOGGING.
    """
    level_name = (level or config.LOG_LEVEL).upper()
    use_json = config.STRUCTURED_LOGGING if structured is None else structured

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if use_json:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level_name)
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
