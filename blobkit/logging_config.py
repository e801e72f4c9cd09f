"""
structlog configuration driven by the log_level and log_format settings.
"""

import logging
import sys

import structlog


def configure_logging(level: str = "INFO", fmt: str = "text") -> None:
    """
    Configure structlog for the process.

    Args:
        level: Minimum level name, e.g. "DEBUG" or "INFO"
        fmt: "json" for machine-readable lines, "text" for console output
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if fmt == "json":
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=False,
    )
