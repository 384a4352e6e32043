"""Logging setup for onenode.

Provisioning progress goes to stdout through click; structlog events go to
stderr, or to ``--log-file`` when a run should leave a record behind. The
renderer is chosen with ``--log-format``.
"""

import logging
import sys
from pathlib import Path

import structlog

LOG_FORMATS = ("console", "json")

# -v count -> stdlib level
VERBOSITY_LEVELS = {0: logging.WARNING, 1: logging.INFO}


def level_for_verbosity(verbose: int) -> int:
    """Map the count of -v flags to a log level (-vv and up is debug)."""
    return VERBOSITY_LEVELS.get(verbose, logging.DEBUG)


def _renderer(log_format: str, colors: bool) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=colors)


def configure_logging(
    verbose: int = 0,
    log_file: str | Path | None = None,
    log_format: str = "console",
) -> None:
    """Route structlog through stdlib logging.

    Args:
        verbose: Number of -v flags given on the command line.
        log_file: Append events to this file instead of stderr.
        log_format: "console" or "json".
    """
    if log_format not in LOG_FORMATS:
        raise ValueError(f"Unknown log format: {log_format}")

    level = level_for_verbosity(verbose)
    handler: logging.Handler = (
        logging.FileHandler(str(log_file)) if log_file else logging.StreamHandler(sys.stderr)
    )
    logging.basicConfig(level=level, handlers=[handler], format="%(message)s", force=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            _renderer(log_format, colors=not log_file and sys.stderr.isatty()),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
