"""structlog configuration for the CLI and the long-running service."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import structlog

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

# Client libraries that log every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "openai", "apscheduler.executors.default")

_SHARED_PROCESSORS: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
]


def _formatted(handler: logging.Handler, renderer: structlog.types.Processor, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(processor=renderer))
    return handler


def setup_logging(
    log_dir: str,
    log_name: str = "gifview",
    *,
    level: str = "INFO",
    json_console: bool = False,
    **context: str,
) -> structlog.stdlib.BoundLogger:
    """Route structlog through stdlib logging to a rotating JSON file and stdout.

    The file always gets DEBUG and up. Stdout gets *level* and up, rendered for
    humans unless *json_console* is set (containers ship stdout to a collector).
    Extra keyword arguments are bound into every event, e.g. ``environment``.
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    console_renderer = structlog.processors.JSONRenderer() if json_console else structlog.dev.ConsoleRenderer()
    handlers = [
        _formatted(
            RotatingFileHandler(log_path / f"{log_name}.log", maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS),
            structlog.processors.JSONRenderer(),
            logging.DEBUG,
        ),
        _formatted(logging.StreamHandler(sys.stdout), console_renderer, logging.getLevelName(level.upper())),
    ]

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    # serve may be invoked after another command configured logging in-process
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[*_SHARED_PROCESSORS, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.clear_contextvars()
    if context:
        structlog.contextvars.bind_contextvars(**context)

    return structlog.get_logger(log_name)
