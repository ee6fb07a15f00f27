"""Logging setup for the alerting context.

structlog sits on top of the stdlib root logger. Output is JSON in
production and staging and a rich console view everywhere else. Every entry
is tagged with ``context="alerting"`` so lines can be told apart when several
bounded contexts share a process.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Any

import structlog

CONTEXT_NAME = "alerting"

_LEVELS_BY_ENV = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}

_MAX_LOG_BYTES = 10 * 1024 * 1024
_LOG_BACKUPS = 5


def _environment() -> str:
    return (os.getenv("ENV") or os.getenv("ENVIRONMENT") or os.getenv("PROTEAN_ENV") or "development").lower()


def get_log_level() -> str:
    """``LOG_LEVEL`` when set, otherwise a level derived from the environment."""
    return os.getenv("LOG_LEVEL", _LEVELS_BY_ENV.get(_environment(), "INFO"))


def _rotating_handler(path: Path, level) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        filename=path,
        maxBytes=_MAX_LOG_BYTES,
        backupCount=_LOG_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(level)
    return handler


def setup_stdlib_logging(
    level: str | None = None,
    log_dir: str | None = None,
    log_file_prefix: str = CONTEXT_NAME,
) -> None:
    """Reset the root logger to a stdout handler, plus log files when a directory is configured.

    The directory comes from ``log_dir`` or ``LOG_DIR``. Without one nothing is
    written to disk, which keeps test runs and containers clean.
    """
    log_level = (level or get_log_level()).upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    root_logger.addHandler(console_handler)

    log_dir = log_dir or os.getenv("LOG_DIR")
    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        root_logger.addHandler(_rotating_handler(log_path / f"{log_file_prefix}.log", log_level))
        root_logger.addHandler(_rotating_handler(log_path / f"{log_file_prefix}_error.log", logging.ERROR))

    logging.getLogger("asyncio").setLevel(logging.WARNING)


def _tag_context(logger, method_name, event_dict):
    event_dict.setdefault("context", CONTEXT_NAME)
    return event_dict


def _renderer():
    if _environment() in ("production", "staging"):
        return structlog.processors.JSONRenderer()

    return structlog.dev.ConsoleRenderer(
        colors=sys.stdout.isatty(),
        exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=True, max_frames=2),
    )


def setup_structlog() -> None:
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            _tag_context,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.LINENO,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                ]
            ),
            _renderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging(
    level: str | None = None,
    log_dir: str | None = None,
    log_file_prefix: str = CONTEXT_NAME,
) -> None:
    setup_stdlib_logging(level=level, log_dir=log_dir, log_file_prefix=log_file_prefix)
    setup_structlog()


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def add_context(**kwargs: Any) -> None:
    """Bind values (business_id, notification_id, ...) onto every following log line."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
