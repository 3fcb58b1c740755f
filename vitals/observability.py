"""
Structured logging setup.

structlog sits on top of the stdlib logging machinery so third-party log
records and our own events end up in the same handlers.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Any

import structlog

from vitals.config import LoggingConfig

_SHARED_PROCESSORS: list[Any] = [
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.UnicodeDecoder(),
]

_STREAM_HANDLER_NAME = "vitals-stderr"
_FILE_HANDLER_NAME = "vitals-file"


def configure_logging(config: LoggingConfig | None = None) -> None:
    """Configure structlog and the stdlib root logger. Safe to call repeatedly."""
    config = config or LoggingConfig()

    renderer: Any
    if config.format == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[*_SHARED_PROCESSORS, renderer],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.setLevel(config.level)
    if not any(h.get_name() == _STREAM_HANDLER_NAME for h in root.handlers):
        stream = logging.StreamHandler(sys.stderr)
        stream.set_name(_STREAM_HANDLER_NAME)
        stream.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(stream)

    if config.enable_file_logging and not any(
        h.get_name() == _FILE_HANDLER_NAME for h in root.handlers
    ):
        log_dir = os.path.dirname(config.log_file_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            config.log_file_path,
            maxBytes=config.max_file_bytes,
            backupCount=config.backup_count,
        )
        file_handler.set_name(_FILE_HANDLER_NAME)
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(file_handler)


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)
