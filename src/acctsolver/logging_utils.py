"""Logging bootstrap: structlog JSON (or plain text) over stdlib handlers."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
import os
from pathlib import Path
from typing import Any

import structlog

APP_LOGGER_PREFIX = "acctsolver"
NOISY_LIBRARIES = ("httpx", "httpcore", "ollama")
PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def bind_context(**values: Any) -> None:
    """Attach key/value pairs to every structured record from this context."""
    structlog.contextvars.bind_contextvars(**values)


def _app_only_filter(record: logging.LogRecord) -> bool:
    return record.name.startswith(APP_LOGGER_PREFIX)


def _json_formatter() -> logging.Formatter:
    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            timestamper,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    # Records from logging.getLogger() take the foreign chain; `extra` fields
    # become JSON keys.
    return structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(ensure_ascii=False, separators=(",", ":")),
        foreign_pre_chain=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.ExtraAdder(),
            timestamper,
        ],
    )


def _file_handler(path: str, max_bytes: int, backup_count: int) -> logging.Handler:
    target = Path(path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        target, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    if os.name == "posix":
        try:
            target.chmod(0o600)
        except OSError:
            logging.getLogger(__name__).warning("Unable to enforce 0600 permissions for %s", target)
    return handler


def configure_logging(logging_config: dict[str, Any]) -> None:
    """Install handlers on the root logger from the ``[logging]`` section.

    The console handler only passes ``acctsolver.*`` records at WARNING or
    above because stdout is shared with the conversation. The optional file
    handler receives everything at the configured level.
    """
    level = getattr(logging, str(logging_config.get("level", "INFO")).upper(), logging.INFO)
    formatter = (
        _json_formatter()
        if logging_config.get("structured", True)
        else logging.Formatter(PLAIN_FORMAT)
    )

    handlers: list[logging.Handler] = []
    console = logging.StreamHandler()
    console.setLevel(max(level, logging.WARNING))
    console.addFilter(_app_only_filter)
    handlers.append(console)

    if logging_config.get("log_to_file", False):
        file_handler = _file_handler(
            str(logging_config.get("log_file_path", "~/.local/state/acctsolver/app.log")),
            int(logging_config.get("max_file_bytes", 1_000_000)),
            int(logging_config.get("backup_count", 3)),
        )
        file_handler.setLevel(level)
        handlers.append(file_handler)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in NOISY_LIBRARIES:
        library_logger = logging.getLogger(name)
        library_logger.setLevel(logging.WARNING)
        library_logger.propagate = True
