# logging_utils.py
"""Logging setup for the lead relay.

Outside development every record is written as one JSON object per line so
the hosting platform can index the context passed through ``extra`` (user id,
attempt number, webhook status). Development gets short colored lines with
the same context appended as ``key=value`` pairs.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .config import config

SERVICE_NAME = "lead-relay"

# Attributes present on every LogRecord; anything else arrived through ``extra``
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime"}

NOISY_LOGGERS = (
    "urllib3",
    "requests",
    "httpx",
    "httpcore",
    "sqlalchemy.engine",
    "uvicorn.access",
)


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    """Return the ``extra`` fields attached to a log record."""
    return {
        key: _jsonable(value)
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class StructuredFormatter(logging.Formatter):
    """Formats records as single-line JSON documents."""

    def __init__(self, service_name: str = SERVICE_NAME, include_timestamp: bool = True):
        super().__init__()
        self.service_name = service_name
        self.include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "source": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        if self.include_timestamp:
            entry["timestamp"] = datetime.fromtimestamp(
                record.created, timezone.utc
            ).isoformat()

        context = record_context(record)
        if context:
            entry["extra"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Compact development output: ``12:00:01 INFO  name: message key=value``."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        level = f"{record.levelname:<8}"
        if self.use_colors:
            level = f"{self.LEVEL_COLORS.get(record.levelname, '')}{level}{self.RESET}"

        line = f"{clock} {level} {record.name}: {record.getMessage()}"

        context = record_context(record)
        if context:
            line += " " + " ".join(f"{key}={value}" for key, value in context.items())

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: Optional[str] = None,
    structured: Optional[bool] = None,
    service_name: str = SERVICE_NAME,
) -> logging.Logger:
    """Configure the root logger for the relay process.

    Existing root handlers are replaced, so calling this again (uvicorn
    reload, the CLI followed by the app lifespan) does not duplicate output.

    Args:
        level: Log level name. Defaults to LOG_LEVEL.
        structured: JSON output. Defaults to True unless APP_ENV is a
            development environment.
        service_name: Service name written into structured records.

    Returns:
        The ``lead_relay`` package logger.
    """
    level = (level or config.LOG_LEVEL).upper()
    log_level = logging.getLevelName(level)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    if structured is None:
        structured = not config.is_development()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        StructuredFormatter(service_name=service_name)
        if structured
        else HumanReadableFormatter()
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(log_level)

    # Library chatter only shows up when debugging the relay itself
    library_level = logging.WARNING if log_level > logging.DEBUG else log_level
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    logger = logging.getLogger("lead_relay")
    logger.debug(
        "Logging configured",
        extra={"log_level": level, "structured": structured},
    )
    return logger
