"""Logging setup for the SOP engine.

Module loggers are plain ``logging.getLogger(__name__)`` children of the
``sopdesk`` logger configured here. Both formatters understand two extras
passed through ``extra=``: the fields in ``EVENT_FIELDS`` and an ``error``
holding a ``SopDeskError``.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any

from ..core.domain.exceptions import SopDeskError

ROOT_LOGGER_NAME = "sopdesk"

# Engine-specific keys copied from ``extra=`` into the JSON entry.
EVENT_FIELDS = ("event", "doc_id", "page_id", "strategy", "operation")


def _engine_error(record: logging.LogRecord) -> SopDeskError | None:
    """The SopDeskError attached to a record, if any."""
    if record.exc_info and isinstance(record.exc_info[1], SopDeskError):
        return record.exc_info[1]
    error = getattr(record, "error", None)
    return error if isinstance(error, SopDeskError) else None


class JSONExceptionFormatter(logging.Formatter):
    """One JSON object per record, with engine error fields as top-level keys.

    A ``SopDeskError`` (from ``exc_info`` or ``extra={"error": ...}``)
    contributes ``error_code``, ``error_type``, ``raised_at``, ``context``
    and ``cause`` from its ``to_dict()`` form.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": {
                "file": record.filename,
                "function": record.funcName,
                "line": record.lineno,
            },
        }

        for name in EVENT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_entry[name] = value

        error = _engine_error(record)
        if error is not None:
            details = error.to_dict()
            log_entry["error_code"] = details["error"]["code"]
            log_entry["error_type"] = details["error"]["type"]
            log_entry["raised_at"] = details["location"]
            if "context" in details:
                log_entry["context"] = details["context"]
            if "cause" in details:
                log_entry["cause"] = details["cause"]

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["traceback"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Pipe-separated text lines; engine errors get their code appended."""

    def __init__(self) -> None:
        super().__init__(
            "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        error = _engine_error(record)
        if error is None:
            return line
        head, sep, tail = line.partition("\n")
        return f"{head} [{error.error_code}]{sep}{tail}"


def setup_logging(
    level: str = "INFO",
    log_file: Path | None = None,
    json_format: bool = False,
) -> logging.Logger:
    """Configure the ``sopdesk`` logger.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR).
        log_file: Optional file path for log output.
        json_format: If True, output logs in JSON format.

    Returns:
        The configured ``sopdesk`` logger.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers.clear()

    formatter: logging.Formatter = JSONExceptionFormatter() if json_format else ConsoleFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
