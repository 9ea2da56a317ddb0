# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Log output for biodid processes.

Library modules log through ``logging.getLogger(__name__)`` and attach the
record they are working on as ``extra``::

    logger.info("Revoked token %s", token_id, extra={"token_id": token_id})

The formatters here lift those fields out of the record. JSON output puts
them at the top level so a log pipeline can filter on one identity or one
token; text output shows them as a short bracketed tag after the level.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

# Record attributes callers may set through ``extra``
CONTEXT_FIELDS = ("identity_id", "token_id", "user_id")

# Libraries whose INFO output drowns out ours
QUIET_LOGGERS = ("asyncpg", "aiohttp", "asyncio")


def record_context(record: logging.LogRecord) -> dict[str, Any]:
    """Context fields present on ``record``, in :data:`CONTEXT_FIELDS` order."""
    return {
        field: getattr(record, field)
        for field in CONTEXT_FIELDS
        if getattr(record, field, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for files and log collectors."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(record_context(record))

        if record.levelno >= logging.WARNING:
            entry["source"] = f"{record.pathname}:{record.lineno}"
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Single-line output for a terminal, optionally colored by level."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        super().__init__(
            fmt="%(asctime)s %(levelname)s %(name)s%(context)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        # Work on a copy; other handlers format the same record
        record = logging.makeLogRecord(record.__dict__)

        context = record_context(record)
        tag = " ".join(f"{field.removesuffix('_id')}={value}" for field, value in context.items())
        record.context = f" [{tag}]" if tag else ""

        if self.use_colors:
            color = self.LEVEL_COLORS.get(record.levelname, "")
            record.levelname = f"{color}{record.levelname}{self.RESET}"

        return super().format(record)


def _use_json(log_format: str) -> bool:
    log_format = log_format.lower()
    if log_format in ("json", "text"):
        return log_format == "json"
    # "auto": JSON unless a person is watching
    return not sys.stderr.isatty()


def configure_logging(
    level: str | int | None = None,
    json_format: bool | None = None,
    log_file: str | None = None,
) -> None:
    """Install biodid's handlers on the root logger.

    Arguments left as None come from :class:`~biodid.core.config.CoreSettings`
    (``BIODID_LOG_LEVEL``, ``BIODID_LOG_FORMAT``, ``BIODID_LOG_FILE``).
    A log file always receives JSON regardless of the console format.
    """
    from .config import get_config

    config = get_config()

    level = config.log_level if level is None else level
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    if json_format is None:
        json_format = _use_json(config.log_format)
    log_file = config.log_file if log_file is None else log_file

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(JSONFormatter() if json_format else TextFormatter())
    root.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        root.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
