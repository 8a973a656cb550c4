"""Console logging configuration.

Records are rendered as one human-readable line, `timestamp LEVEL logger - message`, followed by
any `extra` fields passed to the logging call as `key=value` pairs.
"""

from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime
from typing import TextIO

CONSOLE_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"

# Attributes every LogRecord carries on this interpreter, plus the two Formatter.format sets.
_STANDARD_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.NOTSET, "", 0, "", None, None))
) | {"asctime", "message"}


def record_extras(record: logging.LogRecord) -> dict[str, object]:
    """Fields added to ``record`` through ``extra=``, in insertion order."""

    return {
        key: value
        for key, value in vars(record).items()
        if key not in _STANDARD_RECORD_ATTRS and not key.startswith("_")
    }


class ConsoleFormatter(logging.Formatter):
    """Plain-text formatter with UTC ISO timestamps and trailing `key=value` extras."""

    def __init__(self) -> None:
        super().__init__(fmt=CONSOLE_FORMAT)

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        return datetime.fromtimestamp(record.created, tz=UTC).isoformat(timespec="seconds")

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        extras = record_extras(record)
        if not extras:
            return line
        return line + " " + " ".join(f"{key}={value}" for key, value in extras.items())


def configure_logging(level: str, *, stream: TextIO | None = None) -> None:
    """Send all logging to one console handler, stdout unless ``stream`` is given."""

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream=stream or sys.stdout)
    handler.setFormatter(ConsoleFormatter())
    root.addHandler(handler)
    root.setLevel(level.upper())

    # PyGithub logs every request at DEBUG.
    logging.getLogger("github").setLevel(max(root.level, logging.INFO))
