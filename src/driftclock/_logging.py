"""Structured JSON log formatter and logging configuration.

:class:`JsonFormatter` emits one JSON object per record on a single
line (JSON Lines).  Besides the usual level/logger/message fields it
lifts the sync context the engine attaches to its records (``server``,
``skew_ms``, ``latency_ms``, ``stages_completed``) to top-level keys, so
a failed or successful round can be filtered by server without parsing
the message text.

The library modules only ever call ``logging.getLogger(__name__)``;
:func:`configure_logging` is for applications and the CLI.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from typing import Any

from driftclock._settings import LoggingSettings

SYNC_FIELDS: tuple[str, ...] = ("server", "skew_ms", "latency_ms", "stages_completed")
"""Record attributes (set through ``extra=``) copied into JSON output."""

_BYTES_PER_MB = 1024 * 1024

_TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class JsonFormatter(logging.Formatter):
    """Emit log records as single-line JSON objects.

    Fields: ``timestamp`` (UTC ISO 8601), ``level``, ``logger``,
    ``message``, ``service``, ``version`` when set, any of
    :data:`SYNC_FIELDS` present on the record, and ``exception`` /
    ``stack_info`` when the record carries them.

    Args:
        service: Service name included in every log line.
        version: Version string.  Omitted from output when empty.
    """

    def __init__(self, *, service: str = "driftclock", version: str = "") -> None:
        super().__init__()
        self._service = service
        self._version = version

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=UTC)
        entry: dict[str, Any] = {
            "timestamp": created.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self._service,
        }
        if self._version:
            entry["version"] = self._version

        for name in SYNC_FIELDS:
            if name in record.__dict__:
                entry[name] = record.__dict__[name]

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(entry, default=str)


def _build_formatter(
    settings: LoggingSettings, *, service: str, version: str
) -> logging.Formatter:
    if settings.format == "json":
        return JsonFormatter(service=service, version=version)
    return logging.Formatter(_TEXT_FORMAT)


def configure_logging(
    settings: LoggingSettings,
    *,
    service: str = "driftclock",
    version: str = "",
) -> None:
    """Point the root logger at stderr and, optionally, a rotating file.

    Any handlers already on the root logger are removed first, so the
    CLI can call this once per invocation.  The file handler rotates at
    ``settings.max_file_size_mb`` and keeps ``settings.backup_count``
    old files.
    """
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    formatter = _build_formatter(settings, service=service, version=version)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if settings.file is not None:
        handlers.append(
            RotatingFileHandler(
                settings.file,
                maxBytes=settings.max_file_size_mb * _BYTES_PER_MB,
                backupCount=settings.backup_count,
            )
        )
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    root.setLevel(settings.level)
