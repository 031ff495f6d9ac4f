"""Log formatting for the command-line runner.

Records emitted while a variant runs carry the variant's full name and
the running phase as ``extra`` attributes (``variant``, ``phase``; the
final record of a run also ``outcome``).  Both formatters here render
that context, so a line can be traced back to the variant that
produced it without parsing the message:

* :class:`VariantTextFormatter` prefixes the message with
  ``variant (phase)`` for terminals.
* :class:`JsonFormatter` adds the context as top-level keys, one JSON
  object per line, for CI jobs that collect the runner's ``stderr``.

The pytest plugin never calls :func:`configure_logging`: under pytest,
log capture and formatting belong to pytest, which still sees the
context attributes on every record.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from typing import Any

from contextspec._settings import LoggingSettings

CONTEXT_FIELDS = ("variant", "phase", "outcome")

_MEGABYTE = 1024 * 1024


def record_context(record: logging.LogRecord) -> dict[str, str]:
    """Return the variant context attached to *record*, skipping unset fields."""
    context: dict[str, str] = {}
    for name in CONTEXT_FIELDS:
        value = getattr(record, name, None)
        if value is not None:
            context[name] = str(value)
    return context


class VariantTextFormatter(logging.Formatter):
    """Human-readable lines, prefixed with the variant context when present.

    ``when_sum_is_called.then_x[A=1] (because): because raised ...``
    """

    def __init__(self) -> None:
        super().__init__("%(asctime)s [%(levelname)s] %(name)s: %(context)s%(message)s")

    def format(self, record: logging.LogRecord) -> str:
        context = record_context(record)
        prefix = context.get("variant", "")
        if "phase" in context:
            prefix = f"{prefix} ({context['phase']})".lstrip()
        record.context = f"{prefix}: " if prefix else ""
        return super().format(record)


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    Keys: ``timestamp`` (UTC, ISO 8601), ``level``, ``logger`` and
    ``message``, then whichever of ``variant``, ``phase`` and
    ``outcome`` the record carries, ``version`` when set and
    ``exception`` for records logged with ``exc_info``.

    Args:
        version: contextspec version stamped on every line.  Omitted
            when empty.
    """

    def __init__(self, *, version: str = "") -> None:
        super().__init__()
        self._version = version

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **record_context(record),
        }
        if self._version:
            entry["version"] = self._version
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def build_formatter(settings: LoggingSettings, *, version: str = "") -> logging.Formatter:
    """Return the formatter selected by ``settings.format``."""
    if settings.format == "json":
        return JsonFormatter(version=version)
    return VariantTextFormatter()


def configure_logging(settings: LoggingSettings, *, version: str = "") -> None:
    """Point the root logger at ``stderr`` and, optionally, a rotating file.

    Existing root handlers are removed first, so calling this twice
    does not duplicate output.

    Args:
        settings: Level, format and optional log file.
        version: Passed to :class:`JsonFormatter`.
    """
    formatter = build_formatter(settings, version=version)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if settings.file is not None:
        handlers.append(
            RotatingFileHandler(
                settings.file,
                maxBytes=settings.max_file_size_mb * _MEGABYTE,
                backupCount=settings.backup_count,
            )
        )

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(settings.level)
