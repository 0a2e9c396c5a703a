"""
Structured logging configuration.

Every record logged while a request is being served is stamped with the
request's ``request_id`` and acting ``user_id`` (see ``RequestContextFilter``),
so a single workflow action can be followed across the engine, the store and
the timing middleware.

- LOG_FORMAT=json     one JSON object per line (log aggregators)
- LOG_FORMAT=readable coloured single-line output (local development)
- LOG_LEVEL           root level; defaults to DEBUG in development, INFO otherwise
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Record attributes emitted by JSONFormatter when a caller passes them via ``extra``
_CONTEXT_FIELDS = (
    "request_id",
    "user_id",
    "advisory_request",
    "from_status",
    "to_status",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
)

_NOISY_LOGGERS = ("urllib3", "werkzeug", "sqlalchemy.engine", "alembic", "flask_limiter")


class RequestContextFilter(logging.Filter):
    """Copy the current request id and acting user onto the record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            if getattr(record, "request_id", None) is None:
                record.request_id = getattr(g, "request_id", None)
            if getattr(record, "user_id", None) is None:
                record.user_id = getattr(g, "acting_user_id", None)
        return True


class JSONFormatter(logging.Formatter):
    """One JSON document per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update({
            key: getattr(record, key)
            for key in _CONTEXT_FIELDS
            if getattr(record, key, None) is not None
        })
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Coloured one-liner: time, level, logger, request id, message."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, "")
        when = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        parts = [f"{color}{when} {record.levelname:<8}{self.RESET}", record.name]
        rid = getattr(record, "request_id", None)
        if rid:
            parts.append(f"[{rid}]")
        line = " ".join(parts) + f": {record.getMessage()}"
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            line += f" ({duration:.0f}ms)"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """
    Install a single stderr handler on the root logger.

    Safe to call more than once (the test suite builds several apps): existing
    root handlers are replaced rather than stacked.
    """
    testing = app.config.get("TESTING", False)
    default_level = "DEBUG" if app.config.get("DEBUG") or testing else "INFO"
    level_name = (app.config.get("LOG_LEVEL") or os.getenv("LOG_LEVEL") or default_level).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = app.config.get("LOG_FORMAT") or ("readable" if app.config.get("DEBUG") or testing else "json")
    formatter = JSONFormatter() if fmt == "json" else ReadableFormatter()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
    root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not testing:
        app.logger.info("Logging configured: level=%s format=%s", level_name, fmt)
