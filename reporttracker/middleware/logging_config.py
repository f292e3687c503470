"""
Structured logging configuration.

- Development / testing: readable one-line format with workflow context
- Production: one JSON object per line
- LOG_LEVEL / LOG_FORMAT come from app config (env vars of the same name)

Inside a request every record is stamped with ``request_id`` and the acting
``user_id``, so service-layer lines such as "Flag 12 accept by admin 1" can
be joined to the access line written by the timing middleware.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Record attributes copied into JSON output when present
CONTEXT_KEYS = (
    "request_id",
    "user_id",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
    "flag_id",
    "daily_data_id",
    "event_type",
)

# Shown as a short suffix by the readable formatter
_READABLE_KEYS = {"flag_id": "flag", "daily_data_id": "daily", "event_type": "event"}

_HANDLER_NAME = "reporttracker"


class RequestContextFilter(logging.Filter):
    """Attach request id and acting user to records logged during a request."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            if getattr(record, "request_id", None) is None:
                record.request_id = getattr(g, "request_id", None)
            if getattr(record, "user_id", None) is None:
                principal = getattr(g, "principal", None)
                record.user_id = principal.user_id if principal else None
        return True


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production / log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in CONTEXT_KEYS:
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Single-line formatter for terminals; colours only when ``color`` is set."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, color: bool = False):
        super().__init__()
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        level = f"{record.levelname:<8}"
        if self.color:
            level = f"{self.COLORS.get(record.levelname, '')}{level}{self.RESET}"

        context = [f"{label}={getattr(record, key)}" for key, label in _READABLE_KEYS.items()
                   if getattr(record, key, None) is not None]
        request_id = getattr(record, "request_id", None)
        if request_id:
            context.insert(0, f"req={request_id}")
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            context.append(f"{duration:.0f}ms")

        line = f"{ts} {level} {record.name}: {record.getMessage()}"
        if context:
            line += f" [{' '.join(context)}]"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """
    Install the ReportTracker handler on the root logger.

    Level defaults to INFO in production and DEBUG elsewhere; format
    defaults to JSON in production. Only a handler installed by an
    earlier call is replaced, so calling this once per ``create_app()``
    leaves foreign handlers (pytest's, gunicorn's) alone.
    """
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    level_name = (app.config.get("LOG_LEVEL") or ("INFO" if is_prod else "DEBUG")).upper()
    level = getattr(logging, level_name, logging.INFO)
    fmt = (app.config.get("LOG_FORMAT") or ("json" if is_prod else "readable")).lower()

    if fmt == "json":
        formatter = JSONFormatter()
    else:
        formatter = ReadableFormatter(color=sys.stderr.isatty())

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(formatter)
    handler.setLevel(level)
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    for old in [h for h in root.handlers if h.get_name() == _HANDLER_NAME]:
        root.removeHandler(old)
    root.addHandler(handler)
    root.setLevel(level)

    for noisy in ("werkzeug", "sqlalchemy.engine", "flask_limiter"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    app.logger.setLevel(level)

    if not is_testing:
        app.logger.info("Logging configured: level=%s format=%s", level_name, fmt)
    return handler
