"""
Logging setup for GradTrack.

Every record passes through ``RequestContextFilter``, which stamps the
current request id and caller role when a request is active. Production
emits one JSON object per line; development and tests get a compact
coloured line. The level comes from the LOG_LEVEL setting.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Attributes lifted from ``extra={...}`` into the JSON document
CONTEXT_FIELDS = (
    "request_id",
    "role",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
    "student_id",
    "template_id",
    "override_id",
    "updated_by",
)

_LEVEL_COLOURS = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[35m",
}
_RESET = "\033[0m"


class RequestContextFilter(logging.Filter):
    """Attach request_id and role from ``flask.g`` unless the caller set them."""

    def filter(self, record):
        if has_request_context():
            if getattr(record, "request_id", None) is None:
                record.request_id = getattr(g, "request_id", None)
            if getattr(record, "role", None) is None:
                record.role = getattr(g, "current_user_role", None)
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record):
        doc = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        doc.update(
            (field, getattr(record, field))
            for field in CONTEXT_FIELDS
            if getattr(record, field, None) is not None
        )
        if record.exc_info:
            doc["exception"] = self.formatException(record.exc_info)
        return json.dumps(doc, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL logger [rid]: message (12ms)``"""

    def format(self, record):
        colour = _LEVEL_COLOURS.get(record.levelno, "")
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        rid = getattr(record, "request_id", None)
        line = f"{colour}{stamp} {record.levelname:<8}{_RESET} {record.name}"
        if rid:
            line += f" [{rid[:8]}]"
        line += f": {record.getMessage()}"
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            line += f" ({duration:.0f}ms)"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _resolve_level(app, json_output):
    name = (app.config.get("LOG_LEVEL") or ("INFO" if json_output else "DEBUG")).upper()
    level = getattr(logging, name, None)
    return name, level if isinstance(level, int) else logging.INFO


def configure_logging(app):
    """Install a single stderr handler on the root logger.

    Existing root handlers are replaced so repeated ``create_app`` calls in
    tests do not duplicate output.
    """
    testing = app.config.get("TESTING", False)
    json_output = not app.config.get("DEBUG", False) and not testing
    level_name, level = _resolve_level(app, json_output)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if json_output else ReadableFormatter())
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)
    app.logger.setLevel(level)

    for chatty in ("werkzeug", "sqlalchemy.engine", "alembic"):
        logging.getLogger(chatty).setLevel(logging.WARNING)

    if not testing:
        app.logger.info("Logging ready (level=%s, json=%s)", level_name, json_output)
