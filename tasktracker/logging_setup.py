from __future__ import annotations

import json
import logging
from datetime import datetime, UTC
from typing import Mapping

from tasktracker import config
from tasktracker.middlewares import principal_ctx_var, request_id_ctx_var, trace_ctx_var

TRACE_FIELD = "logging.googleapis.com/trace"


class JsonLogFormatter(logging.Formatter):
    """Render log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = request_id_ctx_var.get()
        if request_id:
            payload["request_id"] = request_id
        principal = principal_ctx_var.get()
        if principal:
            payload["principal"] = principal
        trace = trace_ctx_var.get()
        if trace:
            payload[TRACE_FIELD] = trace
        extra = getattr(record, "extra_data", None)
        if isinstance(extra, Mapping):
            payload.update(extra)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"), default=str)


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    handler = logging.StreamHandler()
    if (fmt or config.LOG_FORMAT) == "json":
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logging.root.handlers = [handler]
    logging.root.setLevel(level or config.LOG_LEVEL)
    if config.SQL_ECHO:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
