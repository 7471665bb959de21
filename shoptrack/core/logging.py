from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Mapping

from ..middlewares import request_id_ctx_var
from .config import settings


class JsonLogFormatter(logging.Formatter):
    """Render log records as JSON for easier ingestion."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = request_id_ctx_var.get()
        if request_id:
            payload["request_id"] = request_id
        extra = getattr(record, "extra_data", None)
        if isinstance(extra, Mapping):
            payload.update(extra)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"), default=str)


class PlainLogFormatter(logging.Formatter):
    """Human readable variant used when ``LOG_JSON`` is disabled."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)-7s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extra = getattr(record, "extra_data", None)
        if isinstance(extra, Mapping) and extra:
            pairs = " ".join(f"{key}={value}" for key, value in extra.items())
            line = f"{line} [{pairs}]"
        request_id = request_id_ctx_var.get()
        if request_id:
            line = f"{line} request_id={request_id}"
        return line


def configure_logging(level: str | None = None, *, json_output: bool | None = None) -> None:
    use_json = settings.LOG_JSON if json_output is None else json_output
    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter() if use_json else PlainLogFormatter())
    logging.root.handlers = [handler]
    logging.root.setLevel((level or settings.LOG_LEVEL).upper())
