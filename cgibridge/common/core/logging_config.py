"""
Logging Configuration
JSON log lines for the CGI gateway.

Provides:
- CustomJsonFormatter: one JSON object per record, request-scoped fields included
- setup_logging: YAML dictConfig loader with environment variable substitution
"""

import json
import logging
import logging.config
import os
import string
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import yaml

# Attributes every LogRecord carries; anything else on a record came from `extra`.
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "taskName",
}


class CustomJsonFormatter(logging.Formatter):
    """
    JSON Formatter.

    Fields:
      - _time: ISO8601 timestamp (millisecond precision)
      - level: Log level
      - logger: Logger name (e.g. uvicorn.access, gateway.runner)
      - message: Log message
      - request_id: Request ID of the HTTP request being served
      - any `extra` passed to the logging call (pid, interpreter, latency_ms, ...)
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "_time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = self._request_id(record)
        if request_id:
            log_data["request_id"] = request_id

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith("_") or key in log_data:
                continue
            log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)

    @staticmethod
    def _request_id(record: logging.LogRecord) -> Optional[str]:
        # Explicit extra wins over the ambient request context.
        request_id = getattr(record, "request_id", None)
        if request_id:
            return request_id

        from .request_context import get_request_id

        return get_request_id()


def _load_config(config_path: str) -> Dict[str, Any]:
    with open(config_path, "r", encoding="utf-8") as f:
        # ${LOG_LEVEL}-style placeholders; unknown names are left as-is.
        template = string.Template(f.read())

    mapping = dict(os.environ)
    mapping.setdefault("LOG_LEVEL", "INFO")
    return yaml.safe_load(template.safe_substitute(mapping))


def setup_logging(config_path: str = "logging.yml"):
    """
    Load the YAML config, substitute environment variables, and initialize logging.

    Falls back to basicConfig at LOG_LEVEL when the file does not exist.
    """
    if not os.path.exists(config_path):
        logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
        return

    logging.config.dictConfig(_load_config(config_path))
