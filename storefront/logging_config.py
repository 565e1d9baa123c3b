"""Logging configuration."""
import json
import logging
from datetime import datetime, timezone

from storefront.config import settings

_RESERVED = {
    "msg",
    "args",
    "levelname",
    "levelno",
    "name",
    "created",
    "msecs",
    "relativeCreated",
    "pathname",
    "filename",
    "module",
    "lineno",
    "funcName",
    "exc_info",
    "exc_text",
    "stack_info",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "message",
}


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    Base fields (time, level, name, message) are merged with any attributes
    passed through ``extra`` (e.g. event, cart_id, key).
    """

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _RESERVED or key.startswith("_"):
                continue
            if isinstance(value, (str, int, float, bool)) or value is None:
                payload[key] = value
            else:
                payload[key] = str(value)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def configure_logging(level: str = None, json_output: bool = None) -> None:
    """Configure the root logger once from settings."""
    level = (level or settings.log_level).upper()
    json_output = settings.log_json if json_output is None else json_output

    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
