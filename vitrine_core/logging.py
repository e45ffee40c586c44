import json
import logging
import os
from datetime import datetime, timezone
from typing import Any

# Record attributes copied into the JSON line when a call site passes them
# through ``extra=``.
EXTRA_FIELDS = (
    "service",
    "env",
    "version",
    "request_id",
    "correlation_id",
    "operation",
    "modality",
    "media_id",
    "bucket",
    "object_name",
    "storage_path",
    "content_type",
    "size_bytes",
    "stage",
    "progress",
    "variant",
    "variants",
    "status",
    "duration_ms",
    "work_order_id",
    "source_request_id",
    "error_code",
    "error_message",
)

_HANDLER_NAME = "vitrine-json"


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in EXTRA_FIELDS:
            value = record.__dict__.get(key)
            if value is not None:
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


class ServiceContextFilter(logging.Filter):
    def __init__(self, service: str, env: str | None, version: str | None) -> None:
        super().__init__()
        self.context = {"service": service, "env": env, "version": version}

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in self.context.items():
            if record.__dict__.get(key) is None:
                setattr(record, key, value)
        return True


def configure_logging(
    service: str,
    env: str | None = None,
    version: str | None = None,
) -> None:
    """Install the JSON handler on the root logger, replacing an earlier one."""
    root = logging.getLogger()
    root.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())
    for handler in list(root.handlers):
        if handler.get_name() == _HANDLER_NAME:
            root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(JsonFormatter())
    handler.addFilter(ServiceContextFilter(service, env, version))
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
