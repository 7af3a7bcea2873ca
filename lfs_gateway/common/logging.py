"""Logging setup for the gateway.

Records carry structured fields in ``extra={"extra": {...}}``. The JSON
formatter merges them into the emitted object and blanks out credential
fields, since the gateway handles callers' S3 secrets on every request.
"""

import json
import logging
from datetime import datetime, timezone
from logging.config import dictConfig
from typing import Any

LOG_FORMATS = ("json", "plain")

REDACTED_FIELDS = frozenset(
    {"authorization", "password", "secret_access_key", "session_token", "href"}
)

PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str = "INFO", *, fmt: str = "json") -> None:
    """Route every logger through one console handler.

    ``lfs.startup`` always logs plain text so the boot banner stays readable.
    """
    if fmt not in LOG_FORMATS:
        raise ValueError(f"Unknown log format: {fmt}")

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {"()": JsonFormatter},
                "plain": {"format": PLAIN_FORMAT},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": fmt,
                },
                "banner": {
                    "class": "logging.StreamHandler",
                    "formatter": "plain",
                },
            },
            "root": {"level": level, "handlers": ["console"]},
            "loggers": {
                "lfs.startup": {
                    "level": "INFO",
                    "handlers": ["banner"],
                    "propagate": False,
                },
                # botocore is chatty at INFO about credential lookups
                "botocore": {"level": "WARNING"},
            },
        }
    )


def _redact(fields: dict[str, Any]) -> dict[str, Any]:
    return {
        key: "***" if key.lower() in REDACTED_FIELDS else value
        for key, value in fields.items()
    }


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "time": created.isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        fields = getattr(record, "extra", None)
        if isinstance(fields, dict):
            payload.update(_redact(fields))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)
