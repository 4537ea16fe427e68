from __future__ import annotations

import logging
import os
import time
from logging.config import dictConfig

CONTEXT_KEYS = (
    "op",
    "sensor_id",
    "state",
    "destination",
    "queue_size",
    "points",
    "listen_addr",
    "reason",
    "error",
)

_HANDLER_NAME = "collector"

_configured = False


class ContextualFormatter(logging.Formatter):
    """Appends ``key=value`` pairs for the known ``extra`` keys present on a record.

    Timestamps are rendered in UTC. Values containing whitespace, such as
    InfluxDB error details, are quoted so each pair stays unambiguous.
    """

    converter = time.gmtime

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context_parts: list[str] = []
        for key in CONTEXT_KEYS:
            value = getattr(record, key, None)
            if value is None:
                continue
            text = str(value)
            if not text or any(char.isspace() for char in text):
                text = repr(text)
            context_parts.append(f"{key}={text}")
        if context_parts:
            return f"{message} | {' '.join(context_parts)}"
        return message


def configure_logging(level: str | int | None = None) -> None:
    """Configure application-wide logging with contextual formatting.

    Later calls only change the level, so the CLI can apply the configured
    level after the app module has already set logging up.
    """
    global _configured
    if _configured:
        if level is not None:
            logging.getLogger().setLevel(level)
            for handler in logging.getLogger().handlers:
                if handler.get_name() == _HANDLER_NAME:
                    handler.setLevel(level)
        return

    log_level = level if level is not None else (os.getenv("LOG_LEVEL") or "INFO").upper()

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "contextual": {
                    "()": "logging_config.ContextualFormatter",
                    "fmt": "%(asctime)sZ | %(levelname)s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                }
            },
            "handlers": {
                _HANDLER_NAME: {
                    "class": "logging.StreamHandler",
                    "level": log_level,
                    "formatter": "contextual",
                }
            },
            "root": {"handlers": [_HANDLER_NAME], "level": log_level},
        }
    )

    _configured = True
