from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Iterable, Sequence

from settings import get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

# Rendered as a bracketed prefix so every line of one connection lines up.
PEER_KEY = "peer"

READING_KEYS = (
    "command",
    "sensor_id",
    "timestamp",
    "value",
    "record_count",
    "reason",
)

_configured = False


class ContextualFormatter(logging.Formatter):
    """Render request context carried in ``extra`` around the log message.

    The connection peer, when present, is put in front of the message; the
    remaining known keys follow it as ``key=value`` pairs in a fixed order.
    """

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: str = "%",
        extra_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        self._extra_keys: Sequence[str] = tuple(
            READING_KEYS if extra_keys is None else extra_keys
        )

    def formatMessage(self, record: logging.LogRecord) -> str:
        peer = getattr(record, PEER_KEY, None)
        if peer is None:
            return super().formatMessage(record)
        message = record.message
        record.message = f"[{peer}] {message}"
        try:
            return super().formatMessage(record)
        finally:
            record.message = message

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        pairs = " ".join(
            f"{key}={getattr(record, key)}"
            for key in self._extra_keys
            if getattr(record, key, None) is not None
        )
        return f"{line} | {pairs}" if pairs else line


def configure_logging(level: str | int | None = None) -> None:
    """Send server logs to stderr once per process.

    ``asyncio`` is held at WARNING so dropped client connections do not flood
    the output at DEBUG.
    """
    global _configured
    if _configured:
        return

    log_level = level if level is not None else get_settings().log_level

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "session": {
                    "()": "logging_config.ContextualFormatter",
                    "fmt": LOG_FORMAT,
                    "datefmt": LOG_DATE_FORMAT,
                    "extra_keys": list(READING_KEYS),
                }
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": "session",
                }
            },
            "loggers": {"asyncio": {"level": "WARNING"}},
            "root": {"handlers": ["stderr"], "level": log_level},
        }
    )

    _configured = True
