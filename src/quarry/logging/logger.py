"""Structured logging for quarry.

quarry is a library: every module logs below the ``quarry`` logger, which
carries a ``NullHandler`` until the application opts in with
``setup_logging``. Records are rendered as JSON lines carrying the
statement context (``db.statement``, ``data_source``...) and the current
OpenTelemetry trace and span ids.
"""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import IO, Any, Dict, Optional, Set

from opentelemetry import trace

ROOT_LOGGER_NAME = "quarry"

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

logging.getLogger(ROOT_LOGGER_NAME).addHandler(logging.NullHandler())


def _standard_record_keys() -> Set[str]:
    """Attribute names every ``LogRecord`` has, so only extras are emitted."""
    keys = set(logging.makeLogRecord({}).__dict__)
    keys.update({"asctime", "message"})
    return keys


_STANDARD_RECORD_KEYS = _standard_record_keys()


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a quarry module.

    Names outside the package are nested below ``quarry`` so that
    ``setup_logging`` reaches them too.
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(f"{ROOT_LOGGER_NAME}."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


class CustomJsonFormatter(logging.Formatter):
    """Render a record and its ``extra`` fields as one JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (key, value) for key, value in record.__dict__.items() if key not in _STANDARD_RECORD_KEYS and key not in payload
        )

        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            payload["trace_id"] = format(span_context.trace_id, "032x")
            payload["span_id"] = format(span_context.span_id, "016x")

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def setup_logging(level: str = "INFO", json_output: bool = True, stream: Optional[IO[str]] = None) -> None:
    """Attach a console handler to the ``quarry`` logger.

    Only the library's own logger is configured; the application's root
    logger and its handlers are left alone.

    Args:
        level: Log level name for quarry's records (DEBUG, INFO, WARNING...)
        json_output: Emit JSON lines; plain text when False
        stream: Stream to write to, stdout when omitted
    """
    handler: Dict[str, Any] = {
        "class": "logging.StreamHandler",
        "formatter": "quarry_json" if json_output else "quarry_text",
        "filters": ["quarry_context"],
    }
    if stream is None:
        handler["stream"] = "ext://sys.stdout"
    else:
        handler["stream"] = stream

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "quarry_json": {"()": CustomJsonFormatter},
                "quarry_text": {"format": TEXT_FORMAT},
            },
            "filters": {
                "quarry_context": {"()": "quarry.logging.filters.ContextFilter"},
            },
            "handlers": {"quarry_console": handler},
            "loggers": {
                ROOT_LOGGER_NAME: {
                    "level": level.upper(),
                    "handlers": ["quarry_console"],
                    "propagate": False,
                },
            },
        }
    )
