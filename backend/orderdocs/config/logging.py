"""Structured logging configuration.

Provides JSON-formatted logs with optional request_id and trace correlation fields.
structlog handles the event-style loggers used by `trace_operation`; everything
else goes through stdlib logging with `JsonFormatter`.
"""
from __future__ import annotations

import json
import logging as _logging
import os
import sys
import time
from typing import Any, Dict, Optional

import structlog

DEFAULT_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Logger names raised to DEBUG by the per-subsystem debug flags
DEBUG_LOGGERS = {
    "webhook_events": "orderdocs.services.webhook_service",
    "document_generation": "orderdocs.services",
}

class JsonFormatter(_logging.Formatter):
    def format(self, record) -> str:  # noqa: D401 - record is LogRecord
        base: Dict[str, Any] = {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for attr in ("request_id", "trace_id", "span_id", "order_id", "document_id"):
            if hasattr(record, attr):
                base[attr] = getattr(record, attr)
        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(base, ensure_ascii=False, default=str)

def configure_logging(debug: Optional[Any] = None, level: str = DEFAULT_LEVEL) -> None:
    """Configure root logging for application startup.

    `debug` is the settings' DebugSettings section; enabled flags drop the
    matching subsystem logger to DEBUG.
    """
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    handler = _logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    root = _logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    if debug is not None:
        for flag, logger_name in DEBUG_LOGGERS.items():
            if getattr(debug, flag, False):
                _logging.getLogger(logger_name).setLevel(_logging.DEBUG)


__all__ = ["JsonFormatter", "configure_logging", "DEBUG_LOGGERS"]
