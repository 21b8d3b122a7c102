"""
Process logging setup.

LoggingConfig() installs a single root handler using the configured level and
format (plain text or one JSON object per line). Modules keep using
logging.getLogger(__name__); get_logger() is a shortcut that also makes sure
logging is configured.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from app.config import Settings, get_settings

TEXT_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"

# Extra fields the persistence layer and pipeline attach to records.
_EXTRA_FIELDS = ("table", "attempt", "event_id", "event_type", "conversation_key")


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        for field in _EXTRA_FIELDS:
            if hasattr(record, field):
                entry[field] = getattr(record, field)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class LoggingConfig:
    _configured = False

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self.configure()

    def configure(self) -> None:
        if LoggingConfig._configured:
            return
        level = getattr(logging, self.settings.log_level.upper(), logging.INFO)
        handler = logging.StreamHandler()
        if self.settings.log_format.lower() == "json":
            handler.setFormatter(JsonFormatter())
        else:
            handler.setFormatter(
                logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
            )
        root = logging.getLogger()
        root.handlers = [handler]
        root.setLevel(level)
        # SQL echo is noisy at INFO
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
        LoggingConfig._configured = True


def get_logger(name: str) -> logging.Logger:
    LoggingConfig()
    return logging.getLogger(name)
