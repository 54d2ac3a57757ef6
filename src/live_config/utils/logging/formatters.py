"""Log formatters."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

_FORMATS = {
    "standard": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    "detailed": "%(asctime)s - %(name)s - %(levelname)s - %(threadName)s - %(funcName)s:%(lineno)d - %(message)s",
    "minimal": "%(levelname)s: %(message)s",
}


class CustomFormatter(logging.Formatter):
    """Text formatter with named format styles."""

    def __init__(self, format_style: str = "standard"):
        super().__init__(_FORMATS.get(format_style, _FORMATS["standard"]))
        self.format_style = format_style


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "thread": record.threadName,
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)
