"""JSON-formatted logging for CloudWatch Logs Insights.

Each entry is a single JSON object on stdout, which Lambda forwards to
CloudWatch Logs. ``LOG_LEVEL`` (default INFO) sets the minimum level.
"""

import json
import os
import traceback
from datetime import UTC, datetime
from typing import Any

LEVELS = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40}


class StructuredLogger:
    """JSON-formatted logger for CloudWatch Logs Insights."""

    def __init__(self, name: str, level: str | None = None):
        self._name = name
        self._level = level

    @property
    def threshold(self) -> int:
        level = (self._level or os.environ.get("LOG_LEVEL") or "INFO").upper()
        return LEVELS.get(level, LEVELS["INFO"])

    def _log(self, level: str, message: str, **extra: Any) -> None:
        if LEVELS[level] < self.threshold:
            return
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": level,
            "logger": self._name,
            "message": message,
            **extra,
        }
        print(json.dumps(log_entry, default=str))

    def debug(self, message: str, **extra: Any) -> None:
        self._log("DEBUG", message, **extra)

    def info(self, message: str, **extra: Any) -> None:
        self._log("INFO", message, **extra)

    def warning(self, message: str, exc_info: bool = False, **extra: Any) -> None:
        if exc_info:
            extra["exception"] = traceback.format_exc()
        self._log("WARNING", message, **extra)

    def error(self, message: str, exc_info: bool = False, **extra: Any) -> None:
        if exc_info:
            extra["exception"] = traceback.format_exc()
        self._log("ERROR", message, **extra)
