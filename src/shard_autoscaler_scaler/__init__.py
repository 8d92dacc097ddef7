"""Lambda scaler reacting to latency alarm notifications."""

from .envelope import AlarmNotification, extract_notifications
from .handler import handler

__all__ = ["AlarmNotification", "extract_notifications", "handler"]
