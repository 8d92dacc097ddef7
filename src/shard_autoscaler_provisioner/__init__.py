"""Lambda provisioner for per-stream latency alarms."""

from .handler import created_stream_name, on_event

__all__ = ["created_stream_name", "on_event"]
