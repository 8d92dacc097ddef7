"""Alarm naming utilities.

An alarm's name is derived from the stream name and the bucket label, so
re-deriving it always yields the same identity. The name is the idempotency
key for provisioning and the input the convergence engine decodes:

    {stream_name}-{bucket_label}        e.g. orders-stream-LatencyRange8-800Plus

Decoding splits on the *last* occurrence of ``SEPARATOR``, so stream names
that themselves contain the separator still decode to the right stream.
Alarms also carry a structured identity in their description, which is
preferred over name decoding when the notification delivers it.
"""

import json
import re
from typing import Any

from .exceptions import ValidationError

SEPARATOR = "-LatencyRange"
"""Token between the stream name and the bucket label's ordinal part."""

LABEL_PREFIX = "LatencyRange"
"""Every bucket label starts with this prefix."""

# Kinesis stream name rules: 1-128 chars of [a-zA-Z0-9_.-]
STREAM_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_.-]{1,128}$")

# CloudWatch alarm names are limited to 255 characters
MAX_ALARM_NAME_LENGTH = 255


def validate_stream_name(name: str) -> None:
    """
    Validate a Kinesis stream name.

    Args:
        name: Stream name to validate

    Raises:
        ValidationError: If the name is empty or contains invalid characters
    """
    if not name:
        raise ValidationError("stream_name", name, "Name cannot be empty")
    if not STREAM_NAME_PATTERN.match(name):
        raise ValidationError(
            "stream_name",
            name,
            "Must be 1-128 characters of letters, digits, underscores, periods and hyphens.",
        )


def validate_bucket_label(label: str) -> None:
    """
    Validate a bucket label against the alarm naming scheme.

    Raises:
        ValidationError: If the label lacks the prefix or repeats the separator
    """
    if not label.startswith(LABEL_PREFIX) or label == LABEL_PREFIX:
        raise ValidationError(
            "bucket_label", label, f"Bucket labels must start with {LABEL_PREFIX!r}"
        )
    if SEPARATOR in label[len(LABEL_PREFIX) :]:
        raise ValidationError("bucket_label", label, f"Label must not repeat {SEPARATOR!r}")


def encode_alarm_name(stream_name: str, bucket_label: str) -> str:
    """
    Build the deterministic alarm name for a (stream, bucket) pair.

    Raises:
        ValidationError: If the stream name or bucket label is invalid
    """
    validate_stream_name(stream_name)
    validate_bucket_label(bucket_label)
    name = f"{stream_name}-{bucket_label}"
    if len(name) > MAX_ALARM_NAME_LENGTH:
        raise ValidationError("alarm_name", name, "Exceeds CloudWatch 255 character limit")
    return name


def decode_alarm_name(alarm_name: str) -> tuple[str, str] | None:
    """
    Split an alarm name into ``(stream_name, bucket_label)``.

    Returns None when the name does not follow the naming scheme (fewer
    than two tokens). The label is not checked against any ladder here.

    Example:
        >>> decode_alarm_name("orders-stream-LatencyRange8-800Plus")
        ('orders-stream', 'LatencyRange8-800Plus')
        >>> decode_alarm_name("unrecognized-alarm-xyz") is None
        True
    """
    stream_name, sep, suffix = alarm_name.rpartition(SEPARATOR)
    if not sep or not stream_name or not suffix:
        return None
    return stream_name, LABEL_PREFIX + suffix


def encode_alarm_description(stream_name: str, bucket_label: str) -> str:
    """Structured identity stored in the alarm description."""
    return json.dumps({"stream_name": stream_name, "bucket": bucket_label}, sort_keys=True)


def decode_alarm_description(description: Any) -> tuple[str, str] | None:
    """
    Read the structured identity from an alarm description.

    Returns None for descriptions that are not this library's JSON identity
    (free text, other tools' alarms, missing fields).
    """
    if not isinstance(description, str) or not description.startswith("{"):
        return None
    try:
        data = json.loads(description)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    stream_name = data.get("stream_name")
    bucket_label = data.get("bucket")
    if not isinstance(stream_name, str) or not isinstance(bucket_label, str):
        return None
    if not stream_name or not bucket_label:
        return None
    return stream_name, bucket_label
