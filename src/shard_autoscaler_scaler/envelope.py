"""Unwrapping of alarm notifications from their transport envelopes.

Supported shapes:

1. SNS records: ``{"Records": [{"Sns": {"Message": ...}}]}``
2. SQS records: ``{"Records": [{"body": ...}]}``; the body may itself be an
   SNS notification (SNS-to-SQS subscription)
3. EventBridge ``CloudWatch Alarm State Change``: ``{"detail": {"alarmName": ...}}``
4. A bare alarm message: ``{"AlarmName": ...}``

A message is either CloudWatch's JSON alarm payload (with ``AlarmName``) or
a raw string taken as the alarm name.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from shard_autoscaler.naming import decode_alarm_description

ALARM_STATE = "ALARM"


@dataclass(frozen=True)
class AlarmNotification:
    """
    One alarm identity extracted from a notification.

    Attributes:
        alarm_name: Alarm name (possibly a raw, unrecognized string)
        state: New alarm state, or None when the transport did not say
        identity: Structured ``(stream_name, bucket_label)`` if present
    """

    alarm_name: str
    state: str | None = None
    identity: tuple[str, str] | None = None

    @property
    def is_alarm(self) -> bool:
        """False only for explicit non-ALARM transitions (OK, INSUFFICIENT_DATA)."""
        return self.state is None or self.state == ALARM_STATE


def parse_message(message: Any) -> AlarmNotification | None:
    """
    Parse one message body into a notification.

    Returns None for empty messages.
    """
    if isinstance(message, dict):
        return _from_alarm_payload(message)
    if not isinstance(message, str):
        return None

    text = message.strip()
    if not text:
        return None
    if text.startswith("{"):
        try:
            payload = json.loads(text)
        except ValueError:
            return AlarmNotification(alarm_name=text)
        if isinstance(payload, dict):
            # SNS notification delivered through SQS
            if payload.get("Type") == "Notification" and "Message" in payload:
                return parse_message(payload["Message"])
            return _from_alarm_payload(payload)
    return AlarmNotification(alarm_name=text)


def _from_alarm_payload(payload: dict[str, Any]) -> AlarmNotification | None:
    alarm_name = payload.get("AlarmName")
    if not isinstance(alarm_name, str) or not alarm_name:
        return None
    return AlarmNotification(
        alarm_name=alarm_name,
        state=payload.get("NewStateValue"),
        identity=decode_alarm_description(payload.get("AlarmDescription")),
    )


def _from_eventbridge(event: dict[str, Any]) -> AlarmNotification | None:
    detail = event.get("detail") or {}
    alarm_name = detail.get("alarmName")
    if not isinstance(alarm_name, str) or not alarm_name:
        return None
    state = (detail.get("state") or {}).get("value")
    description = (detail.get("configuration") or {}).get("description")
    return AlarmNotification(
        alarm_name=alarm_name,
        state=state,
        identity=decode_alarm_description(description),
    )


def extract_notifications(event: Any) -> list[AlarmNotification]:
    """
    Extract every alarm notification carried by a Lambda event.

    Records that cannot be parsed are dropped; the alarm channel may carry
    messages that are not ours.
    """
    if isinstance(event, str):
        parsed = parse_message(event)
        return [parsed] if parsed else []
    if not isinstance(event, dict):
        return []

    if "Records" in event:
        notifications: list[AlarmNotification] = []
        for record in event.get("Records") or []:
            if not isinstance(record, dict):
                continue
            if "Sns" in record:
                message = (record.get("Sns") or {}).get("Message")
            else:
                message = record.get("body")
            parsed = parse_message(message)
            if parsed:
                notifications.append(parsed)
        return notifications

    if event.get("detail-type") == "CloudWatch Alarm State Change":
        parsed = _from_eventbridge(event)
        return [parsed] if parsed else []

    parsed = _from_alarm_payload(event)
    return [parsed] if parsed else []
