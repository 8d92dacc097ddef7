"""Lambda handler for alarm notifications (SNS, SQS or EventBridge)."""

from __future__ import annotations

import time
from typing import Any

from shard_autoscaler.clients import KinesisResourceAdmin
from shard_autoscaler.config import ScalerSettings
from shard_autoscaler.convergence import ConvergenceEngine
from shard_autoscaler.structured_log import StructuredLogger

from .envelope import extract_notifications

logger = StructuredLogger(__name__)

_engine: ConvergenceEngine | None = None


def build_engine(settings: ScalerSettings | None = None) -> ConvergenceEngine:
    """Create a ConvergenceEngine wired to Kinesis from settings."""
    if settings is None:
        settings = ScalerSettings.from_env()
    return ConvergenceEngine(
        resources=KinesisResourceAdmin(
            region=settings.region,
            endpoint_url=settings.endpoint_url,
        ),
        ladder=settings.ladder,
        poll_interval=settings.ready_poll_interval,
        step_pause=settings.step_pause,
        ready_timeout=settings.ready_timeout,
    )


def get_engine() -> ConvergenceEngine:
    """Return the engine for this execution environment, creating it once."""
    global _engine
    if _engine is None:
        _engine = build_engine()
    return _engine


def handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """
    Lambda entry point.

    Each notification in the event is reconciled in turn. Unrecognized
    alarms and non-ALARM transitions are skipped. A failed scaling operation
    propagates so Lambda's failure handling (retries, DLQ) applies.

    Args:
        event: SNS, SQS or EventBridge event carrying alarm notifications
        context: Lambda context

    Returns:
        Summary of reconcile outcomes
    """
    start_time = time.perf_counter()
    request_id = getattr(context, "aws_request_id", "unknown")
    notifications = extract_notifications(event)

    logger.info(
        "Lambda invocation started",
        request_id=request_id,
        function_name=getattr(context, "function_name", "unknown"),
        notification_count=len(notifications),
    )

    engine = get_engine()
    results = []
    skipped = 0
    for notification in notifications:
        if not notification.is_alarm:
            logger.info(
                "Alarm transition is not ALARM, skipping",
                alarm_name=notification.alarm_name,
                state=notification.state,
            )
            skipped += 1
            continue
        result = engine.reconcile(notification.alarm_name, notification.identity)
        results.append(result.to_dict())

    processing_time_ms = (time.perf_counter() - start_time) * 1000
    logger.info(
        "Lambda invocation completed",
        request_id=request_id,
        reconciled=len(results),
        skipped=skipped,
        processing_time_ms=round(processing_time_ms, 2),
    )

    return {
        "statusCode": 200,
        "body": {
            "reconciled": results,
            "skipped": skipped,
        },
    }
