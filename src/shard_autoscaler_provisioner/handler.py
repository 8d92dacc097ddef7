"""Lambda handler for the alarm provisioner.

Handles two event types:
1. Stream creation (CloudTrail ``CreateStream`` via EventBridge): provisions
   alarms for the new stream only
2. Anything else, including the daily scheduled event: sweeps every stream
"""

from __future__ import annotations

import time
from typing import Any

from shard_autoscaler.clients import CloudWatchAlarmAdmin, KinesisResourceAdmin
from shard_autoscaler.config import ScalerSettings
from shard_autoscaler.provisioner import AlarmProvisioner
from shard_autoscaler.structured_log import StructuredLogger

logger = StructuredLogger(__name__)

KINESIS_EVENT_SOURCE = "kinesis.amazonaws.com"
CREATE_STREAM_EVENT = "CreateStream"

_provisioner: AlarmProvisioner | None = None


def build_provisioner(settings: ScalerSettings | None = None) -> AlarmProvisioner:
    """Create an AlarmProvisioner wired to CloudWatch and Kinesis from settings."""
    if settings is None:
        settings = ScalerSettings.from_env()
    if not settings.alarm_topic_arn:
        logger.warning("ALARM_TOPIC_ARN not set, alarms will have no actions")
    return AlarmProvisioner(
        alarms=CloudWatchAlarmAdmin(region=settings.region, endpoint_url=settings.endpoint_url),
        resources=KinesisResourceAdmin(
            region=settings.region,
            endpoint_url=settings.endpoint_url,
        ),
        topic_arn=settings.alarm_topic_arn,
        ladder=settings.ladder,
        metric_name=settings.latency_metric_name,
        evaluation_periods=settings.evaluation_periods,
        period_seconds=settings.metric_period,
    )


def get_provisioner() -> AlarmProvisioner:
    """Return the provisioner for this execution environment, creating it once."""
    global _provisioner
    if _provisioner is None:
        _provisioner = build_provisioner()
    return _provisioner


def created_stream_name(event: dict[str, Any]) -> str | None:
    """
    Return the new stream's name if the event reports a stream creation.

    Accepts the EventBridge envelope (fields under ``detail``) as well as a
    bare CloudTrail record.
    """
    detail = event.get("detail")
    record = detail if isinstance(detail, dict) else event

    if record.get("eventSource") != KINESIS_EVENT_SOURCE:
        return None
    if record.get("eventName") != CREATE_STREAM_EVENT:
        return None

    params = record.get("requestParameters") or {}
    stream_name = params.get("streamName")
    if not isinstance(stream_name, str) or not stream_name:
        return None
    return stream_name


def on_event(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Lambda entry point."""
    start_time = time.perf_counter()
    request_id = getattr(context, "aws_request_id", "unknown")
    provisioner = get_provisioner()

    stream_name = created_stream_name(event) if isinstance(event, dict) else None
    if stream_name is not None:
        logger.info(
            "Stream creation detected",
            request_id=request_id,
            stream_name=stream_name,
        )
        results = [provisioner.ensure_alarms(stream_name)]
        trigger = "create"
    else:
        logger.info("Sweeping all streams", request_id=request_id)
        results = provisioner.sweep().results
        trigger = "sweep"

    errors = [e for r in results for e in r.errors]
    processing_time_ms = (time.perf_counter() - start_time) * 1000
    logger.info(
        "Lambda invocation completed",
        request_id=request_id,
        trigger=trigger,
        streams=len(results),
        alarms_created=sum(len(r.created) for r in results),
        error_count=len(errors),
        processing_time_ms=round(processing_time_ms, 2),
    )

    return {
        "status": "provisioned",
        "trigger": trigger,
        "streams": [
            {
                "stream_name": r.stream_name,
                "mode": r.mode.value,
                "created": r.created,
                "existing": r.existing,
            }
            for r in results
        ],
        "errors": errors,
    }
