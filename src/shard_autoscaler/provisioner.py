"""Idempotent provisioning of per-stream latency alarms.

For every MANAGED (provisioned) stream, one alarm exists per threshold
bucket. Alarms are only ever created: an alarm that already exists under the
expected name is left untouched, even if its configuration has drifted.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from botocore.exceptions import BotoCoreError, ClientError

from .clients import AlarmAdmin, ResourceAdmin
from .exceptions import ValidationError
from .ladder import DEFAULT_LADDER
from .models import AlarmDefinition, BucketLadder, CapacityMode, ThresholdBucket
from .naming import encode_alarm_name
from .structured_log import StructuredLogger

logger = StructuredLogger(__name__)

# Errors treated as transient control-plane failures
CONTROL_PLANE_ERRORS = (ClientError, BotoCoreError)


@dataclass
class ProvisionResult:
    """Result of provisioning alarms for one stream."""

    stream_name: str
    mode: CapacityMode
    created: list[str] = field(default_factory=list)
    existing: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def skipped(self) -> bool:
        """True when the stream was not eligible (mode was not MANAGED)."""
        return self.mode is not CapacityMode.MANAGED


@dataclass
class SweepResult:
    """Result of provisioning alarms across the stream inventory."""

    results: list[ProvisionResult] = field(default_factory=list)

    @property
    def streams_processed(self) -> int:
        return len(self.results)

    @property
    def alarms_created(self) -> int:
        return sum(len(r.created) for r in self.results)

    @property
    def errors(self) -> list[str]:
        return [e for r in self.results for e in r.errors]


class AlarmProvisioner:
    """
    Ensures every MANAGED stream has one alarm per threshold bucket.

    Example:
        provisioner = AlarmProvisioner(
            alarms=CloudWatchAlarmAdmin(),
            resources=KinesisResourceAdmin(),
            topic_arn="arn:aws:sns:us-east-1:123456789012:shard-autoscaler",
        )
        provisioner.ensure_alarms("orders-stream")

    Args:
        alarms: Alarm existence/creation capability
        resources: Stream inventory and capacity capability
        topic_arn: Notification target for every alarm created
        ladder: Threshold buckets (default: five-bucket ladder)
        metric_name: Latency metric the alarms watch
        evaluation_periods: Consecutive breaching periods before firing
        period_seconds: Metric period
    """

    def __init__(
        self,
        alarms: AlarmAdmin,
        resources: ResourceAdmin,
        topic_arn: str,
        ladder: BucketLadder = DEFAULT_LADDER,
        metric_name: str = "GetRecords.Latency",
        evaluation_periods: int = 3,
        period_seconds: int = 60,
    ) -> None:
        self._alarms = alarms
        self._resources = resources
        self._topic_arn = topic_arn
        self._ladder = ladder
        self._metric_name = metric_name
        self._evaluation_periods = evaluation_periods
        self._period_seconds = period_seconds

    def alarm_definition(self, stream_name: str, bucket: ThresholdBucket) -> AlarmDefinition:
        """Build the alarm for one (stream, bucket) pair."""
        return AlarmDefinition(
            name=encode_alarm_name(stream_name, bucket.label),
            stream_name=stream_name,
            bucket=bucket,
            action_arns=(self._topic_arn,) if self._topic_arn else (),
            metric_name=self._metric_name,
            period_seconds=self._period_seconds,
            evaluation_periods=self._evaluation_periods,
        )

    def ensure_alarms(self, stream_name: str) -> ProvisionResult:
        """
        Create any missing bucket alarms for a stream.

        Never raises for control-plane failures: a failed mode query skips
        the stream, a failed existence check or creation skips that bucket.
        Both are logged and retried by the next sweep.

        Args:
            stream_name: Name of the stream

        Returns:
            ProvisionResult listing created and already-existing alarms
        """
        try:
            mode = self._resources.get_capacity_mode(stream_name)
        except CONTROL_PLANE_ERRORS as e:
            logger.warning(
                "Capacity mode query failed, skipping stream",
                stream_name=stream_name,
                error=str(e),
            )
            return ProvisionResult(
                stream_name=stream_name,
                mode=CapacityMode.UNKNOWN,
                errors=[f"describe {stream_name}: {e}"],
            )

        result = ProvisionResult(stream_name=stream_name, mode=mode)
        if mode is not CapacityMode.MANAGED:
            logger.info(
                "Stream not in managed capacity mode, skipping",
                stream_name=stream_name,
                mode=mode.value,
            )
            return result

        for bucket in self._ladder:
            self._ensure_bucket_alarm(stream_name, bucket, result)

        logger.info(
            "Alarms ensured",
            stream_name=stream_name,
            created=len(result.created),
            existing=len(result.existing),
            error_count=len(result.errors),
        )
        return result

    def _ensure_bucket_alarm(
        self,
        stream_name: str,
        bucket: ThresholdBucket,
        result: ProvisionResult,
    ) -> None:
        try:
            alarm = self.alarm_definition(stream_name, bucket)
        except ValidationError as e:
            logger.warning(
                "Alarm name rejected",
                stream_name=stream_name,
                bucket_label=bucket.label,
                error=str(e),
            )
            result.errors.append(f"name {stream_name}/{bucket.label}: {e}")
            return

        try:
            exists = self._alarms.alarm_exists(alarm.name)
        except CONTROL_PLANE_ERRORS as e:
            logger.warning(
                "Alarm existence check failed",
                stream_name=stream_name,
                alarm_name=alarm.name,
                error=str(e),
            )
            result.errors.append(f"check {alarm.name}: {e}")
            return

        if exists:
            logger.debug("Alarm already exists", alarm_name=alarm.name)
            result.existing.append(alarm.name)
            return

        try:
            self._alarms.create_alarm(alarm)
        except CONTROL_PLANE_ERRORS as e:
            logger.warning(
                "Alarm creation failed",
                stream_name=stream_name,
                alarm_name=alarm.name,
                error=str(e),
            )
            result.errors.append(f"create {alarm.name}: {e}")
            return

        logger.info(
            "Alarm created",
            stream_name=stream_name,
            alarm_name=alarm.name,
            target_capacity=bucket.target_capacity,
        )
        result.created.append(alarm.name)

    def sweep(self) -> SweepResult:
        """
        Ensure alarms for every stream in the inventory.

        A failure listing the inventory propagates; per-stream failures do not.
        """
        sweep = SweepResult()
        for stream_name in self._resources.list_stream_names():
            sweep.results.append(self.ensure_alarms(stream_name))
        return sweep
