"""Control-plane capability sets and their boto3 implementations.

The provisioner and the convergence engine never create AWS clients
themselves. They receive an ``AlarmAdmin`` and/or a ``ResourceAdmin``,
which lets tests substitute doubles and lets the Lambda handlers share
one client per cold start.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any, Protocol, runtime_checkable

import boto3

from .ladder import EXPRESSION_ID, METRIC_ID, latency_expression
from .models import AlarmDefinition, CapacityMode, ReadinessState, StreamCapacity
from .naming import encode_alarm_description

KINESIS_NAMESPACE = "AWS/Kinesis"
UNIFORM_SCALING = "UNIFORM_SCALING"


@runtime_checkable
class AlarmAdmin(Protocol):
    """Existence lookup and creation of latency alarms."""

    def alarm_exists(self, alarm_name: str) -> bool:
        """Return True if an alarm with this exact name exists."""
        ...

    def create_alarm(self, alarm: AlarmDefinition) -> None:
        """Create the alarm. Only called for names that do not exist."""
        ...


@runtime_checkable
class ResourceAdmin(Protocol):
    """Stream inventory, capacity queries and capacity mutation."""

    def list_stream_names(self) -> Iterator[str]:
        """Iterate over every stream name in the account/region."""
        ...

    def get_capacity_mode(self, stream_name: str) -> CapacityMode:
        """Return the stream's capacity mode."""
        ...

    def describe_capacity(self, stream_name: str) -> StreamCapacity:
        """Return current shard count, ARN, status and mode by name."""
        ...

    def get_readiness(self, stream_arn: str) -> ReadinessState:
        """Return the stream's readiness state by ARN."""
        ...

    def update_shard_count(self, stream_arn: str, target_shard_count: int) -> None:
        """Request a uniform rescale to ``target_shard_count``."""
        ...


def _client_kwargs(region: str | None, endpoint_url: str | None) -> dict[str, Any]:
    kwargs: dict[str, Any] = {}
    if region:
        kwargs["region_name"] = region
    if endpoint_url:
        kwargs["endpoint_url"] = endpoint_url
    return kwargs


class CloudWatchAlarmAdmin:
    """
    ``AlarmAdmin`` backed by the CloudWatch API.

    Args:
        client: Optional boto3 CloudWatch client (injected for testing)
        region: AWS region (default: use boto3 defaults)
        endpoint_url: CloudWatch endpoint (for LocalStack)
    """

    def __init__(
        self,
        client: Any | None = None,
        region: str | None = None,
        endpoint_url: str | None = None,
    ) -> None:
        if client is None:
            client = boto3.client("cloudwatch", **_client_kwargs(region, endpoint_url))
        self._client = client

    def alarm_exists(self, alarm_name: str) -> bool:
        response = self._client.describe_alarms(
            AlarmNames=[alarm_name],
            AlarmTypes=["MetricAlarm"],
        )
        return any(a.get("AlarmName") == alarm_name for a in response.get("MetricAlarms", []))

    def create_alarm(self, alarm: AlarmDefinition) -> None:
        self._client.put_metric_alarm(**build_put_metric_alarm_request(alarm))


def build_put_metric_alarm_request(alarm: AlarmDefinition) -> dict[str, Any]:
    """
    Build the ``PutMetricAlarm`` parameters for an alarm definition.

    The alarm evaluates a metric-math expression that is 1 while average
    latency is inside the bucket, and fires once it has been >= 1 for every
    evaluated period. Missing data never breaches.
    """
    bucket = alarm.bucket
    return {
        "AlarmName": alarm.name,
        "AlarmDescription": encode_alarm_description(alarm.stream_name, bucket.label),
        "ActionsEnabled": True,
        "AlarmActions": list(alarm.action_arns),
        "EvaluationPeriods": alarm.evaluation_periods,
        "DatapointsToAlarm": alarm.datapoints_to_alarm,
        "Threshold": 1.0,
        "ComparisonOperator": "GreaterThanOrEqualToThreshold",
        "TreatMissingData": alarm.treat_missing_data,
        "Metrics": [
            {
                "Id": METRIC_ID,
                "MetricStat": {
                    "Metric": {
                        "Namespace": KINESIS_NAMESPACE,
                        "MetricName": alarm.metric_name,
                        "Dimensions": [{"Name": "StreamName", "Value": alarm.stream_name}],
                    },
                    "Period": alarm.period_seconds,
                    "Stat": "Average",
                },
                "ReturnData": False,
            },
            {
                "Id": EXPRESSION_ID,
                "Expression": latency_expression(bucket, METRIC_ID),
                "Label": bucket.label,
                "ReturnData": True,
            },
        ],
    }


class KinesisResourceAdmin:
    """
    ``ResourceAdmin`` backed by the Kinesis Data Streams API.

    Args:
        client: Optional boto3 Kinesis client (injected for testing)
        region: AWS region (default: use boto3 defaults)
        endpoint_url: Kinesis endpoint (for LocalStack)
    """

    def __init__(
        self,
        client: Any | None = None,
        region: str | None = None,
        endpoint_url: str | None = None,
    ) -> None:
        if client is None:
            client = boto3.client("kinesis", **_client_kwargs(region, endpoint_url))
        self._client = client

    def list_stream_names(self) -> Iterator[str]:
        paginator = self._client.get_paginator("list_streams")
        for page in paginator.paginate():
            yield from page.get("StreamNames", [])

    def _summary(self, **key: str) -> dict[str, Any]:
        response = self._client.describe_stream_summary(**key)
        summary: dict[str, Any] = response["StreamDescriptionSummary"]
        return summary

    def get_capacity_mode(self, stream_name: str) -> CapacityMode:
        summary = self._summary(StreamName=stream_name)
        # Streams created before on-demand existed report no mode details
        stream_mode = summary.get("StreamModeDetails", {}).get("StreamMode", "PROVISIONED")
        return CapacityMode.from_stream_mode(stream_mode)

    def describe_capacity(self, stream_name: str) -> StreamCapacity:
        summary = self._summary(StreamName=stream_name)
        stream_mode = summary.get("StreamModeDetails", {}).get("StreamMode", "PROVISIONED")
        return StreamCapacity(
            name=summary["StreamName"],
            arn=summary["StreamARN"],
            shard_count=int(summary["OpenShardCount"]),
            status=ReadinessState.from_stream_status(summary["StreamStatus"]),
            mode=CapacityMode.from_stream_mode(stream_mode),
        )

    def get_readiness(self, stream_arn: str) -> ReadinessState:
        summary = self._summary(StreamARN=stream_arn)
        return ReadinessState.from_stream_status(summary["StreamStatus"])

    def update_shard_count(self, stream_arn: str, target_shard_count: int) -> None:
        self._client.update_shard_count(
            StreamARN=stream_arn,
            TargetShardCount=target_shard_count,
            ScalingType=UNIFORM_SCALING,
        )
