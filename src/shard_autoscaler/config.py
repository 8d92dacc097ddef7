"""Runtime settings read from the Lambda environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from .exceptions import ValidationError
from .ladder import DEFAULT_LADDER, load_ladder
from .models import BucketLadder

DEFAULT_READY_POLL_INTERVAL_SECONDS = 10.0
DEFAULT_STEP_PAUSE_SECONDS = 5.0
DEFAULT_READY_TIMEOUT_SECONDS = 840.0  # inside the 900s Lambda ceiling
DEFAULT_EVALUATION_PERIODS = 3
DEFAULT_METRIC_PERIOD_SECONDS = 60
DEFAULT_LATENCY_METRIC_NAME = "GetRecords.Latency"


def _float(env: Mapping[str, str], name: str, default: float, minimum: float = 0.0) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValidationError(name, raw, "Must be a number") from None
    if value < minimum:
        raise ValidationError(name, raw, f"Must be >= {minimum:g}")
    return value


def _int(env: Mapping[str, str], name: str, default: int, minimum: int = 1) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(name, raw, "Must be an integer") from None
    if value < minimum:
        raise ValidationError(name, raw, f"Must be >= {minimum}")
    return value


@dataclass(frozen=True)
class ScalerSettings:
    """
    Settings shared by the provisioner and scaler Lambdas.

    Attributes:
        alarm_topic_arn: SNS topic the alarms notify
        ready_poll_interval: Seconds between readiness polls
        step_pause: Seconds to pause after each successful scaling step
        ready_timeout: Readiness wait bound in seconds, None for unbounded
        evaluation_periods: Consecutive breaching periods required to alarm
        metric_period: Alarm metric period in seconds
        latency_metric_name: Kinesis latency metric watched by the alarms
        ladder: Threshold bucket ladder
        region: AWS region override (None uses boto3 defaults)
        endpoint_url: AWS endpoint override (e.g. LocalStack)
    """

    alarm_topic_arn: str = ""
    ready_poll_interval: float = DEFAULT_READY_POLL_INTERVAL_SECONDS
    step_pause: float = DEFAULT_STEP_PAUSE_SECONDS
    ready_timeout: float | None = DEFAULT_READY_TIMEOUT_SECONDS
    evaluation_periods: int = DEFAULT_EVALUATION_PERIODS
    metric_period: int = DEFAULT_METRIC_PERIOD_SECONDS
    latency_metric_name: str = DEFAULT_LATENCY_METRIC_NAME
    ladder: BucketLadder = field(default=DEFAULT_LADDER)
    region: str | None = None
    endpoint_url: str | None = None

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> ScalerSettings:
        """
        Build settings from environment variables.

        Environment variables:
            ALARM_TOPIC_ARN: SNS topic ARN for alarm actions
            READY_POLL_INTERVAL_SECONDS: Readiness poll interval (default: 10)
            STEP_PAUSE_SECONDS: Pause between scaling steps (default: 5)
            READY_TIMEOUT_SECONDS: Readiness wait bound, 0 for none (default: 840)
            EVALUATION_PERIODS: Alarm evaluation periods (default: 3)
            METRIC_PERIOD_SECONDS: Alarm metric period (default: 60)
            LATENCY_METRIC_NAME: Metric name (default: GetRecords.Latency)
            LADDER_FILE: Optional YAML ladder definition
            AWS_REGION: Region override
            ENDPOINT_URL: Endpoint override

        Raises:
            ValidationError: If a numeric variable is malformed
        """
        if env is None:
            env = os.environ

        ready_timeout: float | None = _float(
            env, "READY_TIMEOUT_SECONDS", DEFAULT_READY_TIMEOUT_SECONDS
        )
        if not ready_timeout:
            ready_timeout = None

        return cls(
            alarm_topic_arn=env.get("ALARM_TOPIC_ARN", ""),
            ready_poll_interval=_float(
                env, "READY_POLL_INTERVAL_SECONDS", DEFAULT_READY_POLL_INTERVAL_SECONDS
            ),
            step_pause=_float(env, "STEP_PAUSE_SECONDS", DEFAULT_STEP_PAUSE_SECONDS),
            ready_timeout=ready_timeout,
            evaluation_periods=_int(env, "EVALUATION_PERIODS", DEFAULT_EVALUATION_PERIODS),
            metric_period=_int(env, "METRIC_PERIOD_SECONDS", DEFAULT_METRIC_PERIOD_SECONDS),
            latency_metric_name=env.get("LATENCY_METRIC_NAME") or DEFAULT_LATENCY_METRIC_NAME,
            ladder=load_ladder(env.get("LADDER_FILE")),
            region=env.get("AWS_REGION") or None,
            endpoint_url=env.get("ENDPOINT_URL") or None,
        )
