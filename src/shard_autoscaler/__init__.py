"""
shard-autoscaler: latency-driven shard count control for Kinesis streams.

This library provides:
- A ladder of latency buckets, each mapped to a target shard count
- Idempotent provisioning of one CloudWatch alarm per stream and bucket
- Bounded-step convergence of a stream's shard count to a fired alarm's
  target (at most doubling or halving per step, waiting for ACTIVE between
  steps)

Example:
    from shard_autoscaler import (
        AlarmProvisioner,
        CloudWatchAlarmAdmin,
        ConvergenceEngine,
        KinesisResourceAdmin,
    )

    streams = KinesisResourceAdmin(region="us-east-1")
    provisioner = AlarmProvisioner(
        alarms=CloudWatchAlarmAdmin(region="us-east-1"),
        resources=streams,
        topic_arn="arn:aws:sns:us-east-1:123456789012:shard-autoscaler",
    )
    provisioner.ensure_alarms("orders-stream")

    engine = ConvergenceEngine(resources=streams, ready_timeout=840)
    engine.reconcile("orders-stream-LatencyRange8-800Plus")
"""

from .clients import AlarmAdmin, CloudWatchAlarmAdmin, KinesisResourceAdmin, ResourceAdmin
from .config import ScalerSettings
from .convergence import ConvergenceEngine, Outcome, ReconcileResult, next_capacity, plan_steps
from .exceptions import (
    InfrastructureError,
    ReadinessTimeoutError,
    ShardAutoscalerError,
    ValidationError,
)
from .ladder import DEFAULT_LADDER, latency_expression, load_ladder
from .models import (
    AlarmDefinition,
    BucketLadder,
    CapacityMode,
    ReadinessState,
    ScalingIntent,
    StreamCapacity,
    ThresholdBucket,
)
from .naming import decode_alarm_name, encode_alarm_name
from .provisioner import AlarmProvisioner, ProvisionResult, SweepResult

__all__ = [
    # Components
    "AlarmProvisioner",
    "ConvergenceEngine",
    # Clients
    "AlarmAdmin",
    "ResourceAdmin",
    "CloudWatchAlarmAdmin",
    "KinesisResourceAdmin",
    # Models
    "AlarmDefinition",
    "BucketLadder",
    "CapacityMode",
    "ReadinessState",
    "ScalingIntent",
    "StreamCapacity",
    "ThresholdBucket",
    # Results
    "Outcome",
    "ProvisionResult",
    "ReconcileResult",
    "SweepResult",
    # Configuration
    "DEFAULT_LADDER",
    "ScalerSettings",
    "load_ladder",
    # Functions
    "decode_alarm_name",
    "encode_alarm_name",
    "latency_expression",
    "next_capacity",
    "plan_steps",
    # Exceptions
    "ShardAutoscalerError",
    "InfrastructureError",
    "ReadinessTimeoutError",
    "ValidationError",
]
