"""Core models for shard-autoscaler."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class CapacityMode(Enum):
    """How a stream's shard count is controlled."""

    MANAGED = "MANAGED"
    """Capacity is set explicitly by shard count (Kinesis PROVISIONED)."""

    ELASTIC = "ELASTIC"
    """Capacity is managed by the provider (Kinesis ON_DEMAND)."""

    UNKNOWN = "UNKNOWN"
    """Mode could not be determined."""

    @classmethod
    def from_stream_mode(cls, stream_mode: str | None) -> "CapacityMode":
        if stream_mode == "PROVISIONED":
            return cls.MANAGED
        if stream_mode == "ON_DEMAND":
            return cls.ELASTIC
        return cls.UNKNOWN


class ReadinessState(Enum):
    """Operational status of a stream."""

    ACTIVATING = "ACTIVATING"
    READY = "READY"
    UPDATING = "UPDATING"
    DELETING = "DELETING"

    @classmethod
    def from_stream_status(cls, status: str) -> "ReadinessState":
        try:
            return _STREAM_STATUS[status]
        except KeyError:
            raise ValueError(f"Unknown stream status: {status}") from None


_STREAM_STATUS = {
    "CREATING": ReadinessState.ACTIVATING,
    "ACTIVE": ReadinessState.READY,
    "UPDATING": ReadinessState.UPDATING,
    "DELETING": ReadinessState.DELETING,
}


@dataclass(frozen=True)
class StreamCapacity:
    """
    Snapshot of a stream's capacity as reported by the control API.

    Attributes:
        name: Stream name
        arn: Stream ARN (the authoritative locator for mutations)
        shard_count: Number of open shards
        status: Readiness state at the time of the query
        mode: Capacity mode at the time of the query
    """

    name: str
    arn: str
    shard_count: int
    status: ReadinessState = ReadinessState.READY
    mode: CapacityMode = CapacityMode.MANAGED

    def __post_init__(self) -> None:
        if self.shard_count <= 0:
            raise ValueError("shard_count must be positive")


@dataclass(frozen=True)
class ThresholdBucket:
    """
    One rung of the latency ladder.

    The interval is half-open: ``lower_ms`` is inclusive, ``upper_ms`` is
    exclusive. ``upper_ms=None`` means unbounded above.

    Attributes:
        label: Stable bucket label, also the suffix of the alarm name
        lower_ms: Inclusive lower bound in milliseconds
        upper_ms: Exclusive upper bound in milliseconds, or None
        target_capacity: Shard count this bucket scales to
    """

    label: str
    lower_ms: int
    upper_ms: int | None
    target_capacity: int

    def __post_init__(self) -> None:
        if not self.label:
            raise ValueError("label must not be empty")
        if self.lower_ms < 0:
            raise ValueError("lower_ms must be >= 0")
        if self.upper_ms is not None and self.upper_ms <= self.lower_ms:
            raise ValueError("upper_ms must be greater than lower_ms")
        if self.target_capacity <= 0:
            raise ValueError("target_capacity must be positive")

    def contains(self, latency_ms: float) -> bool:
        """Check whether a latency value falls in this bucket."""
        if latency_ms < self.lower_ms:
            return False
        return self.upper_ms is None or latency_ms < self.upper_ms

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "ThresholdBucket":
        return cls(
            label=d["label"],
            lower_ms=int(d["lower_ms"]),
            upper_ms=None if d.get("upper_ms") is None else int(d["upper_ms"]),
            target_capacity=int(d["target"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "lower_ms": self.lower_ms,
            "upper_ms": self.upper_ms,
            "target": self.target_capacity,
        }


@dataclass(frozen=True)
class BucketLadder:
    """
    Ordered set of threshold buckets partitioning the latency domain.

    The buckets must start at 0, be contiguous (each upper bound equals the
    next lower bound) and end with a single unbounded bucket, so exactly one
    bucket contains any non-negative latency. Targets must not decrease as
    latency grows.
    """

    buckets: tuple[ThresholdBucket, ...]
    _by_label: dict[str, ThresholdBucket] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.buckets:
            raise ValueError("ladder must have at least one bucket")
        if self.buckets[0].lower_ms != 0:
            raise ValueError("first bucket must start at 0")
        for current, following in zip(self.buckets, self.buckets[1:]):
            if current.upper_ms != following.lower_ms:
                raise ValueError(
                    f"buckets {current.label} and {following.label} are not contiguous"
                )
            if following.target_capacity < current.target_capacity:
                raise ValueError("bucket targets must not decrease with latency")
        if self.buckets[-1].upper_ms is not None:
            raise ValueError("last bucket must be unbounded")

        by_label = {bucket.label: bucket for bucket in self.buckets}
        if len(by_label) != len(self.buckets):
            raise ValueError("bucket labels must be unique")
        object.__setattr__(self, "_by_label", by_label)

    def __iter__(self) -> Iterator[ThresholdBucket]:
        return iter(self.buckets)

    def __len__(self) -> int:
        return len(self.buckets)

    def classify(self, latency_ms: float) -> ThresholdBucket:
        """Return the bucket whose interval contains ``latency_ms``."""
        if latency_ms < 0:
            raise ValueError("latency_ms must be >= 0")
        for bucket in self.buckets:
            if bucket.contains(latency_ms):
                return bucket
        # Unreachable: the last bucket is unbounded and bounds are contiguous
        raise AssertionError(f"no bucket contains {latency_ms}")

    def by_label(self, label: str) -> ThresholdBucket | None:
        return self._by_label.get(label)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "BucketLadder":
        buckets = d.get("buckets")
        if not buckets:
            raise ValueError("'buckets' is required in ladder definition")
        return cls(buckets=tuple(ThresholdBucket.from_dict(b) for b in buckets))

    def to_dict(self) -> dict[str, Any]:
        return {"buckets": [bucket.to_dict() for bucket in self.buckets]}


@dataclass(frozen=True)
class AlarmDefinition:
    """
    A latency alarm for one (stream, bucket) pair.

    Created once and never updated in place: an existing alarm with the same
    name is left untouched even if its settings differ from this definition.

    Attributes:
        name: Deterministic alarm name (the idempotency key)
        stream_name: Stream the alarm watches
        bucket: Bucket the alarm represents
        action_arns: Notification targets invoked when the alarm fires
        metric_name: Latency metric the expression is built on
        period_seconds: Metric period
        evaluation_periods: Periods evaluated (and datapoints required to fire)
        treat_missing_data: Missing data is never breaching
    """

    name: str
    stream_name: str
    bucket: ThresholdBucket
    action_arns: tuple[str, ...] = ()
    metric_name: str = "GetRecords.Latency"
    period_seconds: int = 60
    evaluation_periods: int = 3
    treat_missing_data: str = "notBreaching"

    @property
    def datapoints_to_alarm(self) -> int:
        """All evaluated periods must breach; no partial-breach firing."""
        return self.evaluation_periods


@dataclass(frozen=True)
class ScalingIntent:
    """
    Target capacity decoded from a fired alarm.

    Lives for one reconcile invocation only.
    """

    stream_name: str
    bucket_label: str
    target_capacity: int
