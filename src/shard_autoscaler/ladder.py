"""Latency threshold ladder and its CloudWatch metric-math rendering."""

from __future__ import annotations

from pathlib import Path

from .models import BucketLadder, ThresholdBucket
from .naming import validate_bucket_label

DEFAULT_LADDER = BucketLadder(
    buckets=(
        ThresholdBucket("LatencyRange1-0To200", 0, 200, 1),
        ThresholdBucket("LatencyRange2-200To400", 200, 400, 2),
        ThresholdBucket("LatencyRange4-400To600", 400, 600, 4),
        ThresholdBucket("LatencyRange6-600To800", 600, 800, 6),
        ThresholdBucket("LatencyRange8-800Plus", 800, None, 8),
    )
)
"""Five-bucket ladder used unless a ladder file is configured."""

METRIC_ID = "latency"
EXPRESSION_ID = "inrange"


def latency_expression(bucket: ThresholdBucket, metric_id: str = METRIC_ID) -> str:
    """
    Build a metric-math expression that is 1 inside the bucket, else 0.

    Lower bound inclusive, upper bound exclusive, the top bucket has no
    upper bound.

    Example:
        >>> latency_expression(ThresholdBucket("b", 200, 400, 2))
        'IF(latency >= 200 AND latency < 400, 1, 0)'
    """
    if bucket.upper_ms is None:
        return f"IF({metric_id} >= {bucket.lower_ms}, 1, 0)"
    return f"IF({metric_id} >= {bucket.lower_ms} AND {metric_id} < {bucket.upper_ms}, 1, 0)"


def ladder_from_yaml(yaml_str: str) -> BucketLadder:
    """
    Parse a ladder definition from YAML.

    Labels are checked against the alarm naming scheme here, so a bad
    ladder file fails at load time rather than while provisioning.

    Raises:
        ValueError: If the definition is malformed or a label is unusable
    """
    import yaml

    data = yaml.safe_load(yaml_str)
    if not isinstance(data, dict):
        raise ValueError("ladder definition must be a mapping with a 'buckets' list")
    ladder = BucketLadder.from_dict(data)
    for bucket in ladder:
        validate_bucket_label(bucket.label)
    return ladder


def load_ladder(path: str | Path | None) -> BucketLadder:
    """Load a ladder from a YAML file, or return the default ladder."""
    if not path:
        return DEFAULT_LADDER
    return ladder_from_yaml(Path(path).read_text())
