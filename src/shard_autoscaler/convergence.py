"""Bounded-step convergence of a stream's shard count toward an alarm target.

Kinesis allows a single ``UpdateShardCount`` call to at most double or halve
the open shard count, and rejects updates unless the stream is ACTIVE. The
engine therefore walks toward the target in steps, waiting for the stream
to become ready before each one:

    DECODE -> VALIDATE -> {ABORT | QUERY} -> (converged? DONE)
        -> [WAIT_READY -> STEP -> APPLY -> (done? DONE : WAIT_READY)]*
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from botocore.exceptions import BotoCoreError, ClientError

from .clients import ResourceAdmin
from .exceptions import ReadinessTimeoutError
from .ladder import DEFAULT_LADDER
from .models import BucketLadder, CapacityMode, ReadinessState, ScalingIntent
from .naming import decode_alarm_name
from .structured_log import StructuredLogger

logger = StructuredLogger(__name__)


def next_capacity(current: int, target: int) -> int:
    """
    Compute the next shard count on the way from ``current`` to ``target``.

    Scale-up is capped at doubling, scale-down at halving. Halving rounds
    up so odd counts keep the extra shard.

    Example:
        >>> next_capacity(1, 8), next_capacity(3, 1), next_capacity(6, 8)
        (2, 2, 8)
    """
    if current <= 0 or target <= 0:
        raise ValueError("shard counts must be positive")
    if target > current:
        return min(current * 2, target)
    if target < current:
        return max(math.ceil(current / 2), target)
    return current


def plan_steps(current: int, target: int) -> list[int]:
    """
    Return the shard counts visited after each scaling step.

    Example:
        >>> plan_steps(1, 8)
        [2, 4, 8]
        >>> plan_steps(8, 1)
        [4, 2, 1]
    """
    steps: list[int] = []
    while current != target:
        following = next_capacity(current, target)
        if following == current:
            break
        steps.append(following)
        current = following
    return steps


class Outcome(Enum):
    """How a reconcile invocation ended."""

    ABORTED = "ABORTED"
    ALREADY_CONVERGED = "ALREADY_CONVERGED"
    CONVERGED = "CONVERGED"
    STALLED = "STALLED"


@dataclass
class ReconcileResult:
    """Result of one reconcile invocation."""

    outcome: Outcome
    alarm_name: str
    stream_name: str | None = None
    start_capacity: int | None = None
    target_capacity: int | None = None
    final_capacity: int | None = None
    steps: list[int] = field(default_factory=list)
    reason: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "outcome": self.outcome.value,
            "alarm_name": self.alarm_name,
            "stream_name": self.stream_name,
            "start_capacity": self.start_capacity,
            "target_capacity": self.target_capacity,
            "final_capacity": self.final_capacity,
            "steps": list(self.steps),
            "reason": self.reason,
        }


class ConvergenceEngine:
    """
    Drives a stream's shard count to the target of a fired alarm.

    Example:
        engine = ConvergenceEngine(resources=KinesisResourceAdmin())
        engine.reconcile("orders-stream-LatencyRange8-800Plus")

    Args:
        resources: Stream capacity capability
        ladder: Threshold buckets used to map labels to targets
        poll_interval: Seconds between readiness polls
        step_pause: Seconds to pause after a step that did not reach the target
        ready_timeout: Maximum seconds to wait for readiness, None for no bound
        sleep: Sleep function (injected for testing)
        clock: Monotonic clock (injected for testing)
    """

    def __init__(
        self,
        resources: ResourceAdmin,
        ladder: BucketLadder = DEFAULT_LADDER,
        poll_interval: float = 10.0,
        step_pause: float = 5.0,
        ready_timeout: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._resources = resources
        self._ladder = ladder
        self._poll_interval = poll_interval
        self._step_pause = step_pause
        self._ready_timeout = ready_timeout
        self._sleep = sleep
        self._clock = clock

    def decode(
        self,
        alarm_name: str,
        identity: tuple[str, str] | None = None,
    ) -> ScalingIntent | None:
        """
        Turn an alarm identity into a scaling intent.

        Args:
            alarm_name: Alarm name to decode
            identity: Structured ``(stream_name, bucket_label)`` when the
                notification carried one; preferred over the name

        Returns:
            ScalingIntent, or None when the alarm is not one of ours
        """
        decoded = identity or decode_alarm_name(alarm_name)
        if decoded is None:
            return None
        stream_name, bucket_label = decoded
        bucket = self._ladder.by_label(bucket_label)
        if bucket is None:
            return None
        return ScalingIntent(
            stream_name=stream_name,
            bucket_label=bucket.label,
            target_capacity=bucket.target_capacity,
        )

    def reconcile(
        self,
        alarm_name: str,
        identity: tuple[str, str] | None = None,
    ) -> ReconcileResult:
        """
        Converge the alarm's stream to the alarm's target shard count.

        Unrecognized alarms and failed capacity queries end the invocation
        without raising. So does a stream outside managed capacity mode,
        whose shard count is not ours to change. A failed scaling operation is logged and re-raised.

        Args:
            alarm_name: Name of the alarm that fired
            identity: Optional structured ``(stream_name, bucket_label)``

        Returns:
            ReconcileResult describing what happened

        Raises:
            botocore.exceptions.ClientError: If a scaling operation fails
            ReadinessTimeoutError: If the stream does not become ready in time
        """
        intent = self.decode(alarm_name, identity)
        if intent is None:
            logger.debug("Alarm not recognized, ignoring", alarm_name=alarm_name)
            return ReconcileResult(Outcome.ABORTED, alarm_name, reason="unrecognized alarm")

        result = ReconcileResult(
            Outcome.ABORTED,
            alarm_name,
            stream_name=intent.stream_name,
            target_capacity=intent.target_capacity,
        )

        try:
            capacity = self._resources.describe_capacity(intent.stream_name)
        except (ClientError, BotoCoreError) as e:
            logger.warning(
                "Capacity query failed, aborting",
                alarm_name=alarm_name,
                stream_name=intent.stream_name,
                error=str(e),
            )
            result.reason = f"describe failed: {e}"
            return result

        current = capacity.shard_count
        result.start_capacity = current
        result.final_capacity = current

        if capacity.mode is not CapacityMode.MANAGED:
            logger.info(
                "Stream not in managed capacity mode, ignoring",
                alarm_name=alarm_name,
                stream_name=intent.stream_name,
                mode=capacity.mode.value,
            )
            result.reason = f"capacity mode is {capacity.mode.value}"
            return result

        if current == intent.target_capacity:
            logger.info(
                "Stream already at target capacity",
                stream_name=intent.stream_name,
                shard_count=current,
            )
            result.outcome = Outcome.ALREADY_CONVERGED
            return result

        logger.info(
            "Scaling stream",
            alarm_name=alarm_name,
            stream_name=intent.stream_name,
            from_shards=current,
            to_shards=intent.target_capacity,
        )

        while current != intent.target_capacity:
            self.wait_until_ready(intent.stream_name, capacity.arn)

            following = next_capacity(current, intent.target_capacity)
            if following == current:
                break

            try:
                self._resources.update_shard_count(capacity.arn, following)
            except (ClientError, BotoCoreError):
                logger.error(
                    "Scaling operation failed",
                    exc_info=True,
                    alarm_name=alarm_name,
                    stream_name=intent.stream_name,
                    stream_arn=capacity.arn,
                    from_shards=current,
                    to_shards=following,
                    target_shards=intent.target_capacity,
                    steps_completed=result.steps,
                )
                raise

            logger.info(
                "Scaling step applied",
                stream_name=intent.stream_name,
                from_shards=current,
                to_shards=following,
            )
            current = following
            result.steps.append(current)
            result.final_capacity = current

            if current != intent.target_capacity:
                self._sleep(self._step_pause)

        result.outcome = (
            Outcome.CONVERGED if current == intent.target_capacity else Outcome.STALLED
        )
        logger.info(
            "Scaling finished",
            stream_name=intent.stream_name,
            final_shards=current,
            target_shards=intent.target_capacity,
            converged=result.outcome is Outcome.CONVERGED,
            step_count=len(result.steps),
        )
        return result

    def wait_until_ready(self, stream_name: str, stream_arn: str) -> None:
        """
        Block until the stream reports READY, polling at a fixed interval.

        Raises:
            ReadinessTimeoutError: If ``ready_timeout`` elapses first
        """
        started = self._clock()
        while True:
            state = self._resources.get_readiness(stream_arn)
            if state is ReadinessState.READY:
                return

            waited = self._clock() - started
            if self._ready_timeout is not None and waited >= self._ready_timeout:
                raise ReadinessTimeoutError(stream_name, waited, state.value)

            logger.debug(
                "Waiting for stream to become ready",
                stream_name=stream_name,
                status=state.value,
                waited_seconds=round(waited, 1),
            )
            self._sleep(self._poll_interval)
