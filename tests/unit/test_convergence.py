"""Tests for bounded-step convergence."""

import json
import math

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError
from fixtures.fakes import FakeClock, FakeResourceAdmin

from shard_autoscaler.convergence import (
    ConvergenceEngine,
    Outcome,
    next_capacity,
    plan_steps,
)
from shard_autoscaler.exceptions import ReadinessTimeoutError
from shard_autoscaler.models import CapacityMode, ReadinessState


def make_engine(
    resources: FakeResourceAdmin,
    clock: FakeClock,
    ready_timeout: float | None = None,
) -> ConvergenceEngine:
    return ConvergenceEngine(
        resources=resources,
        poll_interval=10.0,
        step_pause=5.0,
        ready_timeout=ready_timeout,
        sleep=clock.sleep,
        clock=clock,
    )


class TestNextCapacity:
    """Tests for the single-step function."""

    @pytest.mark.parametrize(
        ("current", "target", "expected"),
        [
            (1, 8, 2),
            (2, 8, 4),
            (4, 8, 8),
            (6, 8, 8),
            (3, 4, 4),
            (8, 1, 4),
            (4, 1, 2),
            (2, 1, 1),
            (3, 1, 2),
            (5, 4, 4),
            (7, 2, 4),
            (4, 4, 4),
        ],
    )
    def test_step(self, current: int, target: int, expected: int) -> None:
        assert next_capacity(current, target) == expected

    def test_rejects_non_positive(self) -> None:
        with pytest.raises(ValueError):
            next_capacity(0, 4)
        with pytest.raises(ValueError):
            next_capacity(4, 0)

    def test_never_exceeds_doubling_or_halving(self) -> None:
        for current in range(1, 70):
            for target in range(1, 70):
                following = next_capacity(current, target)
                assert following <= current * 2
                assert following >= math.ceil(current / 2)


class TestPlanSteps:
    """Tests for the full step sequence."""

    def test_scale_up_sequence(self) -> None:
        assert plan_steps(1, 8) == [2, 4, 8]

    def test_scale_down_sequence(self) -> None:
        assert plan_steps(8, 1) == [4, 2, 1]

    def test_odd_scale_down_keeps_extra_shard(self) -> None:
        assert plan_steps(7, 1) == [4, 2, 1]
        assert plan_steps(5, 1) == [3, 2, 1]

    def test_no_steps_when_converged(self) -> None:
        assert plan_steps(6, 6) == []

    def test_reaches_target_within_bound(self) -> None:
        for start in range(1, 129):
            for target in range(1, 129):
                steps = plan_steps(start, target)
                assert (steps[-1] if steps else start) == target
                bound = math.ceil(math.log2(max(start, target) / min(start, target))) + 1
                assert len(steps) <= bound, (start, target, steps)


class TestReconcileScenarios:
    """End-to-end reconcile scenarios against the in-memory control plane."""

    def test_scale_up_one_to_eight(self, resource_admin, clock) -> None:
        resource_admin.add_stream("orders-stream", shard_count=1)
        engine = make_engine(resource_admin, clock)

        result = engine.reconcile("orders-stream-LatencyRange8-800Plus")

        assert result.outcome is Outcome.CONVERGED
        assert result.start_capacity == 1
        assert result.final_capacity == 8
        assert result.steps == [2, 4, 8]
        assert resource_admin.updates == [
            ("orders-stream", 2),
            ("orders-stream", 4),
            ("orders-stream", 8),
        ]
        assert resource_admin.streams["orders-stream"].shard_count == 8

    def test_each_update_preceded_by_ready_poll(self, resource_admin, clock) -> None:
        resource_admin.add_stream("orders-stream", shard_count=1)
        engine = make_engine(resource_admin, clock)

        engine.reconcile("orders-stream-LatencyRange8-800Plus")

        updates = [i for i, e in enumerate(resource_admin.events) if e.startswith("update:")]
        assert len(updates) == 3
        for index in updates:
            assert resource_admin.events[index - 1] == "ready?"

    def test_scale_down_eight_to_one(self, resource_admin, clock) -> None:
        resource_admin.add_stream("orders-stream", shard_count=8)
        engine = make_engine(resource_admin, clock)

        result = engine.reconcile("orders-stream-LatencyRange1-0To200")

        assert result.outcome is Outcome.CONVERGED
        assert [n for _, n in resource_admin.updates] == [4, 2, 1]

    def test_unrecognized_alarm_makes_no_calls(self, resource_admin, clock) -> None:
        resource_admin.add_stream("orders-stream", shard_count=1)
        engine = make_engine(resource_admin, clock)

        result = engine.reconcile("unrecognized-alarm-xyz")

        assert result.outcome is Outcome.ABORTED
        assert result.stream_name is None
        assert resource_admin.control_plane_calls == 0

    def test_unknown_bucket_label_makes_no_calls(self, resource_admin, clock) -> None:
        resource_admin.add_stream("orders-stream", shard_count=1)
        engine = make_engine(resource_admin, clock)

        result = engine.reconcile("orders-stream-LatencyRange9-900To1000")

        assert result.outcome is Outcome.ABORTED
        assert resource_admin.control_plane_calls == 0

    def test_already_at_target_is_noop(self, resource_admin, clock) -> None:
        resource_admin.add_stream("orders-stream", shard_count=4)
        engine = make_engine(resource_admin, clock)

        result = engine.reconcile("orders-stream-LatencyRange4-400To600")

        assert result.outcome is Outcome.ALREADY_CONVERGED
        assert resource_admin.updates == []
        assert resource_admin.readiness_calls == []

    def test_describe_failure_aborts_without_raising(self, resource_admin, clock) -> None:
        resource_admin.add_stream("orders-stream", shard_count=1)
        resource_admin.fail_describe.add("orders-stream")
        engine = make_engine(resource_admin, clock)

        result = engine.reconcile("orders-stream-LatencyRange8-800Plus")

        assert result.outcome is Outcome.ABORTED
        assert "describe failed" in result.reason
        assert resource_admin.updates == []

    def test_elastic_stream_is_not_scaled(self, resource_admin, clock) -> None:
        resource_admin.add_stream("orders-stream", shard_count=1, mode=CapacityMode.ELASTIC)
        engine = make_engine(resource_admin, clock)

        result = engine.reconcile("orders-stream-LatencyRange8-800Plus")

        assert result.outcome is Outcome.ABORTED
        assert result.reason == "capacity mode is ELASTIC"
        assert result.start_capacity == 1
        assert resource_admin.updates == []
        assert resource_admin.readiness_calls == []

    def test_missing_stream_aborts(self, resource_admin, clock) -> None:
        engine = make_engine(resource_admin, clock)
        result = engine.reconcile("gone-stream-LatencyRange2-200To400")
        assert result.outcome is Outcome.ABORTED

    def test_structured_identity_preferred(self, resource_admin, clock) -> None:
        stream_name = "odd-LatencyRange2-name"
        resource_admin.add_stream(stream_name, shard_count=1)
        engine = make_engine(resource_admin, clock)

        result = engine.reconcile(
            "renamed-alarm",
            identity=(stream_name, "LatencyRange2-200To400"),
        )

        assert result.outcome is Outcome.CONVERGED
        assert resource_admin.updates == [(stream_name, 2)]


class TestReconcileWaiting:
    """Tests for readiness polling and pauses."""

    def test_waits_while_updating(self, clock) -> None:
        resources = FakeResourceAdmin(updating_polls=3)
        resources.add_stream("s", shard_count=1)
        engine = make_engine(resources, clock)

        engine.reconcile("s-LatencyRange4-400To600")

        # 2 steps; 3 UPDATING polls before the second step
        assert resources.updates == [("s", 2), ("s", 4)]
        assert clock.sleeps == [5.0, 10.0, 10.0, 10.0]

    def test_waits_for_initial_readiness(self, clock) -> None:
        resources = FakeResourceAdmin(updating_polls=0)
        resources.add_stream(
            "s",
            shard_count=2,
            pending=[ReadinessState.ACTIVATING, ReadinessState.UPDATING],
        )
        engine = make_engine(resources, clock)

        engine.reconcile("s-LatencyRange4-400To600")

        assert resources.updates == [("s", 4)]
        assert clock.sleeps == [10.0, 10.0]

    def test_no_pause_after_final_step(self, resource_admin, clock) -> None:
        resource_admin.updating_polls = 0
        resource_admin.add_stream("s", shard_count=2)
        engine = make_engine(resource_admin, clock)

        engine.reconcile("s-LatencyRange4-400To600")

        assert clock.sleeps == []

    def test_readiness_timeout_raises(self, clock) -> None:
        resources = FakeResourceAdmin()
        resources.add_stream("s", shard_count=1, pending=[ReadinessState.UPDATING] * 100)
        engine = make_engine(resources, clock, ready_timeout=30.0)

        with pytest.raises(ReadinessTimeoutError) as exc_info:
            engine.reconcile("s-LatencyRange2-200To400")

        assert exc_info.value.stream_name == "s"
        assert exc_info.value.last_status == "UPDATING"
        assert exc_info.value.waited_seconds >= 30.0
        assert resources.updates == []

    def test_unbounded_wait_keeps_polling(self, clock) -> None:
        resources = FakeResourceAdmin(updating_polls=0)
        resources.add_stream("s", shard_count=1, pending=[ReadinessState.UPDATING] * 50)
        engine = make_engine(resources, clock, ready_timeout=None)

        result = engine.reconcile("s-LatencyRange2-200To400")

        assert result.outcome is Outcome.CONVERGED
        assert len(clock.sleeps) == 50


class TestReconcileFailures:
    """Tests for scaling-operation failures."""

    def test_update_failure_is_reraised(self, resource_admin, clock) -> None:
        resource_admin.add_stream("orders-stream", shard_count=1)
        resource_admin.fail_update_at = 1
        engine = make_engine(resource_admin, clock)

        with pytest.raises(ClientError) as exc_info:
            engine.reconcile("orders-stream-LatencyRange8-800Plus")

        assert exc_info.value.response["Error"]["Code"] == "ResourceInUseException"
        assert resource_admin.updates == [("orders-stream", 2)]

    def test_update_failure_logged_with_context(self, resource_admin, clock, capsys) -> None:
        resource_admin.add_stream("orders-stream", shard_count=1)
        resource_admin.fail_update_at = 0
        engine = make_engine(resource_admin, clock)

        with pytest.raises(ClientError):
            engine.reconcile("orders-stream-LatencyRange8-800Plus")

        entries = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        errors = [e for e in entries if e["level"] == "ERROR"]
        assert len(errors) == 1
        assert errors[0]["message"] == "Scaling operation failed"
        assert errors[0]["stream_name"] == "orders-stream"
        assert errors[0]["from_shards"] == 1
        assert errors[0]["to_shards"] == 2
        assert "ResourceInUseException" in errors[0]["exception"]

    def test_connection_failure_logged_and_reraised(self, clock, capsys) -> None:
        class UnreachableStreams(FakeResourceAdmin):
            def update_shard_count(self, stream_arn: str, target_shard_count: int) -> None:
                raise EndpointConnectionError(endpoint_url="https://kinesis.test")

        resources = UnreachableStreams()
        resources.add_stream("orders-stream", shard_count=1)
        engine = make_engine(resources, clock)

        with pytest.raises(EndpointConnectionError):
            engine.reconcile("orders-stream-LatencyRange8-800Plus")

        entries = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        assert [e["message"] for e in entries if e["level"] == "ERROR"] == [
            "Scaling operation failed"
        ]

    def test_unexpected_error_propagates_unlogged(self, clock, capsys) -> None:
        class BrokenStreams(FakeResourceAdmin):
            def update_shard_count(self, stream_arn: str, target_shard_count: int) -> None:
                raise RuntimeError("bug")

        resources = BrokenStreams()
        resources.add_stream("orders-stream", shard_count=1)
        engine = make_engine(resources, clock)

        with pytest.raises(RuntimeError):
            engine.reconcile("orders-stream-LatencyRange8-800Plus")

        entries = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        assert all(e["level"] != "ERROR" for e in entries)


class TestResultSerialization:
    """Tests for ReconcileResult.to_dict."""

    def test_to_dict(self, resource_admin, clock) -> None:
        resource_admin.add_stream("orders-stream", shard_count=2)
        engine = make_engine(resource_admin, clock)

        data = engine.reconcile("orders-stream-LatencyRange4-400To600").to_dict()

        assert data == {
            "outcome": "CONVERGED",
            "alarm_name": "orders-stream-LatencyRange4-400To600",
            "stream_name": "orders-stream",
            "start_capacity": 2,
            "target_capacity": 4,
            "final_capacity": 4,
            "steps": [4],
            "reason": None,
        }
