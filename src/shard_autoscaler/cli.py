"""Command-line interface for shard-autoscaler."""

import json
import os
import sys
from dataclasses import replace
from typing import Any

import click

from .clients import CloudWatchAlarmAdmin, KinesisResourceAdmin
from .config import ScalerSettings
from .convergence import ConvergenceEngine, Outcome, plan_steps
from .provisioner import AlarmProvisioner


@click.group()
@click.version_option(package_name="shard-autoscaler")
@click.option("--region", help="AWS region (default: use boto3 defaults)")
@click.option(
    "--endpoint-url",
    help="AWS endpoint URL (e.g., http://localhost:4566 for LocalStack)",
)
@click.option(
    "--ladder-file",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML file overriding the default latency ladder",
)
@click.pass_context
def cli(
    ctx: click.Context,
    region: str | None,
    endpoint_url: str | None,
    ladder_file: str | None,
) -> None:
    """shard-autoscaler latency alarm and shard count management CLI."""
    env = dict(os.environ)
    if ladder_file:
        env["LADDER_FILE"] = ladder_file
    settings = ScalerSettings.from_env(env)
    overrides: dict[str, Any] = {}
    if region:
        overrides["region"] = region
    if endpoint_url:
        overrides["endpoint_url"] = endpoint_url
    if overrides:
        settings = replace(settings, **overrides)
    ctx.obj = settings


@cli.command()
@click.pass_obj
def ladder(settings: ScalerSettings) -> None:
    """Show the latency buckets and their target shard counts."""
    click.echo(f"{'Bucket':<28} {'Latency (ms)':<16} {'Shards':>6}")
    for bucket in settings.ladder:
        upper = "inf" if bucket.upper_ms is None else str(bucket.upper_ms)
        interval = f"[{bucket.lower_ms}, {upper})"
        click.echo(f"{bucket.label:<28} {interval:<16} {bucket.target_capacity:>6}")


@cli.command()
@click.argument("current", type=click.IntRange(min=1))
@click.argument("target", type=click.IntRange(min=1))
def plan(current: int, target: int) -> None:
    """Show the scaling steps from CURRENT to TARGET shards."""
    steps = plan_steps(current, target)
    if not steps:
        click.echo(f"Already at {target} shards")
        return
    click.echo(" -> ".join(str(n) for n in [current, *steps]))
    click.echo(f"{len(steps)} scaling operation(s)")


def _provisioner(settings: ScalerSettings, topic_arn: str | None) -> AlarmProvisioner:
    return AlarmProvisioner(
        alarms=CloudWatchAlarmAdmin(region=settings.region, endpoint_url=settings.endpoint_url),
        resources=KinesisResourceAdmin(region=settings.region, endpoint_url=settings.endpoint_url),
        topic_arn=topic_arn or settings.alarm_topic_arn,
        ladder=settings.ladder,
        metric_name=settings.latency_metric_name,
        evaluation_periods=settings.evaluation_periods,
        period_seconds=settings.metric_period,
    )


@cli.command("ensure-alarms")
@click.argument("stream_name")
@click.option("--topic-arn", help="SNS topic ARN for alarm actions (default: $ALARM_TOPIC_ARN)")
@click.pass_obj
def ensure_alarms(settings: ScalerSettings, stream_name: str, topic_arn: str | None) -> None:
    """Create any missing latency alarms for STREAM_NAME."""
    result = _provisioner(settings, topic_arn).ensure_alarms(stream_name)
    if result.skipped:
        click.echo(f"Skipped {stream_name}: capacity mode is {result.mode.value}")
        sys.exit(1 if result.errors else 0)

    for name in result.created:
        click.echo(f"  created  {name}")
    for name in result.existing:
        click.echo(f"  exists   {name}")
    for error in result.errors:
        click.echo(f"  error    {error}", err=True)
    sys.exit(1 if result.errors else 0)


@cli.command()
@click.option("--topic-arn", help="SNS topic ARN for alarm actions (default: $ALARM_TOPIC_ARN)")
@click.pass_obj
def sweep(settings: ScalerSettings, topic_arn: str | None) -> None:
    """Create any missing latency alarms for every stream."""
    result = _provisioner(settings, topic_arn).sweep()
    for stream in result.results:
        if stream.skipped:
            status = f"skipped ({stream.mode.value})"
        else:
            status = f"{len(stream.created)} created, {len(stream.existing)} existing"
        click.echo(f"{stream.stream_name}: {status}")
    click.echo(f"\n{result.streams_processed} stream(s), {result.alarms_created} alarm(s) created")
    for error in result.errors:
        click.echo(f"  error    {error}", err=True)
    sys.exit(1 if result.errors else 0)


@cli.command()
@click.argument("alarm_name")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_obj
def reconcile(settings: ScalerSettings, alarm_name: str, as_json: bool) -> None:
    """Scale the stream of ALARM_NAME to the alarm's target shard count."""
    engine = ConvergenceEngine(
        resources=KinesisResourceAdmin(region=settings.region, endpoint_url=settings.endpoint_url),
        ladder=settings.ladder,
        poll_interval=settings.ready_poll_interval,
        step_pause=settings.step_pause,
        ready_timeout=settings.ready_timeout,
    )
    result = engine.reconcile(alarm_name)
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return
    if result.stream_name is None:
        click.echo(f"Alarm {alarm_name} is not a shard-autoscaler alarm")
        return
    if result.outcome is Outcome.ABORTED:
        click.echo(f"{result.stream_name}: aborted ({result.reason})")
        return
    click.echo(
        f"{result.stream_name}: {result.outcome.value.lower().replace('_', ' ')} "
        f"({result.start_capacity} -> {result.final_capacity}, "
        f"target {result.target_capacity})"
    )


def main() -> None:
    """Entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
