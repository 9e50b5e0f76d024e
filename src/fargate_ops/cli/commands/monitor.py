"""The ``monitor`` command."""

import json

import click
from rich.live import Live

from fargate_ops.cli.errors import report_error
from fargate_ops.cli.log_setup import configure_logging
from fargate_ops.cli.render import render_dashboard
from fargate_ops.cli.ui import console
from fargate_ops.core.aws import create_facade
from fargate_ops.core.errors import FargateOpsError, InvalidInputError
from fargate_ops.core.models import HealthVerdict, MonitorConfig
from fargate_ops.core.monitor import (
    EXIT_CLOUD_ERROR,
    EXIT_INVALID_INPUT,
    exit_code_for,
    run_monitor,
    validate_config,
)
from fargate_ops.core.settings import OpsSettings


def _emit_json(verdict: HealthVerdict) -> None:
    click.echo(json.dumps(verdict.to_snapshot()))


@click.command("monitor")
@click.option("-c", "--cluster", "cluster_name", default="", help="ECS cluster name.")
@click.option("-s", "--service", "service_name", default="", help="ECS service name.")
@click.option(
    "-a",
    "--alb-target-group",
    "--alb-arn",
    "target_group_arn",
    default=None,
    help="ALB target group ARN to check.",
)
@click.option(
    "-i",
    "--interval",
    "interval_seconds",
    type=int,
    default=None,
    help="Seconds between health checks (default: 30, minimum: 5).",
)
@click.option(
    "-m",
    "--max-iterations",
    type=int,
    default=0,
    show_default=True,
    help="Stop after this many checks; 0 runs until interrupted.",
)
@click.option("-v", "--verbose", is_flag=True, help="Show per-task and per-target detail.")
@click.option("-j", "--json", "json_output", is_flag=True, help="Print one JSON object per check.")
@click.pass_context
def monitor_command(
    ctx: click.Context,
    cluster_name: str,
    service_name: str,
    target_group_arn: str | None,
    interval_seconds: int | None,
    max_iterations: int,
    verbose: bool,
    json_output: bool,
) -> None:
    """Monitor the health of an ECS service, its tasks and its ALB targets.

    The exit code reflects the last completed check.

    \b
    Exit codes:
      0  All health checks passed
      1  Invalid input
      2  AWS error
      3  Critical health issues detected
    """
    settings: OpsSettings = ctx.obj
    configure_logging("monitor", settings)

    config = MonitorConfig(
        cluster_name=cluster_name,
        service_name=service_name,
        target_group_arn=target_group_arn or None,
        interval_seconds=(
            interval_seconds if interval_seconds is not None else settings.monitor.interval_seconds
        ),
        max_iterations=max_iterations,
    )
    try:
        validate_config(config)
        facade = create_facade(settings.aws)
        facade.verify_credentials()
    except InvalidInputError as exc:
        report_error(exc)
        ctx.exit(EXIT_INVALID_INPUT)
    except FargateOpsError as exc:
        report_error(exc)
        ctx.exit(EXIT_CLOUD_ERROR)

    if json_output:
        final = run_monitor(config, facade, on_verdict=_emit_json)
    else:
        with Live(console=console, refresh_per_second=4) as live:

            def _show(verdict: HealthVerdict) -> None:
                live.update(render_dashboard(verdict, config, verbose), refresh=True)

            final = run_monitor(config, facade, on_verdict=_show)
        console.print("[dim]Monitoring stopped.[/dim]")

    ctx.exit(exit_code_for(final))
