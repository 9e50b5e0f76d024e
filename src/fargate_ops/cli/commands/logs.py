"""The ``logs`` command."""

import json
from pathlib import Path

import click
from rich.markup import escape

from fargate_ops.cli.errors import report_error
from fargate_ops.cli.log_setup import configure_logging
from fargate_ops.cli.render import print_log_analysis, render_log_event
from fargate_ops.cli.ui import console, err_console
from fargate_ops.core.aws import create_facade
from fargate_ops.core.errors import FargateOpsError, InvalidInputError, NoLogsFoundError
from fargate_ops.core.interfaces import CloudFacade
from fargate_ops.core.logs import (
    analyze_logs,
    fetch_analysis_window,
    fetch_logs,
    format_event,
    format_timestamp,
    tail_logs,
    validate_query,
)
from fargate_ops.core.models import LogEvent, LogQuery
from fargate_ops.core.settings import OpsSettings

EXIT_OK = 0
EXIT_INVALID_INPUT = 1
EXIT_CLOUD_ERROR = 2
EXIT_NO_LOGS = 3


class _EventWriter:
    """Print events to the terminal and optionally append them to a file."""

    def __init__(self, output: Path | None, json_output: bool) -> None:
        self._json_output = json_output
        self._handle = output.open("w", encoding="utf-8") if output else None

    def write(self, event: LogEvent) -> None:
        if self._json_output:
            click.echo(
                json.dumps(
                    {
                        "timestamp": format_timestamp(event.timestamp),
                        "log_stream": event.log_stream,
                        "message": event.message,
                    }
                )
            )
        else:
            console.print(render_log_event(event), highlight=False)
        if self._handle is not None:
            self._handle.write(format_event(event) + "\n")
            self._handle.flush()

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()


@click.command("logs")
@click.option("-g", "--log-group", default="", help="CloudWatch log group name.")
@click.option("-s", "--log-stream", "stream_pattern", default=None, help="Log stream name pattern.")
@click.option("-f", "--filter", "filter_pattern", default=None, help="CloudWatch filter pattern.")
@click.option("-t", "--tail", is_flag=True, help="Follow new events until interrupted.")
@click.option(
    "-n",
    "--lines",
    type=int,
    default=None,
    help="Maximum number of events to print, including the backlog when tailing (default: 100).",
)
@click.option(
    "-d",
    "--duration",
    "duration_minutes",
    type=int,
    default=None,
    help="Look back N minutes for printed events and the analysis (default: 60).",
)
@click.option("-e", "--errors-only", is_flag=True, help="Show only ERROR events.")
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also save events to this file.",
)
@click.option("-j", "--json", "json_output", is_flag=True, help="Print one JSON object per event.")
@click.pass_context
def logs_command(
    ctx: click.Context,
    log_group: str,
    stream_pattern: str | None,
    filter_pattern: str | None,
    tail: bool,
    lines: int | None,
    duration_minutes: int | None,
    errors_only: bool,
    output: Path | None,
    json_output: bool,
) -> None:
    """Fetch, tail and analyse CloudWatch logs for ECS containers.

    \b
    Exit codes:
      0  Success
      1  Invalid input
      2  AWS error or log group not found
      3  No logs found
    """
    settings: OpsSettings = ctx.obj
    configure_logging("logs", settings)

    query = LogQuery(
        log_group=log_group,
        stream_pattern=stream_pattern or None,
        filter_pattern=filter_pattern or None,
        errors_only=errors_only,
        limit=lines if lines is not None else settings.logs.lines,
        duration_minutes=(
            duration_minutes if duration_minutes is not None else settings.logs.duration_minutes
        ),
    )
    try:
        validate_query(query)
        facade = create_facade(settings.aws)
        facade.verify_credentials()
    except InvalidInputError as exc:
        report_error(exc)
        ctx.exit(EXIT_INVALID_INPUT)
    except FargateOpsError as exc:
        report_error(exc)
        ctx.exit(EXIT_CLOUD_ERROR)

    writer = _EventWriter(output, json_output)
    try:
        if tail:
            code = _tail(facade, query, writer, settings.logs.tail_poll_seconds)
        else:
            code = _fetch(facade, query, writer, json_output)
    finally:
        writer.close()
    if output is not None and code == EXIT_OK:
        err_console.print(f"[dim]Output saved to {output}[/dim]")
    ctx.exit(code)


def _fetch(facade: CloudFacade, query: LogQuery, writer: _EventWriter, json_output: bool) -> int:
    try:
        events = fetch_logs(facade, query)
    except NoLogsFoundError as exc:
        report_error(exc)
        return EXIT_NO_LOGS
    except FargateOpsError as exc:
        report_error(exc)
        return EXIT_CLOUD_ERROR

    for event in events:
        writer.write(event)
    if json_output:
        return EXIT_OK

    console.print(f"[dim]Fetched {len(events)} log entries[/dim]")
    try:
        messages = fetch_analysis_window(facade, query)
    except FargateOpsError as exc:
        report_error(exc)
        return EXIT_CLOUD_ERROR
    print_log_analysis(analyze_logs(messages))
    return EXIT_OK


def _tail(
    facade: CloudFacade,
    query: LogQuery,
    writer: _EventWriter,
    poll_interval_seconds: int,
) -> int:
    err_console.print(f"[dim]Tailing {query.log_group}. Press Ctrl+C to stop.[/dim]")
    try:
        try:
            backlog = fetch_logs(facade, query)
        except NoLogsFoundError as exc:
            err_console.print(f"[dim]{escape(str(exc))}[/dim]")
            backlog = []
        for event in backlog:
            writer.write(event)

        since_ms = backlog[-1].timestamp if backlog else None
        for event in tail_logs(
            facade, query, poll_interval_seconds=poll_interval_seconds, since_ms=since_ms
        ):
            writer.write(event)
    except NoLogsFoundError as exc:
        report_error(exc)
        return EXIT_NO_LOGS
    except FargateOpsError as exc:
        report_error(exc)
        return EXIT_CLOUD_ERROR
    except KeyboardInterrupt:
        err_console.print("[dim]Stopped by user[/dim]")
    return EXIT_OK
