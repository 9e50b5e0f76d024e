"""Rich rendering for deployment, monitor and log output."""

from pathlib import Path

from rich.console import Group, RenderableType
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from fargate_ops.cli.ui import console
from fargate_ops.core.deploy import DeploymentResult, DeploymentStatus
from fargate_ops.core.logs import classify_level, format_timestamp
from fargate_ops.core.models import (
    Finding,
    FindingLevel,
    HealthVerdict,
    LogAnalysis,
    LogEvent,
    MonitorConfig,
)

FINDING_MARKERS = {
    FindingLevel.OK: "[green]✓[/green]",
    FindingLevel.INFO: "[blue]ℹ[/blue]",
    FindingLevel.WARNING: "[yellow]⚠[/yellow]",
    FindingLevel.ERROR: "[red]✗[/red]",
}

LEVEL_STYLES = {
    "error": "red",
    "warning": "yellow",
    "info": "green",
    "debug": "blue",
}

STATUS_HINTS = {
    DeploymentStatus.SUCCEEDED_UNCONFIRMED: "Use --wait-stable to wait for completion.",
    DeploymentStatus.HEALTH_CHECK_FAILED: "Check the container logs with 'fargate-ops logs'.",
    DeploymentStatus.ROLLBACK_FAILED: "Manual intervention required.",
    DeploymentStatus.INTERRUPTED: "Check the service state before retrying.",
}


def report_step(message: str) -> None:
    """Report deployment progress to the user.

    Args:
        message: Progress message to display.
    """
    console.print(f"[bold cyan]•[/bold cyan] {escape(message)}")


def _style_status(status: DeploymentStatus) -> str:
    """Return a coloured label for a deployment status."""
    if status.exit_code == 0:
        return f"[green]{status}[/green]"
    if status == DeploymentStatus.INTERRUPTED:
        return f"[yellow]{status}[/yellow]"
    return f"[red]{status}[/red]"


def print_deployment_summary(result: DeploymentResult, log_file: Path | None = None) -> None:
    """Print the outcome of a deployment run.

    Args:
        result: The deployment result.
        log_file: Where the run was logged, if anywhere.
    """
    table = Table(title="Deployment summary", show_header=False, header_style="bold cyan")
    table.add_column("Field", style="white", no_wrap=True)
    table.add_column("Value", style="bright_white")

    table.add_row("Cluster", escape(result.request.cluster_name))
    table.add_row("Service", escape(result.request.service_name))
    table.add_row("Image", escape(result.request.image_uri))
    table.add_row("Status", _style_status(result.status))
    table.add_row("Previous task definition", escape(result.previous_task_definition or "-"))
    table.add_row("New task definition", escape(result.new_task_definition or "-"))
    table.add_row("Deployment ID", escape(result.deployment_id or "-"))
    table.add_row("Rolled back", "yes" if result.rolled_back else "no")
    table.add_row("Duration", f"{result.elapsed_seconds:.0f}s")
    if log_file is not None:
        table.add_row("Log file", escape(str(log_file)))
    console.print(table)

    colour = "green" if result.succeeded else "red"
    console.print(f"[{colour}]{escape(result.message)}[/{colour}]")
    hint = STATUS_HINTS.get(result.status)
    if hint:
        console.print(f"[dim]{hint}[/dim]")


def _findings_table(findings: list[Finding], verbose: bool) -> Table:
    table = Table.grid(padding=(0, 1))
    table.add_column(no_wrap=True)
    table.add_column()
    for finding in findings:
        if finding.detail and not verbose:
            continue
        table.add_row(FINDING_MARKERS[finding.level], escape(finding.message))
    return table


def render_dashboard(
    verdict: HealthVerdict,
    config: MonitorConfig,
    verbose: bool = False,
) -> RenderableType:
    """Build the dashboard for one monitor iteration.

    Per-task and per-target lines are only shown in verbose mode.

    Args:
        verdict: The verdict to render.
        config: Monitor configuration, for the header.
        verbose: Show detail findings.

    Returns:
        A renderable for ``Live.update`` or ``console.print``.
    """
    header = Text.assemble(
        ("Cluster: ", "bold"),
        verdict.cluster,
        ("  Service: ", "bold"),
        verdict.service,
        ("  Iteration: ", "bold"),
        str(verdict.iteration),
        ("  Time: ", "bold"),
        verdict.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
    )
    sections = [
        Panel(
            _findings_table(verdict.service_check.findings, verbose),
            title="ECS Service",
            border_style="cyan",
        ),
        Panel(
            _findings_table(verdict.task_check.findings, verbose),
            title="ECS Tasks",
            border_style="cyan",
        ),
        Panel(
            _findings_table(verdict.target_check.findings, verbose),
            title="ALB Targets",
            border_style="cyan",
        ),
    ]
    if verdict.has_critical_issues:
        summary = Text("✗ Critical issues detected", style="bold red")
    else:
        summary = Text("✓ All health checks passed", style="bold green")

    footer = Text(f"Next check in {config.interval_seconds}s. Press Ctrl+C to stop.", style="dim")
    return Group(header, *sections, summary, footer)


def render_log_event(event: LogEvent) -> Text:
    """Return a log event as Rich text coloured by its apparent level.

    Message content is never interpreted as markup.

    Args:
        event: The log event.

    Returns:
        The styled line.
    """
    line = Text()
    line.append(f"[{format_timestamp(event.timestamp)}]", style="dim")
    line.append(" ")
    line.append(f"[{event.log_stream or '-'}]", style="cyan")
    line.append(" ")
    level = classify_level(event.message)
    line.append(event.message, style=LEVEL_STYLES.get(level or "", ""))
    return line


def print_log_analysis(analysis: LogAnalysis) -> None:
    """Print log level counts, common errors and HTTP status codes.

    Args:
        analysis: The analysis summary.
    """
    counts = Table(title="Log levels", show_header=True, header_style="bold cyan")
    counts.add_column("Level", style="white", no_wrap=True)
    counts.add_column("Count", justify="right")
    counts.add_row("[red]ERROR[/red]", str(analysis.error_count))
    counts.add_row("[yellow]WARNING[/yellow]", str(analysis.warning_count))
    counts.add_row("[green]INFO[/green]", str(analysis.info_count))
    console.print(counts)

    if analysis.top_error_patterns:
        errors = Table(title="Top error patterns", show_header=True, header_style="bold cyan")
        errors.add_column("Count", justify="right", no_wrap=True)
        errors.add_column("Message", style="red")
        for message, count in analysis.top_error_patterns:
            errors.add_row(str(count), escape(message))
        console.print(errors)

    if analysis.http_status_codes:
        codes = Table(title="HTTP status codes", show_header=True, header_style="bold cyan")
        codes.add_column("Status", no_wrap=True)
        codes.add_column("Count", justify="right")
        for code, count in analysis.http_status_codes:
            colour = {"2": "green", "3": "yellow"}.get(code[:1], "red")
            codes.add_row(f"[{colour}]{code}[/{colour}]", str(count))
        console.print(codes)
