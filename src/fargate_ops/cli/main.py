"""CLI entrypoint for fargate-ops."""

import signal
import sys
from types import FrameType

import click

from fargate_ops import __version__
from fargate_ops.cli.commands import deploy_command, logs_command, monitor_command
from fargate_ops.cli.ui import err_console
from fargate_ops.core.settings import get_settings

EXIT_USAGE = 1
EXIT_INTERRUPTED = 130


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, prog_name="fargate-ops")
@click.option("--region", default=None, help="AWS region (default: from AWS_REGION or profile).")
@click.option("--profile", default=None, help="Named AWS profile.")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write the run log to this file.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Log file verbosity (default: INFO).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    region: str | None,
    profile: str | None,
    log_file: str | None,
    log_level: str | None,
) -> None:
    """Deploy, monitor and inspect ECS Fargate services.

    Args:
        ctx: Click context for the command invocation.
        region: AWS region override.
        profile: AWS profile override.
        log_file: Log file override.
        log_level: Log level override.
    """
    settings = get_settings()
    if region:
        settings.aws.region = region
    if profile:
        settings.aws.profile = profile
    if log_file:
        settings.log_file = log_file
    if log_level:
        settings.log_level = log_level.upper()
    ctx.obj = settings


cli.add_command(deploy_command)
cli.add_command(monitor_command)
cli.add_command(logs_command)


def _raise_interrupt(signum: int, frame: FrameType | None) -> None:
    """Treat SIGTERM like Ctrl+C so loops stop cleanly."""
    raise KeyboardInterrupt


def main(argv: list[str] | None = None) -> None:
    """Run the CLI.

    Usage errors exit with status 1 rather than click's default of 2, which
    is reserved for AWS errors.
    """
    signal.signal(signal.SIGTERM, _raise_interrupt)
    try:
        code = cli.main(args=argv, prog_name="fargate-ops", standalone_mode=False)
    except click.ClickException as exc:
        exc.show()
        code = EXIT_USAGE
    except click.Abort:
        err_console.print("[yellow]Interrupted.[/yellow]")
        code = EXIT_INTERRUPTED
    sys.exit(code if isinstance(code, int) else 0)
