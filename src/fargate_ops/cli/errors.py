"""Render command failures with actionable guidance."""

from rich.markup import escape

from fargate_ops.cli.ui import err_console
from fargate_ops.core.aws.errors import is_endpoint_error
from fargate_ops.core.errors import (
    CloudAPIError,
    CredentialError,
    InvalidInputError,
    NoLogsFoundError,
    NotFoundError,
)


def report_error(exc: Exception) -> None:
    """Print an error to stderr with a hint for the common causes.

    Args:
        exc: The error that ended the command.
    """
    if isinstance(exc, InvalidInputError):
        err_console.print(f"[red]{escape(str(exc))}[/red]")
        err_console.print("[dim]Run with --help for usage.[/dim]")
        return

    if isinstance(exc, CredentialError):
        err_console.print(
            "[red]AWS authentication failed. Your credentials are missing, invalid, "
            "or expired.[/red]"
        )
        err_console.print(
            "[dim]If using AWS profile/SSO, run: aws sso login --profile <profile>. "
            "If using temporary keys, refresh AWS_SESSION_TOKEN and retry.[/dim]"
        )
        return

    if is_endpoint_error(exc):
        err_console.print("[red]Could not reach AWS endpoint from this environment.[/red]")
        err_console.print("[dim]Check network connectivity and AWS region configuration.[/dim]")
        return

    if isinstance(exc, NotFoundError):
        err_console.print(f"[red]{escape(str(exc))}[/red]")
        err_console.print("[dim]Check the resource name and the AWS region.[/dim]")
        return

    if isinstance(exc, NoLogsFoundError):
        err_console.print(f"[yellow]{escape(str(exc))}[/yellow]")
        return

    if isinstance(exc, CloudAPIError) and exc.code:
        err_console.print(f"[red]AWS error ({exc.code}): {escape(str(exc))}[/red]")
        return

    err_console.print(f"[red]Command failed: {escape(str(exc))}[/red]")
