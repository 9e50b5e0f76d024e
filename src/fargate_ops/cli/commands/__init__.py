"""Click commands for fargate-ops."""

from fargate_ops.cli.commands.deploy import deploy_command
from fargate_ops.cli.commands.logs import logs_command
from fargate_ops.cli.commands.monitor import monitor_command

__all__ = ["deploy_command", "logs_command", "monitor_command"]
