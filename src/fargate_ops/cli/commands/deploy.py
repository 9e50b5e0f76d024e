"""The ``deploy`` command."""

import click

from fargate_ops.cli.errors import report_error
from fargate_ops.cli.log_setup import configure_logging
from fargate_ops.cli.render import print_deployment_summary, report_step
from fargate_ops.core.aws import create_facade
from fargate_ops.core.deploy import DeploymentStatus, deploy, validate_request
from fargate_ops.core.errors import FargateOpsError, InvalidInputError
from fargate_ops.core.models import DeploymentRequest
from fargate_ops.core.settings import OpsSettings


@click.command("deploy")
@click.option("-c", "--cluster", "cluster_name", default="", help="ECS cluster name.")
@click.option("-s", "--service", "service_name", default="", help="ECS service name.")
@click.option("-i", "--image", "image_uri", default="", help="Container image URI to deploy.")
@click.option(
    "-t",
    "--timeout",
    "timeout_seconds",
    type=int,
    default=None,
    help="Seconds to wait for the service to stabilize (default: 600, minimum: 60).",
)
@click.option(
    "-w",
    "--wait-stable",
    is_flag=True,
    help="Wait for the service to stabilize and check task health.",
)
@click.pass_context
def deploy_command(
    ctx: click.Context,
    cluster_name: str,
    service_name: str,
    image_uri: str,
    timeout_seconds: int | None,
    wait_stable: bool,
) -> None:
    """Deploy a new container image to an ECS Fargate service.

    Failed deployments are rolled back to the previous task definition.

    \b
    Exit codes:
      0  Deployment succeeded
      1  Invalid input
      2  AWS error
      3  Deployment failed
      4  Health check failed
      5  Rollback failed
    """
    settings: OpsSettings = ctx.obj
    log_file = configure_logging("deploy", settings)

    request = DeploymentRequest(
        cluster_name=cluster_name,
        service_name=service_name,
        image_uri=image_uri,
        timeout_seconds=(
            timeout_seconds if timeout_seconds is not None else settings.deploy.timeout_seconds
        ),
        wait_for_stable=wait_stable,
    )
    try:
        validate_request(request)
        facade = create_facade(settings.aws)
    except InvalidInputError as exc:
        report_error(exc)
        ctx.exit(DeploymentStatus.INVALID_INPUT.exit_code)
    except FargateOpsError as exc:
        report_error(exc)
        ctx.exit(DeploymentStatus.CLOUD_ERROR.exit_code)

    report_step(f"Deploying {request.image_uri} to {request.cluster_name}/{request.service_name}")
    result = deploy(
        request,
        facade,
        reporter=report_step,
        poll_interval_seconds=settings.deploy.poll_interval_seconds,
        grace_period_seconds=settings.deploy.grace_period_seconds,
    )
    print_deployment_summary(result, log_file)
    ctx.exit(result.exit_code)
