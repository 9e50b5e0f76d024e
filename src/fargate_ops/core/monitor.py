"""Health monitor for an ECS service, its tasks and its ALB target group.

Each check returns its own counters and critical flag; ``aggregate_verdict``
combines them. Nothing carries over between iterations.
"""

import logging
import time
from collections.abc import Callable, Iterator
from datetime import UTC, datetime

from fargate_ops.core.errors import FargateOpsError, InvalidInputError
from fargate_ops.core.interfaces import CloudFacade
from fargate_ops.core.models import (
    Finding,
    FindingLevel,
    HealthVerdict,
    MonitorConfig,
    ServiceCheck,
    TargetCheck,
    TaskCheck,
    TaskHealth,
)

logger = logging.getLogger(__name__)

MIN_INTERVAL_SECONDS = 5

EXIT_OK = 0
EXIT_INVALID_INPUT = 1
EXIT_CLOUD_ERROR = 2
EXIT_CRITICAL = 3


def validate_config(config: MonitorConfig) -> None:
    """Reject an invalid monitor configuration.

    Raises:
        InvalidInputError: If the configuration cannot be monitored.
    """
    if not config.cluster_name.strip():
        raise InvalidInputError("Cluster name is required. Use -c or --cluster option.")
    if not config.service_name.strip():
        raise InvalidInputError("Service name is required. Use -s or --service option.")
    if config.interval_seconds < MIN_INTERVAL_SECONDS:
        raise InvalidInputError(f"Interval must be a number >= {MIN_INTERVAL_SECONDS} seconds")
    if config.max_iterations < 0:
        raise InvalidInputError("Max iterations must be 0 (unlimited) or a positive number")


def check_service(facade: CloudFacade, cluster: str, service: str) -> ServiceCheck:
    """Check the ECS service status, task counts and deployments.

    Under-provisioning is critical; over-provisioning and an in-progress
    rollout are not.

    Args:
        facade: Cloud facade.
        cluster: ECS cluster name.
        service: ECS service name.

    Returns:
        The service check result.
    """
    try:
        snapshot = facade.describe_service(cluster, service)
    except FargateOpsError as exc:
        logger.error("Failed to describe service: %s", exc)
        return ServiceCheck(
            critical=True,
            error=str(exc),
            findings=[
                Finding(level=FindingLevel.ERROR, message=f"Failed to describe service: {exc}")
            ],
        )

    findings: list[Finding] = []
    critical = False

    if snapshot.status == "ACTIVE":
        findings.append(
            Finding(level=FindingLevel.OK, message=f"Service status: {snapshot.status}")
        )
    else:
        findings.append(
            Finding(level=FindingLevel.ERROR, message=f"Service status: {snapshot.status}")
        )
        critical = True

    counts = f"Tasks: {snapshot.running_count}/{snapshot.desired_count} running"
    if snapshot.running_count == snapshot.desired_count and snapshot.running_count > 0:
        findings.append(Finding(level=FindingLevel.OK, message=counts))
    elif snapshot.running_count < snapshot.desired_count:
        findings.append(
            Finding(
                level=FindingLevel.WARNING,
                message=f"{counts} ({snapshot.pending_count} pending)",
            )
        )
        critical = True
    else:
        findings.append(
            Finding(level=FindingLevel.INFO, message=f"{counts} ({snapshot.pending_count} pending)")
        )

    if snapshot.active_deployment_count == 1:
        findings.append(Finding(level=FindingLevel.OK, message="Deployments: 1 (stable)"))
    else:
        findings.append(
            Finding(
                level=FindingLevel.WARNING,
                message=(
                    f"Deployments: {snapshot.active_deployment_count} (deployment in progress)"
                ),
            )
        )

    return ServiceCheck(snapshot=snapshot, critical=critical, findings=findings)


def check_tasks(facade: CloudFacade, cluster: str, service: str) -> TaskCheck:
    """Check the health of each running task.

    An UNKNOWN health status counts as unhealthy but is not critical, since
    many task definitions configure no container health check.

    Args:
        facade: Cloud facade.
        cluster: ECS cluster name.
        service: ECS service name.

    Returns:
        The task check result.
    """
    try:
        task_arns = facade.list_running_tasks(cluster, service)
    except FargateOpsError as exc:
        logger.error("Failed to list tasks: %s", exc)
        return TaskCheck(
            critical=True,
            error=str(exc),
            findings=[Finding(level=FindingLevel.ERROR, message=f"Failed to list tasks: {exc}")],
        )

    if not task_arns:
        return TaskCheck(
            critical=True,
            findings=[Finding(level=FindingLevel.ERROR, message="No running tasks found")],
        )

    check = TaskCheck()
    for task_arn in task_arns:
        try:
            tasks = facade.describe_tasks(cluster, [task_arn])
        except FargateOpsError as exc:
            logger.error("Failed to describe task %s: %s", task_arn, exc)
            check.critical = True
            check.error = str(exc)
            check.findings.append(
                Finding(level=FindingLevel.ERROR, message=f"Failed to describe task: {exc}")
            )
            continue

        for task in tasks:
            check.tasks.append(task)
            line = (
                f"Task {task.task_id[:8]}: {task.last_status} | Health: {task.health_status} "
                f"| IP: {task.private_ip or 'N/A'}"
            )
            if task.health_status == TaskHealth.HEALTHY:
                check.healthy += 1
                check.findings.append(
                    Finding(
                        level=FindingLevel.OK,
                        message=(
                            f"{line} | CPU: {task.cpu or 'N/A'} "
                            f"| Mem: {task.memory or 'N/A'}"
                        ),
                        detail=True,
                    )
                )
                continue

            check.unhealthy += 1
            check.findings.append(Finding(level=FindingLevel.WARNING, message=line))
            if task.health_status != TaskHealth.UNKNOWN:
                check.critical = True

    if check.healthy > 0 and check.unhealthy == 0:
        check.findings.append(
            Finding(level=FindingLevel.OK, message=f"All {check.healthy} task(s) are healthy")
        )
    elif check.unhealthy > 0:
        check.findings.append(
            Finding(
                level=FindingLevel.WARNING,
                message=f"Healthy: {check.healthy} | Unhealthy: {check.unhealthy}",
            )
        )
    return check


def check_targets(facade: CloudFacade, target_group_arn: str | None) -> TargetCheck:
    """Check ALB target health. Skipped when no target group is configured.

    Args:
        facade: Cloud facade.
        target_group_arn: Target group ARN, or None.

    Returns:
        The target check result.
    """
    if not target_group_arn:
        return TargetCheck(
            skipped=True,
            findings=[
                Finding(
                    level=FindingLevel.INFO,
                    message="Skipping ALB check (no target group ARN provided)",
                    detail=True,
                )
            ],
        )

    try:
        targets = facade.describe_target_health(target_group_arn)
    except FargateOpsError as exc:
        logger.error("Failed to describe target health: %s", exc)
        return TargetCheck(
            critical=True,
            error=str(exc),
            findings=[
                Finding(
                    level=FindingLevel.ERROR,
                    message=f"Failed to describe target health: {exc}",
                )
            ],
        )

    check = TargetCheck(targets=targets)
    for target in targets:
        endpoint = f"Target {target.target_id}:{target.port if target.port is not None else '-'}"
        if target.is_healthy:
            check.healthy += 1
            check.findings.append(
                Finding(
                    level=FindingLevel.OK,
                    message=f"{endpoint} - {target.state}",
                    detail=True,
                )
            )
        else:
            check.unhealthy += 1
            check.critical = True
            check.findings.append(
                Finding(
                    level=FindingLevel.WARNING,
                    message=f"{endpoint} - {target.state} (Reason: {target.reason or 'N/A'})",
                )
            )

    if check.healthy == check.total:
        check.findings.append(
            Finding(level=FindingLevel.OK, message=f"All {check.total} target(s) are healthy")
        )
    else:
        check.findings.append(
            Finding(
                level=FindingLevel.WARNING,
                message=(
                    f"Healthy: {check.healthy} | Unhealthy: {check.unhealthy} "
                    f"| Total: {check.total}"
                ),
            )
        )
    return check


def aggregate_verdict(
    config: MonitorConfig,
    iteration: int,
    timestamp: datetime,
    service_check: ServiceCheck,
    task_check: TaskCheck,
    target_check: TargetCheck,
) -> HealthVerdict:
    """Combine the three check results into one verdict.

    Returns:
        A verdict that is critical when any check is critical.
    """
    return HealthVerdict(
        iteration=iteration,
        timestamp=timestamp,
        cluster=config.cluster_name,
        service=config.service_name,
        service_check=service_check,
        task_check=task_check,
        target_check=target_check,
        has_critical_issues=(
            service_check.critical or task_check.critical or target_check.critical
        ),
    )


def run_checks(
    facade: CloudFacade,
    config: MonitorConfig,
    iteration: int,
    now: Callable[[], datetime] = lambda: datetime.now(UTC),
) -> HealthVerdict:
    """Run one monitor iteration. Checks run strictly in sequence.

    Args:
        facade: Cloud facade.
        config: Monitor configuration.
        iteration: 1-based iteration number.
        now: Clock for the verdict timestamp.

    Returns:
        The verdict for this iteration.
    """
    timestamp = now()
    service_check = check_service(facade, config.cluster_name, config.service_name)
    task_check = check_tasks(facade, config.cluster_name, config.service_name)
    target_check = check_targets(facade, config.target_group_arn)
    verdict = aggregate_verdict(
        config, iteration, timestamp, service_check, task_check, target_check
    )
    logger.info(
        "Iteration %d: critical=%s healthy_tasks=%d unhealthy_tasks=%d",
        iteration,
        verdict.has_critical_issues,
        task_check.healthy,
        task_check.unhealthy,
    )
    return verdict


def iter_verdicts(
    config: MonitorConfig,
    facade: CloudFacade,
    sleep: Callable[[float], None] = time.sleep,
    now: Callable[[], datetime] = lambda: datetime.now(UTC),
) -> Iterator[HealthVerdict]:
    """Yield one verdict per iteration, sleeping between iterations.

    Stops after ``config.max_iterations`` when it is positive, otherwise runs
    until the consumer stops iterating.

    Args:
        config: Monitor configuration.
        facade: Cloud facade.
        sleep: Blocking sleep, replaceable in tests.
        now: Clock for verdict timestamps.

    Yields:
        The verdict for each iteration.
    """
    iteration = 0
    while True:
        iteration += 1
        yield run_checks(facade, config, iteration, now)
        if config.max_iterations and iteration >= config.max_iterations:
            logger.info("Reached maximum iterations (%d)", config.max_iterations)
            return
        sleep(config.interval_seconds)


def run_monitor(
    config: MonitorConfig,
    facade: CloudFacade,
    on_verdict: Callable[[HealthVerdict], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
    now: Callable[[], datetime] = lambda: datetime.now(UTC),
) -> HealthVerdict | None:
    """Run the monitor loop until it ends or is interrupted.

    Args:
        config: Monitor configuration.
        facade: Cloud facade.
        on_verdict: Called with each verdict as it is produced.
        sleep: Blocking sleep, replaceable in tests.
        now: Clock for verdict timestamps.

    Returns:
        The final verdict, or None when interrupted before the first one.
    """
    validate_config(config)
    last: HealthVerdict | None = None
    try:
        for verdict in iter_verdicts(config, facade, sleep=sleep, now=now):
            last = verdict
            if on_verdict is not None:
                on_verdict(verdict)
    except KeyboardInterrupt:
        logger.info("Monitoring stopped by user")
    return last


def exit_code_for(verdict: HealthVerdict | None) -> int:
    """Return the process exit code for the final verdict.

    Only the final iteration counts.
    """
    if verdict is not None and verdict.has_critical_issues:
        return EXIT_CRITICAL
    return EXIT_OK
