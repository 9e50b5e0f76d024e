"""Deployment controller for ECS services.

A deployment registers a new task definition revision carrying the new image,
force-updates the service, optionally waits for the service to stabilise and
validates task health, and rolls back to the previous task definition when a
committed deployment fails. New revisions are never deregistered.
"""

import copy
import logging
import signal
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from fargate_ops.core.errors import (
    FargateOpsError,
    InvalidInputError,
    NotFoundError,
    RollbackError,
)
from fargate_ops.core.interfaces import CloudFacade
from fargate_ops.core.models import DeploymentRequest, ServiceSnapshot, TaskHealth

logger = logging.getLogger(__name__)

MIN_TIMEOUT_SECONDS = 60
DEFAULT_POLL_INTERVAL_SECONDS = 10
DEFAULT_GRACE_PERIOD_SECONDS = 15
DEFERRED_SIGNALS = (signal.SIGINT, signal.SIGTERM)

# Fields assigned by ECS that register_task_definition rejects.
PROVIDER_ASSIGNED_FIELDS = (
    "taskDefinitionArn",
    "revision",
    "status",
    "requiresAttributes",
    "compatibilities",
    "registeredAt",
    "registeredBy",
    "deregisteredAt",
)


class DeploymentStatus(StrEnum):
    """Terminal state of a deployment run."""

    SUCCEEDED = "succeeded"
    SUCCEEDED_UNCONFIRMED = "succeeded_unconfirmed"
    INVALID_INPUT = "invalid_input"
    CLOUD_ERROR = "cloud_error"
    DEPLOYMENT_FAILED = "deployment_failed"
    HEALTH_CHECK_FAILED = "health_check_failed"
    ROLLBACK_FAILED = "rollback_failed"
    INTERRUPTED = "interrupted"

    @property
    def exit_code(self) -> int:
        """Return the process exit code for this status."""
        return EXIT_CODES[self]


EXIT_CODES = {
    DeploymentStatus.SUCCEEDED: 0,
    DeploymentStatus.SUCCEEDED_UNCONFIRMED: 0,
    DeploymentStatus.INVALID_INPUT: 1,
    DeploymentStatus.CLOUD_ERROR: 2,
    DeploymentStatus.DEPLOYMENT_FAILED: 3,
    DeploymentStatus.HEALTH_CHECK_FAILED: 4,
    DeploymentStatus.ROLLBACK_FAILED: 5,
    DeploymentStatus.INTERRUPTED: 130,
}


@dataclass
class DeploymentResult:
    """Outcome of a deployment run."""

    request: DeploymentRequest
    status: DeploymentStatus = DeploymentStatus.SUCCEEDED
    message: str = ""
    previous_task_definition: str | None = None
    new_task_definition: str | None = None
    deployment_id: str | None = None
    rolled_back: bool = False
    elapsed_seconds: float = 0.0

    @property
    def exit_code(self) -> int:
        """Return the process exit code for this result."""
        return self.status.exit_code

    @property
    def succeeded(self) -> bool:
        """Return true when the deployment was not rejected, failed or rolled back."""
        return self.exit_code == 0


def validate_request(request: DeploymentRequest) -> None:
    """Reject a request before any cloud call is made.

    Args:
        request: The deployment request.

    Raises:
        InvalidInputError: If an identifying field is empty or the timeout is too short.
    """
    if not request.cluster_name.strip():
        raise InvalidInputError("Cluster name is required. Use -c or --cluster option.")
    if not request.service_name.strip():
        raise InvalidInputError("Service name is required. Use -s or --service option.")
    if not request.image_uri.strip():
        raise InvalidInputError("Image URI is required. Use -i or --image option.")
    if request.timeout_seconds < MIN_TIMEOUT_SECONDS:
        raise InvalidInputError(f"Timeout must be a number >= {MIN_TIMEOUT_SECONDS} seconds.")


def clone_task_definition(document: dict[str, Any], image_uri: str) -> dict[str, Any]:
    """Return a registrable copy of a task definition with a new image.

    Only the first container definition's image is replaced.

    Args:
        document: Task definition as returned by describe_task_definition.
        image_uri: The image to deploy.

    Returns:
        Keyword arguments for register_task_definition.
    """
    clone = copy.deepcopy(document)
    for field in PROVIDER_ASSIGNED_FIELDS:
        clone.pop(field, None)

    containers = clone.get("containerDefinitions") or []
    if not containers:
        raise InvalidInputError("Task definition has no container definitions to update.")
    containers[0]["image"] = image_uri
    return clone


def is_stable(snapshot: ServiceSnapshot) -> bool:
    """Return true when running matches desired and one deployment is active.

    A service scaled to zero with a single deployment is stable.
    """
    return (
        snapshot.running_count == snapshot.desired_count
        and snapshot.active_deployment_count == 1
    )


def rollback(facade: CloudFacade, cluster: str, service: str, task_definition: str) -> str:
    """Force a new deployment of a service's previous task definition.

    Rollback is attempted exactly once.

    Args:
        facade: Cloud facade.
        cluster: ECS cluster name.
        service: ECS service name.
        task_definition: The task definition to restore.

    Returns:
        The rollback deployment ID.

    Raises:
        RollbackError: If the service update fails.
    """
    try:
        return facade.update_service(cluster, service, task_definition, force_new_deployment=True)
    except FargateOpsError as exc:
        raise RollbackError(f"Rollback failed! Manual intervention required. {exc}") from exc


@contextmanager
def deferred_interrupts(reraise: bool = True) -> Iterator[list[int]]:
    """Hold SIGINT and SIGTERM until the enclosed block finishes.

    Service changes are never abandoned mid-call. Signals received inside the
    block are collected in the yielded list and, when ``reraise`` is set, turned
    into ``KeyboardInterrupt`` once the block completes. Signal handlers can only
    be installed from the main thread; elsewhere the block runs unguarded.

    Args:
        reraise: Raise ``KeyboardInterrupt`` after the block if a signal arrived.

    Yields:
        The signal numbers received while the block ran.
    """
    received: list[int] = []
    if threading.current_thread() is not threading.main_thread():
        yield received
        return

    def _record(signum: int, frame: Any) -> None:
        received.append(signum)

    previous = {signum: signal.signal(signum, _record) for signum in DEFERRED_SIGNALS}
    try:
        yield received
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)
    if received:
        logger.warning("Signal received during a service change; the change was completed")
        if reraise:
            raise KeyboardInterrupt


def _interrupted_message(result: DeploymentResult) -> str:
    if result.deployment_id is not None:
        return (
            f"Deployment interrupted after service update {result.deployment_id} was issued. "
            "The update was not rolled back; check the service before retrying."
        )
    if result.new_task_definition is not None:
        return (
            f"Deployment interrupted after registering {result.new_task_definition}. "
            "The service was not updated."
        )
    return "Deployment interrupted before the service was changed."


def _log_only(message: str) -> None:
    """Default reporter: messages are already logged."""


class DeploymentController:
    """Runs the deploy, stabilise, health-check and rollback sequence."""

    def __init__(
        self,
        facade: CloudFacade,
        reporter: Callable[[str], None] = _log_only,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        poll_interval_seconds: int = DEFAULT_POLL_INTERVAL_SECONDS,
        grace_period_seconds: int = DEFAULT_GRACE_PERIOD_SECONDS,
    ) -> None:
        """Initialise the controller.

        Args:
            facade: Cloud facade used for every AWS call.
            reporter: Receives human-readable progress messages.
            sleep: Blocking sleep, replaceable in tests.
            clock: Monotonic clock in seconds, replaceable in tests.
            poll_interval_seconds: Delay between stability polls.
            grace_period_seconds: Delay between stability and the task health check.
        """
        self._facade = facade
        self._reporter = reporter
        self._sleep = sleep
        self._clock = clock
        self._poll_interval_seconds = poll_interval_seconds
        self._grace_period_seconds = grace_period_seconds

    def run(self, request: DeploymentRequest) -> DeploymentResult:
        """Deploy a new image to a service.

        Args:
            request: The deployment request.

        Returns:
            The deployment result. Every branch, including failures, returns a result.
        """
        started = self._clock()
        result = DeploymentResult(request=request)
        try:
            self._execute(request, result)
        except KeyboardInterrupt:
            result.status = DeploymentStatus.INTERRUPTED
            result.message = _interrupted_message(result)
            logger.warning(result.message)
        result.elapsed_seconds = self._clock() - started
        logger.info(
            "Deployment finished: status=%s cluster=%s service=%s image=%s duration=%.0fs",
            result.status,
            request.cluster_name,
            request.service_name,
            request.image_uri,
            result.elapsed_seconds,
        )
        return result

    def _execute(self, request: DeploymentRequest, result: DeploymentResult) -> None:
        """Walk the deployment state machine, recording the outcome on ``result``."""
        self._report("Validating input parameters")
        try:
            validate_request(request)
        except InvalidInputError as exc:
            self._finish(result, DeploymentStatus.INVALID_INPUT, str(exc))
            return

        try:
            self._facade.verify_credentials()
            self._report("Retrieving current task definition")
            current = self._facade.describe_service(request.cluster_name, request.service_name)
            if not current.task_definition:
                raise NotFoundError(
                    f"Service '{request.service_name}' in cluster '{request.cluster_name}' "
                    "has no task definition"
                )
            result.previous_task_definition = current.task_definition
            self._report(f"Current task definition: {current.task_definition}")

            self._report(f"Creating new task definition with image: {request.image_uri}")
            document = self._facade.describe_task_definition(current.task_definition)
            clone = clone_task_definition(document, request.image_uri)
            with deferred_interrupts():
                registered = self._facade.register_task_definition(clone)
                result.new_task_definition = registered.arn
        except FargateOpsError as exc:
            self._finish(result, DeploymentStatus.CLOUD_ERROR, str(exc))
            return
        self._report(f"New task definition created: {registered.arn}")

        self._report(f"Updating service '{request.service_name}' with new task definition")
        try:
            with deferred_interrupts():
                result.deployment_id = self._facade.update_service(
                    request.cluster_name,
                    request.service_name,
                    registered.arn,
                    force_new_deployment=True,
                )
        except FargateOpsError as exc:
            self._handle_update_failure(request, result, exc)
            return
        self._report(f"Service update initiated. Deployment ID: {result.deployment_id}")

        if not request.wait_for_stable:
            self._finish(
                result,
                DeploymentStatus.SUCCEEDED_UNCONFIRMED,
                "Deployment initiated. Use --wait-stable to wait for completion.",
            )
            return

        stable = self.wait_for_stable(request)
        if stable is None:
            self._roll_back(
                request,
                result,
                DeploymentStatus.DEPLOYMENT_FAILED,
                f"Service failed to stabilize within {request.timeout_seconds}s",
            )
            return

        self._report(f"Waiting {self._grace_period_seconds}s before checking task health")
        self._sleep(self._grace_period_seconds)
        try:
            problems = self.check_task_health(request, stable)
        except FargateOpsError as exc:
            self._roll_back(
                request,
                result,
                DeploymentStatus.DEPLOYMENT_FAILED,
                f"Task health check could not complete: {exc}",
            )
            return
        if problems:
            self._roll_back(
                request,
                result,
                DeploymentStatus.HEALTH_CHECK_FAILED,
                f"Health check failed: {'; '.join(problems)}",
            )
            return

        self._finish(result, DeploymentStatus.SUCCEEDED, "Deployment completed successfully!")

    def wait_for_stable(self, request: DeploymentRequest) -> ServiceSnapshot | None:
        """Poll the service until it is stable or the timeout elapses.

        Args:
            request: The deployment request.

        Returns:
            The stable service snapshot, or None on timeout.
        """
        self._report(
            f"Waiting for service to become stable (timeout: {request.timeout_seconds}s)"
        )
        deadline = self._clock() + request.timeout_seconds
        while self._clock() < deadline:
            try:
                snapshot = self._facade.describe_service(
                    request.cluster_name, request.service_name
                )
            except FargateOpsError as exc:
                logger.warning("Stability poll failed: %s", exc)
                self._reporter(f"Could not read service status, retrying: {exc}")
            else:
                self._report(
                    f"Status: {snapshot.running_count}/{snapshot.desired_count} tasks running, "
                    f"{snapshot.active_deployment_count} active deployment(s)"
                )
                if is_stable(snapshot):
                    self._report("Service is stable!")
                    return snapshot
            self._sleep(self._poll_interval_seconds)

        logger.error("Timeout waiting for service to stabilize")
        return None

    def check_task_health(self, request: DeploymentRequest, stable: ServiceSnapshot) -> list[str]:
        """Inspect each running task's health.

        A task whose health is neither HEALTHY nor UNKNOWN is unhealthy. Having no
        running tasks is a problem unless the service is scaled to zero.

        Args:
            request: The deployment request.
            stable: The service snapshot that satisfied the stability check.

        Returns:
            Descriptions of every problem found; empty when all tasks are healthy.
        """
        self._report("Checking health of running tasks")
        task_arns = self._facade.list_running_tasks(request.cluster_name, request.service_name)
        if not task_arns:
            if stable.desired_count == 0:
                self._report("Service is scaled to zero; no tasks to check")
                return []
            return ["No running tasks found"]

        problems: list[str] = []
        for task_arn in task_arns:
            for task in self._facade.describe_tasks(request.cluster_name, [task_arn]):
                line = (
                    f"Task {task.task_id} is {task.last_status} "
                    f"with health: {task.health_status}"
                )
                if task.health_status not in (TaskHealth.HEALTHY, TaskHealth.UNKNOWN):
                    logger.warning(line)
                    self._reporter(line)
                    problems.append(line)
                else:
                    self._report(line)

        if not problems:
            self._report("All tasks are healthy")
        return problems

    def _handle_update_failure(
        self,
        request: DeploymentRequest,
        result: DeploymentResult,
        exc: FargateOpsError,
    ) -> None:
        """Decide whether a failed service update needs rolling back.

        The service is re-read; a rollback is issued only when it already
        points at the new task definition.
        """
        reason = f"Failed to update service: {exc}"
        try:
            current = self._facade.describe_service(request.cluster_name, request.service_name)
        except FargateOpsError as describe_exc:
            logger.warning("Could not re-verify service after failed update: %s", describe_exc)
            self._finish(result, DeploymentStatus.DEPLOYMENT_FAILED, reason)
            return

        if current.task_definition == result.new_task_definition:
            self._roll_back(request, result, DeploymentStatus.DEPLOYMENT_FAILED, reason)
            return
        self._finish(result, DeploymentStatus.DEPLOYMENT_FAILED, reason)

    def _roll_back(
        self,
        request: DeploymentRequest,
        result: DeploymentResult,
        status: DeploymentStatus,
        reason: str,
    ) -> None:
        """Restore the previous task definition and record the outcome."""
        logger.error(reason)
        previous = result.previous_task_definition
        if previous is None:
            self._finish(result, status, reason)
            return

        self._report(f"Initiating rollback to previous task definition: {previous}")
        # The run ends after the rollback, so a signal here only needs to let it finish.
        try:
            with deferred_interrupts(reraise=False):
                rollback(self._facade, request.cluster_name, request.service_name, previous)
        except RollbackError as exc:
            self._finish(result, DeploymentStatus.ROLLBACK_FAILED, f"{reason}. {exc}")
            return

        result.rolled_back = True
        self._report("Rollback initiated successfully")
        self._finish(result, status, f"{reason}. Rolled back to {previous}.")

    def _finish(self, result: DeploymentResult, status: DeploymentStatus, message: str) -> None:
        result.status = status
        result.message = message
        if status.exit_code == 0:
            logger.info(message)
        else:
            logger.error(message)

    def _report(self, message: str) -> None:
        logger.info(message)
        self._reporter(message)


def deploy(
    request: DeploymentRequest,
    facade: CloudFacade,
    reporter: Callable[[str], None] = _log_only,
    **options: Any,
) -> DeploymentResult:
    """Deploy a new image to a service.

    Args:
        request: The deployment request.
        facade: Cloud facade used for every AWS call.
        reporter: Receives human-readable progress messages.
        **options: Passed to ``DeploymentController`` (sleep, clock, intervals).

    Returns:
        The deployment result.
    """
    return DeploymentController(facade, reporter=reporter, **options).run(request)
