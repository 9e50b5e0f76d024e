"""boto3 implementation of the CloudFacade."""

import logging
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from fargate_ops.core.aws.errors import translate_error
from fargate_ops.core.aws.session import create_session, get_identity
from fargate_ops.core.errors import NotFoundError
from fargate_ops.core.interfaces import CloudFacade
from fargate_ops.core.models import (
    CallerIdentity,
    LogEvent,
    ServiceSnapshot,
    TargetHealthSnapshot,
    TaskDefinitionRef,
    TaskHealth,
    TaskSnapshot,
)
from fargate_ops.core.settings import AWSSettings, boto_config

logger = logging.getLogger(__name__)

DESCRIBE_TASKS_BATCH_SIZE = 100
FILTER_LOG_STREAMS_MAX = 100


class Boto3CloudFacade(CloudFacade):
    """CloudFacade backed by boto3 ECS, ELBv2, CloudWatch Logs and STS clients."""

    def __init__(self, session: boto3.session.Session, config: Config | None = None) -> None:
        """Create the service clients.

        Args:
            session: The boto3 session to create clients from.
            config: Optional botocore client config shared by all clients.
        """
        try:
            self.ecs: Any = session.client("ecs", config=config)
            self.elbv2: Any = session.client("elbv2", config=config)
            self.logs: Any = session.client("logs", config=config)
            self.sts: Any = session.client("sts", config=config)
        except BotoCoreError as exc:
            raise translate_error(exc, "create AWS clients") from exc

    def verify_credentials(self) -> CallerIdentity:
        """Return the caller identity or raise ``CredentialError``."""
        identity = get_identity(self.sts)
        logger.info("Using AWS account %s (%s)", identity.account, identity.arn)
        return identity

    def describe_service(self, cluster: str, service: str) -> ServiceSnapshot:
        """Return the current state of a service.

        Args:
            cluster: ECS cluster name or ARN.
            service: ECS service name or ARN.

        Returns:
            The decoded service snapshot.
        """
        try:
            response = self.ecs.describe_services(cluster=cluster, services=[service])
        except (BotoCoreError, ClientError) as exc:
            raise translate_error(exc, f"describe service {service}") from exc

        services = response.get("services", [])
        if not services:
            reasons = ", ".join(
                str(failure.get("reason", "")) for failure in response.get("failures", [])
            )
            raise NotFoundError(
                f"Service '{service}' not found in cluster '{cluster}'"
                + (f" ({reasons})" if reasons else "")
            )
        return _service_snapshot(services[0])

    def describe_task_definition(self, task_definition: str) -> dict[str, Any]:
        """Return the full task definition document."""
        try:
            response = self.ecs.describe_task_definition(taskDefinition=task_definition)
        except (BotoCoreError, ClientError) as exc:
            raise translate_error(exc, f"describe task definition {task_definition}") from exc
        return dict(response["taskDefinition"])

    def register_task_definition(self, document: dict[str, Any]) -> TaskDefinitionRef:
        """Register a task definition document as a new revision."""
        try:
            response = self.ecs.register_task_definition(**document)
        except (BotoCoreError, ClientError) as exc:
            raise translate_error(exc, "register the task definition") from exc

        task_definition = response["taskDefinition"]
        return TaskDefinitionRef(
            arn=str(task_definition["taskDefinitionArn"]),
            family=str(task_definition.get("family", "")),
            revision=int(task_definition.get("revision", 0)),
        )

    def update_service(
        self,
        cluster: str,
        service: str,
        task_definition: str,
        force_new_deployment: bool = True,
    ) -> str:
        """Point a service at a task definition.

        Returns:
            The ID of the primary deployment, or an empty string.
        """
        try:
            response = self.ecs.update_service(
                cluster=cluster,
                service=service,
                taskDefinition=task_definition,
                forceNewDeployment=force_new_deployment,
            )
        except (BotoCoreError, ClientError) as exc:
            raise translate_error(exc, f"update service {service}") from exc

        deployments = response.get("service", {}).get("deployments", [])
        if not deployments:
            return ""
        return str(deployments[0].get("id", ""))

    def list_running_tasks(self, cluster: str, service: str) -> list[str]:
        """Return the ARNs of a service's running tasks."""
        paginator = self.ecs.get_paginator("list_tasks")
        task_arns: list[str] = []
        try:
            for page in paginator.paginate(
                cluster=cluster,
                serviceName=service,
                desiredStatus="RUNNING",
            ):
                task_arns.extend(page.get("taskArns", []))
        except (BotoCoreError, ClientError) as exc:
            raise translate_error(exc, f"list tasks for service {service}") from exc
        return task_arns

    def describe_tasks(self, cluster: str, task_arns: list[str]) -> list[TaskSnapshot]:
        """Return snapshots for the given task ARNs."""
        snapshots: list[TaskSnapshot] = []
        for start in range(0, len(task_arns), DESCRIBE_TASKS_BATCH_SIZE):
            batch = task_arns[start : start + DESCRIBE_TASKS_BATCH_SIZE]
            try:
                response = self.ecs.describe_tasks(cluster=cluster, tasks=batch)
            except (BotoCoreError, ClientError) as exc:
                raise translate_error(exc, "describe tasks") from exc
            snapshots.extend(_task_snapshot(task) for task in response.get("tasks", []))
        return snapshots

    def describe_target_health(self, target_group_arn: str) -> list[TargetHealthSnapshot]:
        """Return the health of every target in a target group."""
        try:
            response = self.elbv2.describe_target_health(TargetGroupArn=target_group_arn)
        except (BotoCoreError, ClientError) as exc:
            raise translate_error(exc, "describe target health") from exc
        return [
            _target_snapshot(description)
            for description in response.get("TargetHealthDescriptions", [])
        ]

    def log_group_exists(self, log_group: str) -> bool:
        """Return true when the named log group exists."""
        paginator = self.logs.get_paginator("describe_log_groups")
        try:
            for page in paginator.paginate(logGroupNamePrefix=log_group):
                if any(group.get("logGroupName") == log_group for group in page["logGroups"]):
                    return True
        except (BotoCoreError, ClientError) as exc:
            raise translate_error(exc, f"describe log group {log_group}") from exc
        return False

    def list_log_streams(
        self,
        log_group: str,
        name_contains: str | None = None,
        limit: int = 50,
    ) -> list[str]:
        """Return the most recently written stream names in a log group.

        Args:
            log_group: CloudWatch log group name.
            name_contains: Keep only streams whose name contains this text.
            limit: Number of most recent streams to inspect.

        Returns:
            Stream names, most recently written first.
        """
        paginator = self.logs.get_paginator("describe_log_streams")
        names: list[str] = []
        try:
            for page in paginator.paginate(
                logGroupName=log_group,
                orderBy="LastEventTime",
                descending=True,
                PaginationConfig={"MaxItems": limit},
            ):
                names.extend(stream["logStreamName"] for stream in page.get("logStreams", []))
        except (BotoCoreError, ClientError) as exc:
            raise translate_error(exc, f"list log streams in {log_group}") from exc

        if name_contains:
            names = [name for name in names if name_contains in name]
        return names

    def filter_log_events(
        self,
        log_group: str,
        start_time_ms: int,
        end_time_ms: int,
        filter_pattern: str | None = None,
        log_stream_names: list[str] | None = None,
        limit: int | None = None,
    ) -> list[LogEvent]:
        """Return log events in a time range, oldest first."""
        request: dict[str, Any] = {
            "logGroupName": log_group,
            "startTime": start_time_ms,
            "endTime": end_time_ms,
        }
        if filter_pattern:
            request["filterPattern"] = filter_pattern
        if log_stream_names:
            request["logStreamNames"] = log_stream_names[:FILTER_LOG_STREAMS_MAX]
        if limit:
            request["PaginationConfig"] = {"MaxItems": limit}

        paginator = self.logs.get_paginator("filter_log_events")
        events: list[LogEvent] = []
        try:
            for page in paginator.paginate(**request):
                events.extend(
                    LogEvent(
                        timestamp=int(event.get("timestamp", 0)),
                        message=str(event.get("message", "")).rstrip("\n"),
                        log_stream=event.get("logStreamName"),
                    )
                    for event in page.get("events", [])
                )
        except (BotoCoreError, ClientError) as exc:
            raise translate_error(exc, f"filter log events in {log_group}") from exc
        return events


def create_facade(settings: AWSSettings) -> Boto3CloudFacade:
    """Create a boto3-backed facade from settings.

    Args:
        settings: AWS connection settings.

    Returns:
        The facade.
    """
    session = create_session(settings)
    return Boto3CloudFacade(session, config=boto_config(settings))


def _service_snapshot(service: dict[str, Any]) -> ServiceSnapshot:
    """Decode a describe_services entry."""
    return ServiceSnapshot(
        status=str(service.get("status") or "UNKNOWN"),
        running_count=int(service.get("runningCount", 0)),
        desired_count=int(service.get("desiredCount", 0)),
        pending_count=int(service.get("pendingCount", 0)),
        active_deployment_count=len(service.get("deployments", [])),
        task_definition=service.get("taskDefinition"),
    )


def _task_snapshot(task: dict[str, Any]) -> TaskSnapshot:
    """Decode a describe_tasks entry."""
    health = str(task.get("healthStatus") or TaskHealth.UNKNOWN).upper()
    return TaskSnapshot(
        task_arn=str(task.get("taskArn", "")),
        last_status=str(task.get("lastStatus") or "UNKNOWN"),
        health_status=(
            TaskHealth(health) if health in TaskHealth.__members__ else TaskHealth.UNKNOWN
        ),
        cpu=task.get("cpu"),
        memory=task.get("memory"),
        private_ip=_private_ip(task),
    )


def _private_ip(task: dict[str, Any]) -> str | None:
    """Return the first private IPv4 address attached to a task."""
    for container in task.get("containers", []):
        for interface in container.get("networkInterfaces", []):
            address = interface.get("privateIpv4Address")
            if address:
                return str(address)
    for attachment in task.get("attachments", []):
        for detail in attachment.get("details", []):
            if detail.get("name") == "privateIPv4Address":
                return str(detail.get("value"))
    return None


def _target_snapshot(description: dict[str, Any]) -> TargetHealthSnapshot:
    """Decode a TargetHealthDescriptions entry."""
    target = description.get("Target", {})
    health = description.get("TargetHealth", {})
    port = target.get("Port")
    return TargetHealthSnapshot(
        target_id=str(target.get("Id", "")),
        port=int(port) if port is not None else None,
        state=str(health.get("State") or "unavailable"),
        reason=health.get("Reason"),
    )
