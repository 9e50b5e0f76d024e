"""Abstract interface for the AWS control plane.

Every deploy, monitor and logs operation goes through a ``CloudFacade``.
Implementations decode provider responses into the models in
``fargate_ops.core.models`` and raise the errors in ``fargate_ops.core.errors``.
"""

from abc import ABC, abstractmethod
from typing import Any

from fargate_ops.core.models import (
    CallerIdentity,
    LogEvent,
    ServiceSnapshot,
    TargetHealthSnapshot,
    TaskDefinitionRef,
    TaskSnapshot,
)


class CloudFacade(ABC):
    """Queries and mutations against ECS, ELBv2 and CloudWatch Logs."""

    @abstractmethod
    def verify_credentials(self) -> CallerIdentity:
        """Return the caller identity or raise ``CredentialError``."""
        raise NotImplementedError

    @abstractmethod
    def describe_service(self, cluster: str, service: str) -> ServiceSnapshot:
        """Return the current state of a service or raise ``NotFoundError``."""
        raise NotImplementedError

    @abstractmethod
    def describe_task_definition(self, task_definition: str) -> dict[str, Any]:
        """Return the full task definition document."""
        raise NotImplementedError

    @abstractmethod
    def register_task_definition(self, document: dict[str, Any]) -> TaskDefinitionRef:
        """Register a new task definition revision."""
        raise NotImplementedError

    @abstractmethod
    def update_service(
        self,
        cluster: str,
        service: str,
        task_definition: str,
        force_new_deployment: bool = True,
    ) -> str:
        """Point a service at a task definition and return the new deployment ID."""
        raise NotImplementedError

    @abstractmethod
    def list_running_tasks(self, cluster: str, service: str) -> list[str]:
        """Return the ARNs of a service's running tasks."""
        raise NotImplementedError

    @abstractmethod
    def describe_tasks(self, cluster: str, task_arns: list[str]) -> list[TaskSnapshot]:
        """Return snapshots for the given task ARNs."""
        raise NotImplementedError

    @abstractmethod
    def describe_target_health(self, target_group_arn: str) -> list[TargetHealthSnapshot]:
        """Return the health of every target in a target group."""
        raise NotImplementedError

    @abstractmethod
    def log_group_exists(self, log_group: str) -> bool:
        """Return true when the named log group exists."""
        raise NotImplementedError

    @abstractmethod
    def list_log_streams(
        self,
        log_group: str,
        name_contains: str | None = None,
        limit: int = 50,
    ) -> list[str]:
        """Return the most recently written stream names in a log group."""
        raise NotImplementedError

    @abstractmethod
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
        raise NotImplementedError
