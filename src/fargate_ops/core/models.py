"""Data models for deployments, health checks and logs."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


@dataclass
class DeploymentRequest:
    """Inputs for a single deployment run."""

    cluster_name: str
    service_name: str
    image_uri: str
    timeout_seconds: int = 600
    wait_for_stable: bool = False


@dataclass
class MonitorConfig:
    """Inputs for a health monitor run."""

    cluster_name: str
    service_name: str
    target_group_arn: str | None = None
    interval_seconds: int = 30
    max_iterations: int = 0


@dataclass
class LogQuery:
    """Inputs for a CloudWatch Logs fetch or tail."""

    log_group: str
    stream_pattern: str | None = None
    filter_pattern: str | None = None
    errors_only: bool = False
    limit: int = 100
    duration_minutes: int = 60

    @property
    def effective_filter_pattern(self) -> str | None:
        """Return the filter pattern sent to CloudWatch, if any."""
        if self.errors_only:
            return "ERROR"
        return self.filter_pattern or None


class TaskHealth(StrEnum):
    """ECS container health status of a task."""

    HEALTHY = "HEALTHY"
    UNHEALTHY = "UNHEALTHY"
    UNKNOWN = "UNKNOWN"


class FindingLevel(StrEnum):
    """Severity of a single health finding."""

    OK = "ok"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class TaskDefinitionRef(BaseModel):
    """A registered task definition revision."""

    model_config = ConfigDict(frozen=True)

    arn: str = Field(description="Task definition ARN")
    family: str = Field(default="", description="Task definition family")
    revision: int = Field(default=0, description="Task definition revision")


class CallerIdentity(BaseModel):
    """The AWS identity used for API calls."""

    account: str = ""
    arn: str = ""
    user_id: str = ""


class ServiceSnapshot(BaseModel):
    """Point-in-time state of an ECS service.

    Running and pending counts may transiently exceed the desired count during
    rolling deployments.
    """

    model_config = ConfigDict(frozen=True)

    status: str = "UNKNOWN"
    running_count: int = 0
    desired_count: int = 0
    pending_count: int = 0
    active_deployment_count: int = 0
    task_definition: str | None = None


class TaskSnapshot(BaseModel):
    """Point-in-time state of a single ECS task."""

    model_config = ConfigDict(frozen=True)

    task_arn: str
    last_status: str = "UNKNOWN"
    health_status: TaskHealth = TaskHealth.UNKNOWN
    cpu: str | None = None
    memory: str | None = None
    private_ip: str | None = None

    @property
    def task_id(self) -> str:
        """Return the short task ID from the ARN."""
        return self.task_arn.rsplit("/", 1)[-1]


class TargetHealthSnapshot(BaseModel):
    """Health of one target registered with an ALB target group."""

    model_config = ConfigDict(frozen=True)

    target_id: str
    port: int | None = None
    state: str = "unavailable"
    reason: str | None = None

    @property
    def is_healthy(self) -> bool:
        """Return true when the load balancer reports the target healthy."""
        return self.state == "healthy"


class Finding(BaseModel):
    """A single line of health check output."""

    level: FindingLevel
    message: str
    detail: bool = Field(default=False, description="Per-task or per-target line")


class ServiceCheck(BaseModel):
    """Result of checking the ECS service."""

    snapshot: ServiceSnapshot | None = None
    critical: bool = False
    error: str | None = None
    findings: list[Finding] = Field(default_factory=list)


class TaskCheck(BaseModel):
    """Result of checking the running ECS tasks."""

    tasks: list[TaskSnapshot] = Field(default_factory=list)
    healthy: int = 0
    unhealthy: int = 0
    critical: bool = False
    error: str | None = None
    findings: list[Finding] = Field(default_factory=list)


class TargetCheck(BaseModel):
    """Result of checking the ALB target group."""

    skipped: bool = False
    targets: list[TargetHealthSnapshot] = Field(default_factory=list)
    healthy: int = 0
    unhealthy: int = 0
    critical: bool = False
    error: str | None = None
    findings: list[Finding] = Field(default_factory=list)

    @property
    def total(self) -> int:
        """Return the number of registered targets."""
        return len(self.targets)


class HealthVerdict(BaseModel):
    """Aggregated health of a service for one monitor iteration."""

    iteration: int
    timestamp: datetime
    cluster: str
    service: str
    service_check: ServiceCheck
    task_check: TaskCheck
    target_check: TargetCheck
    has_critical_issues: bool

    def to_snapshot(self) -> dict[str, Any]:
        """Return the machine-readable record emitted in JSON mode.

        Returns:
            A JSON-serialisable mapping of the verdict's key counters.
        """
        snapshot = self.service_check.snapshot or ServiceSnapshot()
        return {
            "timestamp": self.timestamp.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "iteration": self.iteration,
            "cluster": self.cluster,
            "service": self.service,
            "ecs_service": {
                "status": snapshot.status,
                "running_count": snapshot.running_count,
                "desired_count": snapshot.desired_count,
                "pending_count": snapshot.pending_count,
                "deployments_count": snapshot.active_deployment_count,
            },
            "ecs_tasks": {
                "healthy": self.task_check.healthy,
                "unhealthy": self.task_check.unhealthy,
            },
            "alb_targets": {
                "healthy": self.target_check.healthy,
                "unhealthy": self.target_check.unhealthy,
                "total": self.target_check.total,
            },
            "critical_issues": self.has_critical_issues,
        }


class LogEvent(BaseModel):
    """A single CloudWatch Logs event."""

    timestamp: int = Field(description="Event time in epoch milliseconds")
    message: str = Field(default="", description="The log message content")
    log_stream: str | None = Field(default=None, description="The log stream name")


class LogAnalysis(BaseModel):
    """Summary counts for a batch of log messages."""

    error_count: int = 0
    warning_count: int = 0
    info_count: int = 0
    top_error_patterns: list[tuple[str, int]] = Field(default_factory=list)
    http_status_codes: list[tuple[str, int]] = Field(default_factory=list)
