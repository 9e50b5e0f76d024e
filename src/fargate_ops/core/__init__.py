"""fargate-ops core modules."""

from fargate_ops.core.deploy import DeploymentController, DeploymentResult, DeploymentStatus, deploy
from fargate_ops.core.interfaces import CloudFacade
from fargate_ops.core.models import DeploymentRequest, HealthVerdict, LogQuery, MonitorConfig
from fargate_ops.core.monitor import iter_verdicts, run_monitor
from fargate_ops.core.settings import OpsSettings, get_settings

__all__ = [
    "CloudFacade",
    "DeploymentController",
    "DeploymentRequest",
    "DeploymentResult",
    "DeploymentStatus",
    "HealthVerdict",
    "LogQuery",
    "MonitorConfig",
    "OpsSettings",
    "deploy",
    "get_settings",
    "iter_verdicts",
    "run_monitor",
]
