"""fargate-ops - deploy, monitor and read logs for ECS Fargate services."""

__version__ = "0.1.0"
