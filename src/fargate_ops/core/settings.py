"""Runtime settings for fargate-ops."""

from botocore.config import Config
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from fargate_ops.config.paths import env_path

ENV_FILE_PATH = str(env_path())


class AWSSettings(BaseSettings):
    """AWS connection configuration."""

    model_config = SettingsConfigDict(env_prefix="AWS_", env_file=ENV_FILE_PATH, extra="ignore")

    region: str | None = Field(default=None, description="AWS region")
    profile: str | None = Field(default=None, description="Named AWS profile")
    connect_timeout_seconds: int = Field(default=10, description="Per-call connect timeout")
    read_timeout_seconds: int = Field(default=60, description="Per-call read timeout")
    max_attempts: int = Field(default=3, description="Retry attempts for throttled calls")


class DeploySettings(BaseSettings):
    """Defaults for the deploy command."""

    model_config = SettingsConfigDict(
        env_prefix="FARGATE_OPS_DEPLOY_",
        env_file=ENV_FILE_PATH,
        extra="ignore",
    )

    timeout_seconds: int = Field(
        default=600, description="Seconds to wait for the service to stabilise"
    )
    poll_interval_seconds: int = Field(default=10, description="Stability poll interval")
    grace_period_seconds: int = Field(default=15, description="Delay before task health check")


class MonitorSettings(BaseSettings):
    """Defaults for the monitor command."""

    model_config = SettingsConfigDict(
        env_prefix="FARGATE_OPS_MONITOR_",
        env_file=ENV_FILE_PATH,
        extra="ignore",
    )

    interval_seconds: int = Field(default=30, description="Seconds between health checks")


class LogsSettings(BaseSettings):
    """Defaults for the logs command."""

    model_config = SettingsConfigDict(
        env_prefix="FARGATE_OPS_LOGS_",
        env_file=ENV_FILE_PATH,
        extra="ignore",
    )

    lines: int = Field(default=100, description="Maximum events to fetch")
    duration_minutes: int = Field(default=60, description="Look-back window")
    tail_poll_seconds: int = Field(default=5, description="Poll interval while tailing")


class OpsSettings(BaseSettings):
    """Top-level configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FARGATE_OPS_",
        env_file=ENV_FILE_PATH,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = Field(default="INFO", description="File log level")
    log_file: str | None = Field(default=None, description="Override the log file path")

    aws: AWSSettings
    deploy: DeploySettings
    monitor: MonitorSettings
    logs: LogsSettings


def get_settings() -> OpsSettings:
    """Load and return the fargate-ops configuration.

    The sub-configs are populated from the environment and the user env file
    by pydantic-settings.
    """
    return OpsSettings(
        aws=AWSSettings(),
        deploy=DeploySettings(),
        monitor=MonitorSettings(),
        logs=LogsSettings(),
    )


def boto_config(settings: AWSSettings) -> Config:
    """Build the botocore client config used for every AWS client.

    Args:
        settings: AWS connection settings.

    Returns:
        A botocore config with timeouts and adaptive retries.
    """
    return Config(
        connect_timeout=settings.connect_timeout_seconds,
        read_timeout=settings.read_timeout_seconds,
        retries={"max_attempts": settings.max_attempts, "mode": "adaptive"},
    )
