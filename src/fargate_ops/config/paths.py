"""Shared filesystem paths for user configuration and logs."""

from pathlib import Path

from platformdirs import user_config_dir, user_log_dir

APP_NAME = "fargate-ops"
ENV_FILENAME = ".env"


def config_dir() -> Path:
    """Return the user configuration directory.

    Returns:
        The user configuration directory path.
    """
    return Path(user_config_dir(APP_NAME))


def env_path() -> Path:
    """Return the user env file path.

    Returns:
        The user env file path.
    """
    return config_dir() / ENV_FILENAME


def log_dir() -> Path:
    """Return the user log directory.

    Returns:
        The user log directory path.
    """
    return Path(user_log_dir(APP_NAME))


def default_log_file(command: str) -> Path:
    """Return the default log file for a CLI command.

    Args:
        command: Name of the CLI command, e.g. ``deploy``.

    Returns:
        The log file path for the command.
    """
    return log_dir() / f"{command}.log"
