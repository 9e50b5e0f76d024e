"""File logging for CLI commands."""

import logging
import tempfile
from pathlib import Path

from fargate_ops.config.paths import default_log_file
from fargate_ops.core.settings import OpsSettings

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(command: str, settings: OpsSettings) -> Path:
    """Send log records for a command to its log file.

    The terminal is reserved for Rich output, so records only go to the file.
    When the user log directory is not writable the system temp directory is
    used instead.

    Args:
        command: Name of the CLI command, used for the default file name.
        settings: Loaded settings carrying the log level and optional file path.

    Returns:
        The log file in use.
    """
    log_file = Path(settings.log_file) if settings.log_file else default_log_file(command)
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file, encoding="utf-8")
    except OSError:
        log_file = Path(tempfile.gettempdir()) / f"fargate-ops-{command}.log"
        handler = logging.FileHandler(log_file, encoding="utf-8")

    level = logging.getLevelName(settings.log_level.upper())
    logging.basicConfig(
        level=level if isinstance(level, int) else logging.INFO,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=[handler],
        force=True,
    )
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    return log_file
