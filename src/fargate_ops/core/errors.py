"""Exception hierarchy for fargate-ops."""


class FargateOpsError(RuntimeError):
    """Base class for fargate-ops errors."""


class InvalidInputError(FargateOpsError):
    """Raised when command input fails validation. No cloud call is made."""


class CredentialError(FargateOpsError):
    """Raised when no usable AWS identity is available."""


class NotFoundError(FargateOpsError):
    """Raised when a named cluster, service, task definition or log group does not exist."""


class CloudAPIError(FargateOpsError):
    """Raised on transient or permission failures from an AWS call."""

    def __init__(self, message: str, code: str | None = None) -> None:
        """Initialise the error.

        Args:
            message: Human-readable description of the failure.
            code: AWS error code, when the provider returned one.
        """
        super().__init__(message)
        self.code = code


class NoLogsFoundError(FargateOpsError):
    """Raised when a log query matches no streams or events."""


class RollbackError(FargateOpsError):
    """Raised when rolling a service back to its previous task definition fails."""
