"""Translate botocore failures into fargate-ops errors."""

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    EndpointConnectionError,
    NoCredentialsError,
    PartialCredentialsError,
    ProfileNotFound,
)

from fargate_ops.core.errors import CloudAPIError, CredentialError, FargateOpsError, NotFoundError

AUTH_ERROR_CODES = {
    "ExpiredToken",
    "ExpiredTokenException",
    "UnrecognizedClientException",
    "InvalidClientTokenId",
    "InvalidSignatureException",
    "AccessDenied",
    "AccessDeniedException",
}

NOT_FOUND_ERROR_CODES = {
    "ClusterNotFoundException",
    "ServiceNotFoundException",
    "ServiceNotActiveException",
    "ResourceNotFoundException",
    "TargetGroupNotFound",
    "TargetGroupNotFoundException",
}


def error_code(exc: ClientError) -> str:
    """Return the AWS error code carried by a client error.

    Args:
        exc: The botocore client error.

    Returns:
        The error code, or an empty string.
    """
    return str(exc.response.get("Error", {}).get("Code", ""))


def translate_error(exc: Exception, action: str) -> FargateOpsError:
    """Map a botocore exception onto the fargate-ops error hierarchy.

    Args:
        exc: Exception raised by a boto3 call.
        action: Short description of the failed call, used in the message.

    Returns:
        The translated error. Callers raise it ``from exc``.
    """
    if isinstance(exc, (NoCredentialsError, PartialCredentialsError, ProfileNotFound)):
        return CredentialError(f"AWS credentials not configured or invalid: {exc}")
    if isinstance(exc, ClientError):
        code = error_code(exc)
        if code in AUTH_ERROR_CODES:
            return CredentialError(f"AWS rejected the credentials while trying to {action}: {exc}")
        if code in NOT_FOUND_ERROR_CODES:
            return NotFoundError(f"Failed to {action}: {exc}")
        return CloudAPIError(f"Failed to {action}: {exc}", code=code or None)
    if isinstance(exc, EndpointConnectionError):
        return CloudAPIError(f"Could not reach the AWS endpoint to {action}: {exc}")
    if isinstance(exc, BotoCoreError):
        return CloudAPIError(f"Failed to {action}: {exc}")
    return CloudAPIError(f"Unexpected error trying to {action}: {exc}")


def exception_chain(exc: BaseException) -> list[BaseException]:
    """Return exceptions in cause/context chain.

    Args:
        exc: Root exception.

    Returns:
        Ordered exception chain from root to cause/context.
    """
    chain: list[BaseException] = []
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        chain.append(current)
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return chain


def is_endpoint_error(exc: BaseException) -> bool:
    """Return true when an exception chain indicates endpoint/network errors.

    Args:
        exc: Raised exception.

    Returns:
        True when the chain contains endpoint connection errors.
    """
    return any(isinstance(item, EndpointConnectionError) for item in exception_chain(exc))
