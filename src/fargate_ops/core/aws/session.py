"""AWS session helpers."""

from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from fargate_ops.core.aws.errors import translate_error
from fargate_ops.core.models import CallerIdentity
from fargate_ops.core.settings import AWSSettings


def create_session(settings: AWSSettings) -> boto3.session.Session:
    """Create a boto3 session.

    Args:
        settings: AWS connection settings.

    Returns:
        A session bound to the configured profile and region.
    """
    if settings.profile:
        try:
            return boto3.session.Session(
                profile_name=settings.profile,
                region_name=settings.region,
            )
        except BotoCoreError as exc:
            raise translate_error(exc, "load the AWS profile") from exc

    return boto3.session.Session(region_name=settings.region)


def get_identity(sts_client: Any) -> CallerIdentity:
    """Fetch the current AWS identity.

    Args:
        sts_client: A boto3 STS client.

    Returns:
        The caller identity.
    """
    try:
        response = sts_client.get_caller_identity()
    except (BotoCoreError, ClientError) as exc:
        raise translate_error(exc, "read the AWS identity") from exc

    return CallerIdentity(
        account=str(response.get("Account", "")),
        arn=str(response.get("Arn", "")),
        user_id=str(response.get("UserId", "")),
    )
