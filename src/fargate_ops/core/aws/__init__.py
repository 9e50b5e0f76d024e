"""boto3 bindings for the cloud facade."""

from fargate_ops.core.aws.facade import Boto3CloudFacade, create_facade
from fargate_ops.core.aws.session import create_session, get_identity

__all__ = [
    "Boto3CloudFacade",
    "create_facade",
    "create_session",
    "get_identity",
]
