"""AWS credential sources and the delegated session cache."""

from s3_role_provider.aws_credentials.ambient import (
    AmbientCredentialSource,
    get_ambient_source,
    reset_ambient_source,
)
from s3_role_provider.aws_credentials.cache import CacheState, CredentialCache
from s3_role_provider.aws_credentials.sts_provider import (
    DelegationClient,
    STSDelegationClient,
)

__all__ = [
    "AmbientCredentialSource",
    "CacheState",
    "CredentialCache",
    "DelegationClient",
    "STSDelegationClient",
    "get_ambient_source",
    "reset_ambient_source",
]
