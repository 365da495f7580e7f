"""Temporary AWS credential resolution for S3 filesystem clients."""

from s3_role_provider.aws_credentials import (
    AmbientCredentialSource,
    CacheState,
    CredentialCache,
    STSDelegationClient,
    get_ambient_source,
)
from s3_role_provider.config import ProviderConfig, Settings, load_settings
from s3_role_provider.errors import (
    AmbientUnavailable,
    ConfigurationError,
    CredentialError,
    DelegationFailure,
    ExchangeFailure,
    InitializationFailure,
)
from s3_role_provider.logging_utils import configure_logging, ensure_logging, get_logger
from s3_role_provider.models import DelegatedSession, Identity, ResourceTarget
from s3_role_provider.policy.resolution import CredentialPath, ResolutionPolicy, resolve_path
from s3_role_provider.provider import CredentialProvider

__version__ = "0.1.0"

__all__ = [
    "AmbientCredentialSource",
    "AmbientUnavailable",
    "CacheState",
    "ConfigurationError",
    "CredentialCache",
    "CredentialError",
    "CredentialPath",
    "CredentialProvider",
    "DelegatedSession",
    "DelegationFailure",
    "ExchangeFailure",
    "Identity",
    "InitializationFailure",
    "ProviderConfig",
    "ResolutionPolicy",
    "ResourceTarget",
    "STSDelegationClient",
    "Settings",
    "configure_logging",
    "ensure_logging",
    "get_ambient_source",
    "get_logger",
    "load_settings",
    "resolve_path",
]
