"""Choose which credential path serves a resource target."""

from __future__ import annotations

from enum import Enum

from s3_role_provider.config import ProviderConfig
from s3_role_provider.models import ResourceTarget


class CredentialPath(str, Enum):
    EXPLICIT_SESSION = "explicit_session"
    DELEGATED_ROLE = "delegated_role"
    AMBIENT = "ambient"


class ResolutionPolicy:
    """Stateless decision table over (target, config).

    Explicit key material wins when it is complete and the target falls
    under the configured resource prefix. An empty prefix covers every
    target. A configured role upgrades the explicit keys to a delegated
    session; anything else falls back to the host identity.
    """

    def resolve(self, target: ResourceTarget, config: ProviderConfig) -> CredentialPath:
        if config.explicit_identity is None:
            return CredentialPath.AMBIENT
        if not target.matches(config.resource_prefix):
            return CredentialPath.AMBIENT
        if config.role_arn:
            return CredentialPath.DELEGATED_ROLE
        return CredentialPath.EXPLICIT_SESSION


_DEFAULT_POLICY = ResolutionPolicy()


def resolve_path(target: ResourceTarget | str, config: ProviderConfig) -> CredentialPath:
    return _DEFAULT_POLICY.resolve(ResourceTarget.of(target), config)
