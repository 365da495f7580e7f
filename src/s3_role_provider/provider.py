"""Public credential provider facade.

A provider is bound to one resource target (the filesystem URI it was
created for) and answers credential requests for it, or for a target given
per call. Each provider owns its own delegated session cache; the host
identity source is shared process-wide.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping

from s3_role_provider.aws_credentials.ambient import AmbientCredentialSource, get_ambient_source
from s3_role_provider.aws_credentials.cache import CredentialCache
from s3_role_provider.aws_credentials.sts_provider import DelegationClient, STSDelegationClient
from s3_role_provider.config import (
    AmbientSettings,
    ProviderConfig,
    Settings,
    STSSettings,
    load_settings,
)
from s3_role_provider.errors import ConfigurationError, InitializationFailure
from s3_role_provider.logging_utils import ensure_logging
from s3_role_provider.models import Identity, ResourceTarget
from s3_role_provider.policy.resolution import CredentialPath, ResolutionPolicy
from s3_role_provider.utils.time import Clock

logger = logging.getLogger(__name__)


class CredentialProvider:
    """Resolves credentials for S3 resource targets."""

    def __init__(
        self,
        config: ProviderConfig | None,
        target: ResourceTarget | str,
        *,
        delegation_client: DelegationClient | None = None,
        ambient_source: AmbientCredentialSource | None = None,
        cache: CredentialCache | None = None,
        clock: Clock | None = None,
        policy: ResolutionPolicy | None = None,
        sts_settings: STSSettings | None = None,
        ambient_settings: AmbientSettings | None = None,
        init_error: ConfigurationError | None = None,
    ) -> None:
        if config is None and init_error is None:
            raise ConfigurationError("A ProviderConfig is required")
        self._config = config
        self._target = ResourceTarget.of(target)
        self._init_error = init_error
        self._policy = policy or ResolutionPolicy()
        self._delegation_client = delegation_client or STSDelegationClient(sts_settings)
        self._ambient_source = ambient_source
        self._ambient_settings = ambient_settings
        if cache is None and config is not None:
            cache = CredentialCache(
                session_duration_seconds=config.session_duration_seconds,
                renewal_skew_seconds=config.renewal_skew_seconds,
                clock=clock,
            )
        self._cache = cache

    @classmethod
    def from_settings(
        cls,
        target: ResourceTarget | str,
        settings: Settings | None = None,
        **kwargs: object,
    ) -> "CredentialProvider":
        """Build from environment settings.

        Process logging is configured from the same settings on first use.
        Configuration errors do not raise here; they surface as
        ``InitializationFailure`` on the first credential request.
        """
        try:
            settings = settings or load_settings()
        except ConfigurationError as exc:
            logger.error("Credential provider configuration failed: %s", exc)
            return cls(None, target, init_error=exc, **kwargs)  # type: ignore[arg-type]
        ensure_logging(settings)
        try:
            config = ProviderConfig.from_settings(settings)
        except ConfigurationError as exc:
            logger.error("Credential provider configuration failed: %s", exc)
            return cls(None, target, init_error=exc, **kwargs)  # type: ignore[arg-type]
        kwargs.setdefault("sts_settings", settings.sts)
        kwargs.setdefault("ambient_settings", settings.ambient)
        return cls(config, target, **kwargs)  # type: ignore[arg-type]

    @classmethod
    def from_mapping(
        cls,
        target: ResourceTarget | str,
        conf: Mapping[str, str],
        **kwargs: object,
    ) -> "CredentialProvider":
        """Build from Hadoop S3A-style properties, with the same lazy errors."""
        try:
            config = ProviderConfig.from_mapping(conf)
        except ConfigurationError as exc:
            logger.error("Credential provider configuration failed: %s", exc)
            return cls(None, target, init_error=exc, **kwargs)  # type: ignore[arg-type]
        return cls(config, target, **kwargs)  # type: ignore[arg-type]

    @property
    def target(self) -> ResourceTarget:
        return self._target

    @property
    def config(self) -> ProviderConfig:
        return self._require_config()

    @property
    def cache(self) -> CredentialCache | None:
        return self._cache

    def _require_config(self) -> ProviderConfig:
        if self._init_error is not None:
            raise InitializationFailure(str(self._init_error)) from self._init_error
        if self._config is None:
            raise ConfigurationError("A ProviderConfig is required")
        return self._config

    def _ambient(self) -> AmbientCredentialSource:
        if self._ambient_source is None:
            self._ambient_source = get_ambient_source(self._ambient_settings)
        return self._ambient_source

    def resolve(self, target: ResourceTarget | str | None = None) -> CredentialPath:
        config = self._require_config()
        resolved = ResourceTarget.of(target) if target is not None else self._target
        return self._policy.resolve(resolved, config)

    def get_credentials(self, target: ResourceTarget | str | None = None) -> Identity:
        """Return credentials for *target*, or for the provider's own target.

        Raises:
            InitializationFailure: Construction-time configuration failed
            DelegationFailure: Role assumption failed with no usable previous session
            AmbientUnavailable: Host identity credentials could not be fetched
        """
        config = self._require_config()
        resolved = ResourceTarget.of(target) if target is not None else self._target
        path = self._policy.resolve(resolved, config)

        if path is CredentialPath.DELEGATED_ROLE:
            logger.debug("Reading with role %s: %s", config.role_arn, resolved.locator)
            session = self._cache.get_or_renew(  # type: ignore[union-attr]
                self._delegation_client,
                config.explicit_identity,  # type: ignore[arg-type]
                config.role_arn,  # type: ignore[arg-type]
                config.session_name_prefix,
            )
            return session.to_identity()

        if path is CredentialPath.EXPLICIT_SESSION:
            logger.debug("Using explicit session credentials: %s", resolved.locator)
            return config.explicit_identity  # type: ignore[return-value]

        logger.debug("Using instance role: %s", resolved.locator)
        return self._ambient().get()

    async def get_credentials_async(
        self, target: ResourceTarget | str | None = None
    ) -> Identity:
        return await asyncio.to_thread(self.get_credentials, target)

    def refresh(self) -> None:
        """Force a new delegated session for the provider's own target.

        Other credential paths have nothing to renew, so this is a no-op
        for them.
        """
        config = self._require_config()
        path = self._policy.resolve(self._target, config)
        if path is not CredentialPath.DELEGATED_ROLE:
            logger.debug("Refresh ignored for %s path", path.value)
            return
        self._cache.renew(  # type: ignore[union-attr]
            self._delegation_client,
            config.explicit_identity,  # type: ignore[arg-type]
            config.role_arn,  # type: ignore[arg-type]
            config.session_name_prefix,
        )

    def __repr__(self) -> str:
        role = self._config.role_arn if self._config is not None else None
        return f"{type(self).__name__}(target={self._target.locator!r}, role_arn={role!r})"
