"""Host identity (EC2 instance profile) credential source.

The host identity is the same for every caller in the process, so one
source is shared by all providers. It is created on first use by
``get_ambient_source()`` and injected into providers from there.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from botocore.credentials import InstanceMetadataFetcher, InstanceMetadataProvider
from botocore.exceptions import BotoCoreError

from s3_role_provider.config import AmbientSettings
from s3_role_provider.errors import AmbientUnavailable
from s3_role_provider.models import Identity

logger = logging.getLogger(__name__)


def _instance_metadata_provider(settings: AmbientSettings) -> InstanceMetadataProvider:
    fetcher = InstanceMetadataFetcher(
        timeout=settings.timeout_seconds,
        num_attempts=settings.num_attempts,
    )
    return InstanceMetadataProvider(iam_role_fetcher=fetcher)


class AmbientCredentialSource:
    """Thread-safe, lazily loaded instance-profile credentials."""

    def __init__(
        self,
        settings: AmbientSettings | None = None,
        provider_factory: Callable[[AmbientSettings], Any] = _instance_metadata_provider,
    ) -> None:
        self._settings = settings or AmbientSettings()
        self._provider_factory = provider_factory
        self._credentials: Any = None
        self._lock = threading.Lock()

    def _get_credentials(self) -> Any:
        if self._credentials is not None:
            return self._credentials

        with self._lock:
            if self._credentials is not None:
                return self._credentials

            provider = self._provider_factory(self._settings)
            try:
                credentials = provider.load()
            except BotoCoreError as exc:
                logger.warning("Instance metadata credential fetch failed: %s", exc)
                raise AmbientUnavailable(
                    f"Instance metadata credential fetch failed: {exc}"
                ) from exc
            if credentials is None:
                raise AmbientUnavailable("No credentials available from instance metadata")

            self._credentials = credentials
            logger.info(
                "Loaded instance profile credentials (method=%s)",
                getattr(credentials, "method", "iam-role"),
            )
            return self._credentials

    def get(self) -> Identity:
        """Return the current host identity.

        Raises:
            AmbientUnavailable: If the instance metadata service cannot be reached
        """
        credentials = self._get_credentials()
        try:
            frozen = credentials.get_frozen_credentials()
        except BotoCoreError as exc:
            logger.warning("Instance profile credential refresh failed: %s", exc)
            raise AmbientUnavailable(f"Instance profile credential refresh failed: {exc}") from exc
        return Identity(
            access_key_id=frozen.access_key,
            secret_access_key=frozen.secret_key,
            session_token=frozen.token,
        )


_shared_source: AmbientCredentialSource | None = None
_shared_lock = threading.Lock()


def get_ambient_source(settings: AmbientSettings | None = None) -> AmbientCredentialSource:
    """Return the process-wide ambient source, creating it exactly once.

    *settings* only applies to the call that creates the source.
    """
    global _shared_source
    if _shared_source is not None:
        return _shared_source
    with _shared_lock:
        if _shared_source is None:
            _shared_source = AmbientCredentialSource(settings=settings)
        return _shared_source


def reset_ambient_source() -> None:
    """Drop the shared source. Test helper."""
    global _shared_source
    with _shared_lock:
        _shared_source = None
