"""STS AssumeRole delegation client.

Exchanges long-lived (or session) key material for short-lived credentials
scoped to a role. The client performs exactly one exchange per call; retry
and fallback policy belong to the session cache.
"""

from __future__ import annotations

import hashlib
import logging
import re
import threading
from datetime import datetime
from typing import Any, Protocol

import botocore.session
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    ReadTimeoutError,
)

from s3_role_provider.config import STSSettings
from s3_role_provider.errors import ExchangeFailure
from s3_role_provider.models import DelegatedSession, Identity

logger = logging.getLogger(__name__)

_ERROR_CODE_MAP = {
    "AccessDenied": "access_denied",
    "ExpiredToken": "token_expired",
    "ExpiredTokenException": "token_expired",
    "InvalidClientTokenId": "invalid_client_token",
    "MalformedPolicyDocument": "policy_error",
    "PackedPolicyTooLarge": "policy_too_large",
    "RegionDisabledException": "region_disabled",
}


class DelegationClient(Protocol):
    """Performs one role-assumption exchange."""

    def assume_role(
        self,
        identity: Identity,
        role_arn: str,
        session_name: str,
        duration_seconds: int = 3600,
    ) -> DelegatedSession: ...


def _identity_fingerprint(identity: Identity) -> str:
    material = "\x1f".join(
        (identity.access_key_id, identity.secret_access_key, identity.session_token or "")
    )
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


class STSDelegationClient:
    """Thread-safe STS client wrapper for AssumeRole."""

    def __init__(self, settings: STSSettings | None = None) -> None:
        self._settings = settings or STSSettings()
        self._clients: dict[str, Any] = {}
        self._lock = threading.Lock()

    def _get_client(self, identity: Identity) -> Any:
        key = _identity_fingerprint(identity)
        client = self._clients.get(key)
        if client is not None:
            return client

        with self._lock:
            client = self._clients.get(key)
            if client is not None:
                return client

            session = botocore.session.get_session()
            client = session.create_client(
                "sts",
                region_name=self._settings.region,
                aws_access_key_id=identity.access_key_id,
                aws_secret_access_key=identity.secret_access_key,
                aws_session_token=identity.session_token,
                config=Config(
                    connect_timeout=self._settings.connect_timeout_seconds,
                    read_timeout=self._settings.read_timeout_seconds,
                    # Exactly one request per exchange.
                    retries={"total_max_attempts": 1},
                ),
            )
            self._clients[key] = client
            logger.info(
                "STS client initialized (region=%s, access_key_id=%s***)",
                self._settings.region,
                identity.access_key_id[:8],
            )
            return client

    def assume_role(
        self,
        identity: Identity,
        role_arn: str,
        session_name: str,
        duration_seconds: int = 3600,
    ) -> DelegatedSession:
        """
        Assume *role_arn* using *identity* as the calling principal.

        Args:
            identity: Key material used to sign the STS request
            role_arn: The ARN of the role to assume
            session_name: Session name recorded in CloudTrail
            duration_seconds: Requested credential lifetime

        Returns:
            DelegatedSession with the temporary keys and absolute expiry

        Raises:
            ExchangeFailure: On any transport, auth or response error
        """
        client = self._get_client(identity)
        safe_session_name = self._sanitize_session_name(session_name)

        params: dict[str, Any] = {
            "RoleArn": role_arn,
            "RoleSessionName": safe_session_name,
            "DurationSeconds": duration_seconds,
        }

        try:
            response = client.assume_role(**params)
        except ClientError as exc:
            error_code = exc.response.get("Error", {}).get("Code", "Unknown")
            error_message = exc.response.get("Error", {}).get("Message", str(exc))
            logger.warning(
                "STS failed: role=%s, session=%s, error=%s: %s",
                role_arn,
                safe_session_name,
                error_code,
                error_message,
            )
            raise ExchangeFailure(
                error_message,
                code=_ERROR_CODE_MAP.get(error_code, "sts_error"),
                cause=exc,
            ) from exc
        except (ConnectTimeoutError, ReadTimeoutError) as exc:
            logger.warning(
                "STS timed out: role=%s, session=%s: %s", role_arn, safe_session_name, exc
            )
            raise ExchangeFailure(
                f"STS request timed out: {exc}", code="timeout", cause=exc
            ) from exc
        except BotoCoreError as exc:
            logger.warning(
                "STS unreachable: role=%s, session=%s: %s", role_arn, safe_session_name, exc
            )
            raise ExchangeFailure(
                f"STS request failed: {exc}", code="transport_error", cause=exc
            ) from exc

        session = self._parse_response(response)
        logger.info("Assumed role: %s, session=%s", role_arn, safe_session_name)
        return session

    def _parse_response(self, response: Any) -> DelegatedSession:
        try:
            creds = response["Credentials"]
            assumed = response.get("AssumedRoleUser") or {}
            expiration = creds["Expiration"]
            if not isinstance(expiration, datetime):
                raise TypeError(f"unexpected Expiration type {type(expiration).__name__}")
            return DelegatedSession(
                access_key_id=creds["AccessKeyId"],
                secret_access_key=creds["SecretAccessKey"],
                session_token=creds["SessionToken"],
                expiration=expiration,
                assumed_role_arn=assumed.get("Arn", ""),
                assumed_role_id=assumed.get("AssumedRoleId", ""),
            )
        except (KeyError, TypeError, AttributeError) as exc:
            raise ExchangeFailure(
                f"Malformed STS AssumeRole response: {exc}",
                code="malformed_response",
                cause=exc,
            ) from exc

    def _sanitize_session_name(self, name: str) -> str:
        """Sanitize for STS (2-64 chars, alphanumeric/=,.@-)."""
        safe = re.sub(r"[^a-zA-Z0-9=,.@-]", "-", name)
        safe = re.sub(r"-+", "-", safe).strip("-")
        if len(safe) > 64:
            suffix = hashlib.sha256(name.encode()).hexdigest()[:8]
            safe = safe[:55] + "-" + suffix
        return safe if len(safe) >= 2 else "s3-" + safe
