"""Configuration management for the S3 role credential provider."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from s3_role_provider.errors import ConfigurationError
from s3_role_provider.models import Identity

_config_logger = logging.getLogger(__name__)

DEFAULT_SESSION_NAME_PREFIX = "custom-credential-provider"


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")


class CredentialSettings(BaseModel):
    """Raw credential inputs. Any of them may be absent."""

    access_key_id: str | None = Field(default=None)
    secret_access_key: str | None = Field(default=None, repr=False)
    session_token: str | None = Field(default=None, repr=False)
    role_arn: str | None = Field(default=None)
    resource_prefix: str | None = Field(default=None)
    session_duration_seconds: int = Field(default=3600, ge=900, le=43200)
    renewal_skew_seconds: int = Field(default=60, ge=0)
    session_name_prefix: str = Field(default=DEFAULT_SESSION_NAME_PREFIX, min_length=1)


class STSSettings(BaseModel):
    region: str = Field(default="us-east-1")
    connect_timeout_seconds: float = Field(default=5.0, gt=0, le=120)
    read_timeout_seconds: float = Field(default=15.0, gt=0, le=300)


class AmbientSettings(BaseModel):
    timeout_seconds: float = Field(default=1.0, gt=0, le=60)
    num_attempts: int = Field(default=2, ge=1, le=10)


class Settings(BaseModel):
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    credentials: CredentialSettings = Field(default_factory=CredentialSettings)
    sts: STSSettings = Field(default_factory=STSSettings)
    ambient: AmbientSettings = Field(default_factory=AmbientSettings)


ENV_KEYS = {
    "access_key_id": "AWS_ACCESS_KEY",
    "secret_access_key": "AWS_SECRET_KEY_ID",
    "session_token": "AWS_SESSION_TOKEN",
    "role_arn": "AWS_ROLE_ARN_KEY",
    "resource_prefix": "S3_BUCKET_URI",
    "session_duration_seconds": "CREDENTIAL_SESSION_DURATION_SECONDS",
    "renewal_skew_seconds": "CREDENTIAL_RENEWAL_SKEW_SECONDS",
    "session_name_prefix": "CREDENTIAL_SESSION_NAME_PREFIX",
    "sts_region": "AWS_STS_REGION",
    "sts_connect_timeout": "STS_CONNECT_TIMEOUT_SECONDS",
    "sts_read_timeout": "STS_READ_TIMEOUT_SECONDS",
    "ambient_timeout": "AMBIENT_TIMEOUT_SECONDS",
    "ambient_num_attempts": "AMBIENT_NUM_ATTEMPTS",
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
}

# Hadoop S3A property names understood by ProviderConfig.from_mapping().
HADOOP_KEYS = {
    "access_key_id": "fs.s3a.access.key",
    "secret_access_key": "fs.s3a.secret.key",
    "session_token": "fs.s3a.session.token",
    "role_arn": "fs.s3a.myapp.assumerole",
    "resource_prefix": "fs.s3a.myapp.uri",
    "session_duration_seconds": "fs.s3a.myapp.session.duration",
    "renewal_skew_seconds": "fs.s3a.myapp.renewal.skew",
    "session_name_prefix": "fs.s3a.myapp.session.name.prefix",
}


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _resolve_path(path: str) -> str:
    candidate = Path(path)
    root = _project_root().resolve()
    if candidate.is_absolute():
        resolved = candidate.resolve()
    else:
        resolved = (root / candidate).resolve()
    if not resolved.is_relative_to(root):
        raise ValueError(f"Path traversal detected: '{path}' resolves outside project root")
    return str(resolved)


def _env_str(key: str) -> str | None:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return None
    return value.strip()


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(
            f"Invalid configuration: {key} must be an integer number of seconds, got {value!r}"
        ) from exc


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigurationError(
            f"Invalid configuration: {key} must be a number of seconds, got {value!r}"
        ) from exc


def load_settings() -> Settings:
    """Load configuration and cache the result."""

    return _load_settings_cached()


@lru_cache(maxsize=1)
def _load_settings_cached() -> Settings:
    load_dotenv(dotenv_path=_project_root() / ".env")
    log_file_env = _env_str(ENV_KEYS["log_file"])

    settings_data: dict[str, object] = {
        "logging": {
            "level": os.getenv(ENV_KEYS["log_level"], LoggingSettings().level),
            "file": _resolve_path(log_file_env) if log_file_env else None,
        },
        "credentials": {
            "access_key_id": _env_str(ENV_KEYS["access_key_id"]),
            "secret_access_key": _env_str(ENV_KEYS["secret_access_key"]),
            "session_token": _env_str(ENV_KEYS["session_token"]),
            "role_arn": _env_str(ENV_KEYS["role_arn"]),
            "resource_prefix": _env_str(ENV_KEYS["resource_prefix"]),
            "session_duration_seconds": _env_int(
                ENV_KEYS["session_duration_seconds"],
                CredentialSettings().session_duration_seconds,
            ),
            "renewal_skew_seconds": _env_int(
                ENV_KEYS["renewal_skew_seconds"],
                CredentialSettings().renewal_skew_seconds,
            ),
            "session_name_prefix": os.getenv(
                ENV_KEYS["session_name_prefix"], CredentialSettings().session_name_prefix
            ),
        },
        "sts": {
            "region": os.getenv(ENV_KEYS["sts_region"], STSSettings().region),
            "connect_timeout_seconds": _env_float(
                ENV_KEYS["sts_connect_timeout"], STSSettings().connect_timeout_seconds
            ),
            "read_timeout_seconds": _env_float(
                ENV_KEYS["sts_read_timeout"], STSSettings().read_timeout_seconds
            ),
        },
        "ambient": {
            "timeout_seconds": _env_float(
                ENV_KEYS["ambient_timeout"], AmbientSettings().timeout_seconds
            ),
            "num_attempts": _env_int(
                ENV_KEYS["ambient_num_attempts"], AmbientSettings().num_attempts
            ),
        },
    }

    try:
        return Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


class ProviderConfig(BaseModel):
    """Typed, validated provider configuration. Immutable once built.

    Durations are in seconds. ``renewal_skew_seconds`` is subtracted from a
    session's expiration to decide when renewal is due.
    """

    model_config = ConfigDict(frozen=True)

    access_key_id: str | None = None
    secret_access_key: str | None = Field(default=None, repr=False)
    session_token: str | None = Field(default=None, repr=False)
    role_arn: str | None = None
    resource_prefix: str | None = None
    session_duration_seconds: int = Field(default=3600, ge=900, le=43200)
    renewal_skew_seconds: int = Field(default=60, ge=0)
    session_name_prefix: str = Field(default=DEFAULT_SESSION_NAME_PREFIX, min_length=1)

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid provider configuration: {exc}") from exc

    @field_validator(
        "access_key_id",
        "secret_access_key",
        "session_token",
        "role_arn",
        "resource_prefix",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("role_arn")
    @classmethod
    def _validate_role_arn(cls, value: str | None) -> str | None:
        if value is not None and not value.startswith("arn:"):
            raise ValueError(f"role ARN must start with 'arn:', got {value!r}")
        return value

    @model_validator(mode="after")
    def _validate_skew(self) -> "ProviderConfig":
        if self.renewal_skew_seconds >= self.session_duration_seconds:
            raise ValueError(
                "renewal_skew_seconds must be smaller than session_duration_seconds"
            )
        return self

    @property
    def explicit_identity(self) -> Identity | None:
        identity = Identity(
            access_key_id=self.access_key_id or "",
            secret_access_key=self.secret_access_key or "",
            session_token=self.session_token,
        )
        return identity if identity.is_complete else None

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ProviderConfig":
        settings = settings or load_settings()
        return cls(**settings.credentials.model_dump())

    @classmethod
    def from_mapping(cls, conf: Mapping[str, str]) -> "ProviderConfig":
        """Build from Hadoop S3A-style properties.

        When no role is configured, the ``AWS_ROLE_ARN_KEY`` environment
        variable is consulted before giving up on role assumption.
        """
        data: dict[str, object] = {}
        for field_name, key in HADOOP_KEYS.items():
            value = conf.get(key)
            if value is not None:
                data[field_name] = value.strip()

        if not data.get("role_arn"):
            env_key = ENV_KEYS["role_arn"]
            _config_logger.warning(
                "No role provided via configuration. Checking environment variable %s...",
                env_key,
            )
            role_arn = _env_str(env_key)
            if role_arn is None:
                _config_logger.warning(
                    "Environment variable %s not found. Not assuming a role.", env_key
                )
            else:
                _config_logger.info("Using role ARN %s from %s", role_arn, env_key)
                data["role_arn"] = role_arn

        return cls(**data)
