"""Credential data model."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from s3_role_provider.utils.time import ensure_aware


def mask_key_id(value: str) -> str:
    return f"{value[:8]}***" if value else "<empty>"


@dataclass(frozen=True)
class Identity:
    """Immutable AWS key material, long-lived or session scoped."""

    access_key_id: str
    secret_access_key: str
    session_token: str | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key and self.session_token)

    def __repr__(self) -> str:
        return f"Identity(access_key_id={mask_key_id(self.access_key_id)}, ...)"

    def __str__(self) -> str:
        return self.__repr__()


@dataclass(frozen=True)
class DelegatedSession:
    """Temporary credentials returned by an assume-role exchange."""

    access_key_id: str
    secret_access_key: str
    session_token: str
    expiration: datetime
    assumed_role_arn: str = ""
    assumed_role_id: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "expiration", ensure_aware(self.expiration))

    def renewal_due_at(self, skew: timedelta) -> datetime:
        return self.expiration - skew

    def is_fresh(self, now: datetime, skew: timedelta) -> bool:
        return ensure_aware(now) < self.renewal_due_at(skew)

    def is_expired(self, now: datetime) -> bool:
        return ensure_aware(now) >= self.expiration

    def to_identity(self) -> Identity:
        return Identity(
            access_key_id=self.access_key_id,
            secret_access_key=self.secret_access_key,
            session_token=self.session_token,
        )

    def __repr__(self) -> str:
        return (
            f"DelegatedSession(access_key_id={mask_key_id(self.access_key_id)}, "
            f"expiration={self.expiration.isoformat()})"
        )


@dataclass(frozen=True)
class ResourceTarget:
    """Locator of the resource a credential request is made for."""

    locator: str

    def matches(self, prefix: str | None) -> bool:
        # An unset or empty prefix matches every locator.
        if not prefix:
            return True
        return self.locator.startswith(prefix)

    @classmethod
    def of(cls, value: "ResourceTarget | str") -> "ResourceTarget":
        if isinstance(value, ResourceTarget):
            return value
        return cls(locator=str(value))
