"""Error taxonomy for credential resolution.

Every error carries a short machine-readable ``code`` next to the human
message so hosts can branch on the failure class without parsing text.
"""

from __future__ import annotations


class CredentialError(Exception):
    """Base class for all credential resolution failures."""

    default_code = "credential_error"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code or self.default_code


class ConfigurationError(CredentialError):
    """Raised when required settings are missing or malformed."""

    default_code = "config_error"


class InitializationFailure(CredentialError):
    """Raised on first use of a provider whose construction failed.

    The original ``ConfigurationError`` is attached as ``__cause__``.
    """

    default_code = "initialization_failed"


class ExchangeFailure(CredentialError):
    """Raised when the STS token exchange fails for any reason."""

    default_code = "sts_error"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, code)
        self.cause = cause


class DelegationFailure(CredentialError):
    """An ``ExchangeFailure`` surfaced by the session cache."""

    default_code = "delegation_failed"

    def __init__(
        self,
        message: str,
        role_arn: str,
        cause: ExchangeFailure,
        had_previous_session: bool = False,
    ) -> None:
        super().__init__(message)
        self.role_arn = role_arn
        self.cause = cause
        self.had_previous_session = had_previous_session

    @property
    def exchange_code(self) -> str:
        return self.cause.code


class AmbientUnavailable(CredentialError):
    """Raised when host identity credentials cannot be fetched."""

    default_code = "ambient_unavailable"
