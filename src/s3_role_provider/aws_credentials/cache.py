"""Delegated session cache with single-flight renewal.

The cache holds at most one ``DelegatedSession``. A session is FRESH while
``now < expiration - skew`` and STALE afterwards; an empty cache is EMPTY.
EMPTY and STALE both trigger a renewal, and only one renewal runs at a time:
the first caller to see the need becomes the leader and performs the STS
exchange outside the lock, while concurrent callers wait for its outcome.

When the exchange fails, the previous session is handed out as a degraded
fallback as long as it has not reached its hard expiry. The cache then stays
STALE so the next call retries.
"""

from __future__ import annotations

import logging
import threading
from datetime import timedelta
from enum import Enum

from s3_role_provider.aws_credentials.sts_provider import DelegationClient
from s3_role_provider.errors import DelegationFailure, ExchangeFailure
from s3_role_provider.models import DelegatedSession, Identity
from s3_role_provider.utils.time import Clock, SystemClock, epoch_millis

logger = logging.getLogger(__name__)


class CacheState(str, Enum):
    EMPTY = "empty"
    FRESH = "fresh"
    STALE = "stale"


class _Flight:
    """Outcome of one in-flight renewal, shared with waiting callers."""

    def __init__(self) -> None:
        self.done = threading.Event()
        self.session: DelegatedSession | None = None
        self.error: BaseException | None = None


class CredentialCache:
    """Per-provider cache of one delegated session."""

    def __init__(
        self,
        session_duration_seconds: int = 3600,
        renewal_skew_seconds: int = 60,
        clock: Clock | None = None,
    ) -> None:
        self._duration_seconds = session_duration_seconds
        self._skew = timedelta(seconds=renewal_skew_seconds)
        self._clock: Clock = clock or SystemClock()
        self._session: DelegatedSession | None = None
        self._in_flight: _Flight | None = None
        self._lock = threading.Lock()

    @property
    def current(self) -> DelegatedSession | None:
        with self._lock:
            return self._session

    @property
    def state(self) -> CacheState:
        with self._lock:
            return self._state_locked()

    def _state_locked(self) -> CacheState:
        if self._session is None:
            return CacheState.EMPTY
        if self._session.is_fresh(self._clock.now(), self._skew):
            return CacheState.FRESH
        return CacheState.STALE

    def invalidate(self) -> None:
        with self._lock:
            self._session = None

    def get_or_renew(
        self,
        delegation_client: DelegationClient,
        identity: Identity,
        role_arn: str,
        session_name_prefix: str,
    ) -> DelegatedSession:
        """Return the cached session, renewing it first when EMPTY or STALE.

        Raises:
            DelegationFailure: The exchange failed and no unexpired previous
                session exists to fall back on.
        """
        return self._acquire(
            delegation_client, identity, role_arn, session_name_prefix, force=False
        )

    def renew(
        self,
        delegation_client: DelegationClient,
        identity: Identity,
        role_arn: str,
        session_name_prefix: str,
    ) -> DelegatedSession:
        """Force a renewal regardless of state. Failures always raise."""
        return self._acquire(
            delegation_client, identity, role_arn, session_name_prefix, force=True
        )

    def _acquire(
        self,
        delegation_client: DelegationClient,
        identity: Identity,
        role_arn: str,
        session_name_prefix: str,
        force: bool,
    ) -> DelegatedSession:
        with self._lock:
            state = self._state_locked()
            if state is CacheState.FRESH and not force:
                logger.debug("Session credential exists and is fresh, no renewal needed")
                return self._session  # type: ignore[return-value]

            flight = self._in_flight
            is_leader = flight is None
            if flight is None:
                flight = _Flight()
                self._in_flight = flight
                if state is CacheState.EMPTY:
                    logger.info("No session credential yet, starting new session")
                elif state is CacheState.STALE:
                    logger.info("Session credential is within renewal window, starting new session")
                else:
                    logger.info("Forced renewal of session credential")

        if not is_leader:
            flight.done.wait()
            return self._outcome(flight, role_arn, allow_fallback=not force)

        try:
            session = self._exchange(delegation_client, identity, role_arn, session_name_prefix)
        except BaseException as exc:
            with self._lock:
                flight.error = exc
                self._in_flight = None
            flight.done.set()
            return self._outcome(flight, role_arn, allow_fallback=not force)

        with self._lock:
            self._session = session
            flight.session = session
            self._in_flight = None
        flight.done.set()
        return session

    def _exchange(
        self,
        delegation_client: DelegationClient,
        identity: Identity,
        role_arn: str,
        session_name_prefix: str,
    ) -> DelegatedSession:
        now = self._clock.now()
        session_name = f"{session_name_prefix}-{epoch_millis(now)}"
        session = delegation_client.assume_role(
            identity, role_arn, session_name, self._duration_seconds
        )
        if not session.is_fresh(self._clock.now(), self._skew):
            raise ExchangeFailure(
                f"STS returned a session expiring at {session.expiration.isoformat()}, "
                "already inside the renewal window",
                code="stale_on_arrival",
            )
        return session

    def _outcome(
        self,
        flight: _Flight,
        role_arn: str,
        allow_fallback: bool,
    ) -> DelegatedSession:
        if flight.session is not None:
            return flight.session

        error = flight.error
        if not isinstance(error, ExchangeFailure):
            # Not an exchange failure: propagate unchanged.
            raise error  # type: ignore[misc]

        with self._lock:
            previous = self._session

        if allow_fallback and previous is not None and not previous.is_expired(self._clock.now()):
            logger.warning(
                "Unable to start a new session for role %s (%s). "
                "Using previous session credential expiring at %s",
                role_arn,
                error.code,
                previous.expiration.isoformat(),
            )
            return previous

        raise DelegationFailure(
            f"Unable to assume role {role_arn}: {error}",
            role_arn=role_arn,
            cause=error,
            had_previous_session=previous is not None,
        ) from error
