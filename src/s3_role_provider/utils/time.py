"""Time helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def epoch_millis(value: datetime) -> int:
    return int(ensure_aware(value).timestamp() * 1000)


class Clock(Protocol):
    """Source of the current time, injectable for tests."""

    def now(self) -> datetime: ...


class SystemClock:
    def now(self) -> datetime:
        return utc_now()
