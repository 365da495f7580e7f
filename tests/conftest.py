from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from s3_role_provider import config, logging_utils
from s3_role_provider.aws_credentials.ambient import reset_ambient_source


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self._now = start

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        self._now = value

    def advance(self, **kwargs: float) -> None:
        self._now += timedelta(**kwargs)


T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(T0 - timedelta(hours=1))


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for env_key in config.ENV_KEYS.values():
        monkeypatch.delenv(env_key, raising=False)
    monkeypatch.setattr(config, "load_dotenv", lambda **_: None)
    monkeypatch.setattr(logging_utils, "_logging_configured", True)
    config._load_settings_cached.cache_clear()
    reset_ambient_source()
    yield
    config._load_settings_cached.cache_clear()
    reset_ambient_source()
