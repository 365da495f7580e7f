"""Tests for the STS AssumeRole delegation client."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import (
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from s3_role_provider.aws_credentials.sts_provider import STSDelegationClient
from s3_role_provider.config import STSSettings
from s3_role_provider.errors import ExchangeFailure
from s3_role_provider.models import DelegatedSession, Identity

ROLE_ARN = "arn:aws:iam::111111111111:role/TestRole"
IDENTITY = Identity("AKIAEXAMPLEKEY", "long-lived-secret", "long-lived-token")


class _FakeSTSClient:
    def __init__(self) -> None:
        self.calls: list[dict[str, object]] = []

    def assume_role(self, **kwargs: object) -> dict[str, object]:
        self.calls.append(kwargs)
        return {
            "Credentials": {
                "AccessKeyId": "ASIAXXXXXXXX",
                "SecretAccessKey": "secret",
                "SessionToken": "session-token",
                "Expiration": datetime(2026, 1, 1, tzinfo=timezone.utc),
            },
            "AssumedRoleUser": {
                "Arn": "arn:aws:sts::111111111111:assumed-role/TestRole/custom",
                "AssumedRoleId": "AROATEST:custom",
            },
        }


@pytest.fixture
def client() -> STSDelegationClient:
    return STSDelegationClient(STSSettings(region="us-east-1"))


def _assume(client: STSDelegationClient, session_name: str = "custom-credential-provider-1"):
    return client.assume_role(IDENTITY, ROLE_ARN, session_name, 3600)


def test_assume_role_returns_delegated_session(
    client: STSDelegationClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    fake = _FakeSTSClient()
    monkeypatch.setattr(client, "_get_client", lambda identity: fake)

    session = _assume(client)

    assert isinstance(session, DelegatedSession)
    assert session.access_key_id == "ASIAXXXXXXXX"
    assert session.session_token == "session-token"
    assert session.expiration == datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert session.assumed_role_id == "AROATEST:custom"
    call = fake.calls[0]
    assert call == {
        "RoleArn": ROLE_ARN,
        "RoleSessionName": "custom-credential-provider-1",
        "DurationSeconds": 3600,
    }


def test_assume_role_sanitizes_session_name(
    client: STSDelegationClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    fake = _FakeSTSClient()
    monkeypatch.setattr(client, "_get_client", lambda identity: fake)

    _assume(client, session_name="spark job/äöü#42")

    assert fake.calls[0]["RoleSessionName"] == "spark-job-42"


def test_long_session_name_is_truncated_with_hash(client: STSDelegationClient) -> None:
    name = "x" * 100
    safe = client._sanitize_session_name(name)  # noqa: SLF001

    assert len(safe) == 64
    assert safe.startswith("x" * 55 + "-")


def test_short_session_name_is_padded(client: STSDelegationClient) -> None:
    assert client._sanitize_session_name("a") == "s3-a"  # noqa: SLF001


@pytest.mark.parametrize(
    ("error_code", "expected"),
    [
        ("AccessDenied", "access_denied"),
        ("ExpiredToken", "token_expired"),
        ("InvalidClientTokenId", "invalid_client_token"),
        ("RegionDisabledException", "region_disabled"),
        ("Throttling", "sts_error"),
    ],
)
def test_client_error_maps_to_exchange_failure(
    client: STSDelegationClient, error_code: str, expected: str
) -> None:
    mock_sts = MagicMock()
    error = ClientError({"Error": {"Code": error_code, "Message": "nope"}}, "AssumeRole")
    mock_sts.assume_role.side_effect = error

    with patch.object(client, "_get_client", return_value=mock_sts):
        with pytest.raises(ExchangeFailure) as exc_info:
            _assume(client)

    assert exc_info.value.code == expected
    assert exc_info.value.cause is error
    assert str(exc_info.value) == "nope"


@pytest.mark.parametrize(
    "error",
    [
        ReadTimeoutError(endpoint_url="https://sts.amazonaws.com"),
        ConnectTimeoutError(endpoint_url="https://sts.amazonaws.com"),
    ],
)
def test_timeouts_map_to_timeout_code(client: STSDelegationClient, error: Exception) -> None:
    mock_sts = MagicMock()
    mock_sts.assume_role.side_effect = error

    with patch.object(client, "_get_client", return_value=mock_sts):
        with pytest.raises(ExchangeFailure) as exc_info:
            _assume(client)

    assert exc_info.value.code == "timeout"


def test_transport_error_maps_to_transport_code(client: STSDelegationClient) -> None:
    mock_sts = MagicMock()
    mock_sts.assume_role.side_effect = EndpointConnectionError(
        endpoint_url="https://sts.amazonaws.com"
    )

    with patch.object(client, "_get_client", return_value=mock_sts):
        with pytest.raises(ExchangeFailure) as exc_info:
            _assume(client)

    assert exc_info.value.code == "transport_error"


@pytest.mark.parametrize(
    "response",
    [
        {},
        {"Credentials": {"AccessKeyId": "ASIA", "SecretAccessKey": "s"}},
        {
            "Credentials": {
                "AccessKeyId": "ASIA",
                "SecretAccessKey": "s",
                "SessionToken": "t",
                "Expiration": "tomorrow",
            }
        },
    ],
)
def test_malformed_response_maps_to_exchange_failure(
    client: STSDelegationClient, response: dict[str, object]
) -> None:
    mock_sts = MagicMock()
    mock_sts.assume_role.return_value = response

    with patch.object(client, "_get_client", return_value=mock_sts):
        with pytest.raises(ExchangeFailure) as exc_info:
            _assume(client)

    assert exc_info.value.code == "malformed_response"


def test_get_client_initializes_once_per_identity(client: STSDelegationClient) -> None:
    session = MagicMock()
    session.create_client.side_effect = lambda *args, **kwargs: MagicMock()
    with patch(
        "s3_role_provider.aws_credentials.sts_provider.botocore.session.get_session",
        return_value=session,
    ):
        first = client._get_client(IDENTITY)  # noqa: SLF001
        second = client._get_client(IDENTITY)  # noqa: SLF001
        other = client._get_client(Identity("AKIAOTHER", "s", "t"))  # noqa: SLF001

    assert first is second
    assert other is not first
    assert session.create_client.call_count == 2
    kwargs = session.create_client.call_args_list[0].kwargs
    assert kwargs["region_name"] == "us-east-1"
    assert kwargs["aws_access_key_id"] == "AKIAEXAMPLEKEY"
    assert kwargs["aws_secret_access_key"] == "long-lived-secret"
    assert kwargs["aws_session_token"] == "long-lived-token"


def test_get_client_applies_timeouts() -> None:
    client = STSDelegationClient(
        STSSettings(region="eu-west-1", connect_timeout_seconds=2, read_timeout_seconds=3)
    )
    session = MagicMock()
    with patch(
        "s3_role_provider.aws_credentials.sts_provider.botocore.session.get_session",
        return_value=session,
    ):
        client._get_client(IDENTITY)  # noqa: SLF001

    config = session.create_client.call_args.kwargs["config"]
    assert config.connect_timeout == 2
    assert config.read_timeout == 3
    assert session.create_client.call_args.kwargs["region_name"] == "eu-west-1"


def test_get_client_disables_botocore_retries() -> None:
    client = STSDelegationClient(STSSettings())
    session = MagicMock()
    with patch(
        "s3_role_provider.aws_credentials.sts_provider.botocore.session.get_session",
        return_value=session,
    ):
        client._get_client(IDENTITY)  # noqa: SLF001

    config = session.create_client.call_args.kwargs["config"]
    assert config.retries == {"total_max_attempts": 1}
