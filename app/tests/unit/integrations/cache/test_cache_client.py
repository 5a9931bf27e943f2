"""Unit tests for the shared Redis client helpers."""

from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from infrastructure.operations import OperationStatus
from integrations.cache import client


@pytest.fixture(autouse=True)
def _reset_client():
    client.reset_redis_client()
    yield
    client.reset_redis_client()


@pytest.mark.unit
def test_make_key(monkeypatch):
    monkeypatch.setattr(client.settings.redis, "REDIS_KEY_PREFIX", "dispatch")
    assert client.make_key("circuit", "notify-sms") == "dispatch:circuit:notify-sms"
    assert client.make_key("lock", 7) == "dispatch:lock:7"


@pytest.mark.unit
def test_client_requires_url(monkeypatch):
    monkeypatch.setattr(client.settings.redis, "REDIS_URL", "")
    with pytest.raises(ValueError):
        client.get_redis_client()


@pytest.mark.unit
def test_client_is_cached(monkeypatch):
    monkeypatch.setattr(client.settings.redis, "REDIS_URL", "redis://localhost:6379/0")
    pool_cls = MagicMock()
    redis_cls = MagicMock()
    monkeypatch.setattr(client, "ConnectionPool", pool_cls)
    monkeypatch.setattr(client, "Redis", redis_cls)

    first = client.get_redis_client()
    second = client.get_redis_client()

    assert first is second
    redis_cls.assert_called_once_with(connection_pool=pool_cls.from_url.return_value)
    first.ping.assert_called_once()


@pytest.mark.unit
def test_health_check(monkeypatch):
    monkeypatch.setattr(client, "get_redis_client", MagicMock())
    assert client.health_check().is_success


@pytest.mark.unit
def test_health_check_connection_error(monkeypatch):
    redis_client = MagicMock()
    redis_client.ping.side_effect = RedisConnectionError("refused")
    monkeypatch.setattr(client, "get_redis_client", MagicMock(return_value=redis_client))

    result = client.health_check()

    assert result.status == OperationStatus.TRANSIENT_ERROR
    assert result.error_code == "CONNECTION_ERROR"


@pytest.mark.unit
def test_health_check_not_configured(monkeypatch):
    monkeypatch.setattr(
        client, "get_redis_client", MagicMock(side_effect=ValueError("REDIS_URL is not configured"))
    )
    assert client.health_check().status == OperationStatus.PERMANENT_ERROR
