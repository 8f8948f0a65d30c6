"""Unit tests for ClientConfig and infra helpers."""

from unittest.mock import Mock

import pytest
from pydantic import ValidationError

from talaria_client.infra.config import ClientConfig
from talaria_client.infra.http import build_http_client
from talaria_client.infra.metrics import LogMetricsClient, NullMetricsClient, build_metrics_client


def test_defaults():
    """Defaults match the production service."""
    config = ClientConfig()

    assert config.base_url == "https://api.oooefam.net"
    assert config.user_agent == "talaria-client/0.1.0"
    assert config.max_retries == 3
    assert config.idle_timeout == 90.0
    assert config.max_reconnect_attempts == 3
    assert config.max_stream_duration == 300.0
    assert config.max_concurrent_streams == 5
    assert config.token_ttl.total_seconds() == 7200
    assert config.device_id


def test_each_config_gets_its_own_device_id():
    """A random device id is generated when none is given."""
    assert ClientConfig().device_id != ClientConfig().device_id


def test_base_url_validation():
    """base_url must be http(s) and loses its trailing slash."""
    assert ClientConfig(base_url="http://localhost:8787/").base_url == "http://localhost:8787"
    with pytest.raises(ValidationError):
        ClientConfig(base_url="ftp://example.com")


def test_from_env(monkeypatch):
    """TALARIA_* variables populate the config."""
    monkeypatch.setenv("TALARIA_BASE_URL", "https://staging.talaria.test")
    monkeypatch.setenv("TALARIA_DEVICE_ID", "device-env")
    monkeypatch.setenv("TALARIA_MAX_RETRIES", "5")
    monkeypatch.setenv("TALARIA_YIELD_PINGS", "true")
    monkeypatch.setenv("TALARIA_MAX_STREAM_DURATION", "none")

    config = ClientConfig.from_env()

    assert config.base_url == "https://staging.talaria.test"
    assert config.device_id == "device-env"
    assert config.max_retries == 5
    assert config.yield_pings is True
    assert config.max_stream_duration is None


def test_from_env_overrides_win(monkeypatch):
    """Explicit overrides beat the environment."""
    monkeypatch.setenv("TALARIA_DEVICE_ID", "device-env")

    assert ClientConfig.from_env(device_id="device-arg").device_id == "device-arg"


def test_config_is_frozen():
    """Configuration is shared read-only between jobs."""
    config = ClientConfig()

    with pytest.raises(ValidationError):
        config.max_retries = 10


def test_http_client_carries_user_agent(config):
    """Every request identifies the client."""
    http_client = build_http_client(config)

    assert http_client.headers["User-Agent"] == "talaria-client/0.1.0"
    assert str(http_client.base_url).rstrip("/") == config.base_url


def test_metrics_client_selection():
    """Metrics go to the log unless disabled."""
    logger = Mock()

    metrics_client = build_metrics_client(logger, enabled=True)
    metrics_client.put_metric("JobsSubmitted", 1.0)

    assert isinstance(metrics_client, LogMetricsClient)
    logger.info.assert_called_once_with(
        "metric",
        namespace="TalariaClient",
        metric_name="JobsSubmitted",
        value=1.0,
        unit="Count",
    )
    assert isinstance(build_metrics_client(logger, enabled=False), NullMetricsClient)
