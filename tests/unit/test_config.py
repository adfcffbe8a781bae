"""
Unit tests for server configuration.

Tests cover:
- Defaults
- Environment loading
- Validation failures
"""

import pytest

from realtime.chatrelay_server.config import (
    MAX_SAFE_MESSAGE_ID,
    BrokerConfig,
    HttpConfig,
    OverflowPolicy,
    ServerConfig,
)


class TestServerConfig:
    """Tests for ServerConfig."""

    def test_defaults(self):
        """Defaults match local development expectations."""
        config = ServerConfig()

        assert config.http.port == 4000
        assert config.http.max_request_bytes == 10 * 1024 * 1024
        assert config.message_log.max_message_id == MAX_SAFE_MESSAGE_ID
        assert config.broker.queue_capacity == 256
        assert config.broker.overflow_policy == OverflowPolicy.DISCONNECT
        config.validate()

    def test_from_env(self, monkeypatch):
        """Settings are read from environment variables."""
        monkeypatch.setenv("CHAT_HTTP_PORT", "5000")
        monkeypatch.setenv("CHAT_CORS_ORIGINS", "http://a.test, http://b.test")
        monkeypatch.setenv("CHAT_SUBSCRIBER_QUEUE_CAPACITY", "10")
        monkeypatch.setenv("CHAT_SUBSCRIBER_OVERFLOW_POLICY", "DROP_OLDEST")
        monkeypatch.setenv("CHAT_MAX_PAYLOAD_BYTES", "2048")
        monkeypatch.setenv("LOG_FORMAT", "text")

        config = ServerConfig.from_env()

        assert config.http.port == 5000
        assert config.http.cors_origins == ("http://a.test", "http://b.test")
        assert config.broker == BrokerConfig(10, OverflowPolicy.DROP_OLDEST)
        assert config.message_log.max_payload_bytes == 2048
        assert config.observability.log_format == "text"

    def test_invalid_overflow_policy(self, monkeypatch):
        """Unknown overflow policies are rejected."""
        monkeypatch.setenv("CHAT_SUBSCRIBER_OVERFLOW_POLICY", "unbounded")

        with pytest.raises(ValueError, match="CHAT_SUBSCRIBER_OVERFLOW_POLICY"):
            ServerConfig.from_env()

    def test_invalid_queue_capacity(self):
        """Queue capacity must be positive."""
        config = ServerConfig(broker=BrokerConfig(queue_capacity=0))

        with pytest.raises(ValueError, match="QUEUE_CAPACITY"):
            config.validate()

    def test_invalid_port(self):
        """Port must be in range."""
        config = ServerConfig(http=HttpConfig(port=70000))

        with pytest.raises(ValueError, match="PORT"):
            config.validate()

    def test_invalid_log_format(self, monkeypatch):
        """Only json and text log formats are supported."""
        monkeypatch.setenv("LOG_FORMAT", "xml")

        with pytest.raises(ValueError, match="LOG_FORMAT"):
            ServerConfig.from_env()

    @pytest.mark.parametrize("value,expected", [("true", True), ("TRUE", True), ("1", False), ("false", False)])
    def test_access_log_flag(self, monkeypatch, value, expected):
        """ACCESS_LOG is on only for a case-insensitive "true"."""
        monkeypatch.setenv("ACCESS_LOG", value)

        assert ServerConfig.from_env().observability.access_log is expected
