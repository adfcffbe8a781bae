"""
Configuration management for the chatrelay server.

All configuration is done via environment variables - no config files.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Subscriber overflow behavior is always an explicit, named policy
    - Invalid values fail at startup, never at first use

How to change safely:
    - Add new settings with defaults that keep current behavior
    - Keep env variable names stable; they are part of the deployment contract
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)

TEN_MEGABYTES = 10 * 1024 * 1024

# Largest integer every JSON client can represent exactly.
MAX_SAFE_MESSAGE_ID = 2**53 - 1


class OverflowPolicy(Enum):
    """What a subscription does when its delivery queue is full.

    DISCONNECT: close the subscription; the consumer drains what is queued
        and then gets SubscriptionOverflowError. No silent gaps.
    DROP_OLDEST: discard the oldest queued message to make room.
    DROP_NEWEST: discard the incoming message.
    """

    DISCONNECT = "disconnect"
    DROP_OLDEST = "drop_oldest"
    DROP_NEWEST = "drop_newest"


@dataclass(frozen=True)
class HttpConfig:
    """HTTP/WebSocket server configuration.

    Attributes:
        host: Address to bind
        port: Port to listen on
        cors_origins: Allowed CORS origins
        max_request_bytes: Largest accepted request body
    """

    host: str = "0.0.0.0"
    port: int = 4000
    cors_origins: tuple[str, ...] = ("*",)
    max_request_bytes: int = TEN_MEGABYTES

    @classmethod
    def from_env(cls) -> HttpConfig:
        """Load configuration from environment variables."""
        origins = os.getenv("CHAT_CORS_ORIGINS", "*")
        return cls(
            host=os.getenv("CHAT_HTTP_HOST", "0.0.0.0"),
            port=int(os.getenv("CHAT_HTTP_PORT", "4000")),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
            max_request_bytes=int(os.getenv("CHAT_MAX_REQUEST_BYTES", str(TEN_MEGABYTES))),
        )


@dataclass(frozen=True)
class MessageLogConfig:
    """Message log and ingestion configuration.

    Attributes:
        max_message_id: Highest id the log will assign
        max_payload_bytes: Largest accepted message payload (UTF-8 bytes)
    """

    max_message_id: int = MAX_SAFE_MESSAGE_ID
    max_payload_bytes: int = TEN_MEGABYTES

    @classmethod
    def from_env(cls) -> MessageLogConfig:
        """Load configuration from environment variables."""
        return cls(
            max_message_id=int(os.getenv("CHAT_MAX_MESSAGE_ID", str(MAX_SAFE_MESSAGE_ID))),
            max_payload_bytes=int(os.getenv("CHAT_MAX_PAYLOAD_BYTES", str(TEN_MEGABYTES))),
        )


@dataclass(frozen=True)
class BrokerConfig:
    """Broker fan-out configuration.

    Attributes:
        queue_capacity: Messages buffered per subscriber
        overflow_policy: What happens when a subscriber's buffer is full
    """

    queue_capacity: int = 256
    overflow_policy: OverflowPolicy = OverflowPolicy.DISCONNECT

    @classmethod
    def from_env(cls) -> BrokerConfig:
        """Load configuration from environment variables."""
        policy_str = os.getenv("CHAT_SUBSCRIBER_OVERFLOW_POLICY", "disconnect").lower()
        try:
            policy = OverflowPolicy(policy_str)
        except ValueError:
            choices = ", ".join(p.value for p in OverflowPolicy)
            raise ValueError(
                f"Invalid CHAT_SUBSCRIBER_OVERFLOW_POLICY '{policy_str}'. Must be one of: {choices}"
            )
        return cls(
            queue_capacity=int(os.getenv("CHAT_SUBSCRIBER_QUEUE_CAPACITY", "256")),
            overflow_policy=policy,
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
        access_log: Whether uvicorn access logs are kept
    """

    log_level: str = "INFO"
    log_format: str = "json"
    access_log: bool = False

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
            access_log=os.getenv("ACCESS_LOG", "false").lower() == "true",
        )


@dataclass
class ServerConfig:
    """Complete server configuration.

    Attributes:
        http: HTTP/WebSocket server configuration
        message_log: Message log and ingestion configuration
        broker: Broker fan-out configuration
        observability: Logging configuration
    """

    http: HttpConfig = field(default_factory=HttpConfig)
    message_log: MessageLogConfig = field(default_factory=MessageLogConfig)
    broker: BrokerConfig = field(default_factory=BrokerConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Load complete configuration from environment variables.

        Returns:
            ServerConfig with all sections populated from environment.

        Raises:
            ValueError: If configuration is missing or invalid.
        """
        config = cls(
            http=HttpConfig.from_env(),
            message_log=MessageLogConfig.from_env(),
            broker=BrokerConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not 0 < self.http.port < 65536:
            raise ValueError(f"CHAT_HTTP_PORT out of range: {self.http.port}")
        if self.broker.queue_capacity < 1:
            raise ValueError("CHAT_SUBSCRIBER_QUEUE_CAPACITY must be at least 1")
        if self.message_log.max_message_id < 1:
            raise ValueError("CHAT_MAX_MESSAGE_ID must be at least 1")
        if self.message_log.max_payload_bytes < 1:
            raise ValueError("CHAT_MAX_PAYLOAD_BYTES must be at least 1")
        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text"
            )

        if self.message_log.max_payload_bytes > self.http.max_request_bytes:
            logger.warning(
                "CHAT_MAX_PAYLOAD_BYTES exceeds CHAT_MAX_REQUEST_BYTES; "
                "large payloads will be rejected by the HTTP layer first"
            )

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Server configuration loaded",
            extra={
                "http_bind": f"{self.http.host}:{self.http.port}",
                "cors_origins": list(self.http.cors_origins),
                "max_request_bytes": self.http.max_request_bytes,
                "max_payload_bytes": self.message_log.max_payload_bytes,
                "queue_capacity": self.broker.queue_capacity,
                "overflow_policy": self.broker.overflow_policy.value,
                "log_level": self.observability.log_level,
            },
        )
