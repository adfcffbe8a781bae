"""
Process-wide owner of the chat core.

ChatRelay wires the log, broker and services together once and is passed
to the API layer explicitly; nothing in the core is a module global.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from ..broker.broker import Broker
from ..config import ServerConfig
from ..log.base import MessageLog
from ..log.memory import InMemoryMessageLog
from .ingest import IngestService
from .join import MessageFeed, join
from .snapshot import SnapshotService

logger = logging.getLogger(__name__)


class ChatRelay:
    """Message log, broker and the services built on them.

    Attributes:
        log: The message log
        broker: The fan-out broker
        ingest: Writer side (submit)
        snapshots: Reader side (list)
    """

    def __init__(self, log: MessageLog, broker: Broker, max_payload_bytes: int) -> None:
        self.log = log
        self.broker = broker
        self.ingest = IngestService(log, broker, max_payload_bytes=max_payload_bytes)
        self.snapshots = SnapshotService(log, lock=self.ingest.lock)

    @classmethod
    def from_config(cls, config: ServerConfig) -> ChatRelay:
        """Build a relay from server configuration."""
        return cls(
            log=InMemoryMessageLog(max_id=config.message_log.max_message_id),
            broker=Broker(
                queue_capacity=config.broker.queue_capacity,
                overflow_policy=config.broker.overflow_policy,
            ),
            max_payload_bytes=config.message_log.max_payload_bytes,
        )

    @asynccontextmanager
    async def join(self) -> AsyncIterator[MessageFeed]:
        """Join history and live updates; see service.join."""
        async with join(self.broker, self.snapshots) as feed:
            yield feed

    def health(self) -> dict[str, object]:
        """Summarize relay state for health checks."""
        return {
            "healthy": not self.broker.is_closed,
            "messages": len(self.snapshots.list()),
            "last_id": self.log.last_id,
            "subscribers": self.broker.subscriber_count,
        }

    def close(self) -> None:
        """Release every subscriber."""
        self.broker.close()
        logger.info("Chat relay closed", extra={"last_id": self.log.last_id})
