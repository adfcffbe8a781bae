"""
Join protocol: full history plus live updates, with no gaps or duplicates.

A new reader must subscribe BEFORE reading the snapshot. A message
published in between then shows up in both places, and the feed drops the
live copy by id. Reading the snapshot first would instead lose any message
published in that window.

Invariants:
    - Subscribe happens before list()
    - Every message is yielded exactly once, in id order
    - The subscription is released when the join context exits
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from ..broker.broker import Broker
from ..broker.subscription import Subscription
from ..log.base import Message
from .snapshot import SnapshotService

logger = logging.getLogger(__name__)


class MessageFeed:
    """History snapshot followed by a filtered live stream.

    Attributes:
        history: Snapshot taken after the subscription became active
        subscription: Live subscription backing the feed
    """

    def __init__(self, history: tuple[Message, ...], subscription: Subscription) -> None:
        self.history = history
        self.subscription = subscription
        self._last_id = history[-1].id if history else 0

    @property
    def last_id(self) -> int:
        """Id of the newest message yielded or known from history."""
        return self._last_id

    def accept(self, message: Message) -> bool:
        """Record a live message, returning False if history already had it."""
        if message.id <= self._last_id:
            return False
        self._last_id = message.id
        return True

    async def live(self) -> AsyncIterator[Message]:
        """Yield live messages not already present in history."""
        async for message in self.subscription:
            if self.accept(message):
                yield message
            else:
                logger.debug(
                    "Skipping live message already in snapshot",
                    extra={"message_id": message.id},
                )

    async def __aiter__(self) -> AsyncIterator[Message]:
        for message in self.history:
            yield message
        async for message in self.live():
            yield message


@asynccontextmanager
async def join(broker: Broker, snapshots: SnapshotService) -> AsyncIterator[MessageFeed]:
    """Attach a reader to history and live updates.

    Example:
        >>> async with join(relay.broker, relay.snapshots) as feed:
        ...     async for message in feed:
        ...         render(message)
    """
    async with broker.subscription() as subscription:
        history = snapshots.list()
        logger.debug(
            "Reader joined",
            extra={"subscription_id": subscription.id, "history": len(history)},
        )
        yield MessageFeed(history, subscription)
