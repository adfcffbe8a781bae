"""
Publish/subscribe hub for new messages.

The broker forwards each published message to every active subscription.
It holds no history; late joiners combine a log snapshot with a
subscription (see service.join).

Invariants:
    - A subscription is active as soon as subscribe() returns
    - publish() never waits on a subscriber
    - unsubscribe() is idempotent and safe during a concurrent publish
    - Overflowed subscriptions are removed from the fan-out set

How to change safely:
    - Never hold the subscriber lock while calling into a subscription
    - Keep publish ordering identical to the order callers invoke it
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from ..config import OverflowPolicy
from ..errors import BrokerClosedError
from ..log.base import Message
from .subscription import Subscription

logger = logging.getLogger(__name__)


class Broker:
    """In-process fan-out of messages to subscriptions.

    Attributes:
        queue_capacity: Buffer size given to each new subscription
        overflow_policy: Overflow policy given to each new subscription

    Thread safety:
        The subscriber map is guarded by a threading lock. publish() copies
        the active set under the lock and offers outside it.

    Example:
        >>> broker = Broker()
        >>> async with broker.subscription() as sub:
        ...     broker.publish(message)
        ...     received = await sub.get()
    """

    def __init__(
        self,
        queue_capacity: int = 256,
        overflow_policy: OverflowPolicy = OverflowPolicy.DISCONNECT,
    ) -> None:
        """Initialize the broker.

        Args:
            queue_capacity: Messages buffered per subscriber
            overflow_policy: What a full subscriber queue does
        """
        if queue_capacity < 1:
            raise ValueError("queue_capacity must be at least 1")
        self.queue_capacity = queue_capacity
        self.overflow_policy = overflow_policy
        self._subscriptions: dict[str, Subscription] = {}
        self._lock = threading.Lock()
        self._closed = False

    @property
    def subscriber_count(self) -> int:
        """Number of active subscriptions."""
        with self._lock:
            return len(self._subscriptions)

    @property
    def is_closed(self) -> bool:
        return self._closed

    def subscribe(self) -> Subscription:
        """Attach a new listener.

        Returns:
            The new, already active Subscription

        Raises:
            BrokerClosedError: If the broker has been closed
        """
        subscription = Subscription(
            uuid.uuid4().hex,
            capacity=self.queue_capacity,
            overflow_policy=self.overflow_policy,
        )
        with self._lock:
            if self._closed:
                raise BrokerClosedError()
            self._subscriptions[subscription.id] = subscription
            count = len(self._subscriptions)

        logger.debug(
            "Subscription created",
            extra={"subscription_id": subscription.id, "subscribers": count},
        )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Detach a listener. Safe to call more than once.

        Messages already queued remain consumable from the subscription.
        """
        with self._lock:
            removed = self._subscriptions.pop(subscription.id, None)
        subscription.close()

        if removed is not None:
            logger.debug("Subscription removed", extra={"subscription_id": subscription.id})

    def publish(self, message: Message) -> int:
        """Deliver a message to every active subscription.

        Args:
            message: The message to fan out

        Returns:
            Number of subscriptions that queued the message
        """
        with self._lock:
            targets = list(self._subscriptions.values())

        delivered = 0
        overflowed: list[Subscription] = []
        for subscription in targets:
            if subscription.offer(message):
                delivered += 1
            elif subscription.overflowed:
                overflowed.append(subscription)

        if overflowed:
            with self._lock:
                for subscription in overflowed:
                    self._subscriptions.pop(subscription.id, None)

        logger.debug(
            "Message published",
            extra={
                "message_id": message.id,
                "delivered": delivered,
                "targets": len(targets),
                "overflowed": len(overflowed),
            },
        )
        return delivered

    @asynccontextmanager
    async def subscription(self) -> AsyncIterator[Subscription]:
        """Subscribe for the duration of an ``async with`` block."""
        subscription = self.subscribe()
        try:
            yield subscription
        finally:
            self.unsubscribe(subscription)

    def close(self) -> None:
        """Close every subscription and refuse new ones."""
        with self._lock:
            self._closed = True
            subscriptions = list(self._subscriptions.values())
            self._subscriptions.clear()

        for subscription in subscriptions:
            subscription.close()

        logger.info("Broker closed", extra={"subscriptions_closed": len(subscriptions)})
