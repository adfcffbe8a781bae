"""
Per-listener delivery queue.

A Subscription is one attached listener. The broker pushes messages into it
without blocking; the listener pulls them out as an async iterator.

Invariants:
    - Messages come out in the order they were offered
    - offer() never blocks and never raises
    - After close, queued messages stay consumable; nothing new is accepted
    - Capacity is bounded; overflow follows the configured OverflowPolicy

How to change safely:
    - Keep offer() O(1); it runs inside the publisher's critical section
    - Wakeups must work from any thread (call_soon_threadsafe)
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque

from ..config import OverflowPolicy
from ..errors import SubscriptionClosedError, SubscriptionOverflowError
from ..log.base import Message

logger = logging.getLogger(__name__)


class Subscription:
    """Bounded, cancellable queue of messages for one listener.

    Attributes:
        id: Opaque subscription identifier
        capacity: Maximum number of queued messages
        overflow_policy: Behavior when the queue is full
        dropped: Messages discarded under a DROP_* policy

    Example:
        >>> async for message in subscription:
        ...     await send(message)
    """

    def __init__(
        self,
        subscription_id: str,
        capacity: int = 256,
        overflow_policy: OverflowPolicy = OverflowPolicy.DISCONNECT,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.id = subscription_id
        self.capacity = capacity
        self.overflow_policy = overflow_policy
        self.dropped = 0
        self._buffer: deque[Message] = deque()
        self._lock = threading.Lock()
        self._closed = False
        self._overflowed = False
        # Bound lazily to the loop of the first consumer that has to wait.
        self._loop: asyncio.AbstractEventLoop | None = None
        self._ready: asyncio.Event | None = None

    @property
    def closed(self) -> bool:
        """Whether the subscription accepts no further messages."""
        return self._closed

    @property
    def overflowed(self) -> bool:
        """Whether the subscription was closed by queue overflow."""
        return self._overflowed

    @property
    def pending(self) -> int:
        """Number of queued, undelivered messages."""
        with self._lock:
            return len(self._buffer)

    def offer(self, message: Message) -> bool:
        """Enqueue a message without blocking.

        Returns:
            True if the message was queued, False if it was refused
            (closed, dropped, or the subscription overflowed)
        """
        with self._lock:
            if self._closed:
                return False

            if len(self._buffer) >= self.capacity:
                if self.overflow_policy == OverflowPolicy.DROP_NEWEST:
                    self.dropped += 1
                    return False
                if self.overflow_policy == OverflowPolicy.DROP_OLDEST:
                    self._buffer.popleft()
                    self.dropped += 1
                else:
                    self._overflowed = True
                    self._closed = True
                    self._notify()
                    logger.warning(
                        "Subscription overflowed, disconnecting",
                        extra={"subscription_id": self.id, "capacity": self.capacity},
                    )
                    return False

            self._buffer.append(message)
            self._notify()
            return True

    def close(self) -> None:
        """Stop accepting messages. Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._notify()

    def get_nowait(self) -> Message | None:
        """Pop the next queued message, or None if the queue is empty.

        Raises:
            SubscriptionOverflowError: If the queue is drained and overflowed
        """
        with self._lock:
            if self._buffer:
                return self._buffer.popleft()
            if self._overflowed:
                raise SubscriptionOverflowError(self.id, self.capacity)
            return None

    def drain(self) -> list[Message]:
        """Pop every queued message without waiting."""
        with self._lock:
            items = list(self._buffer)
            self._buffer.clear()
            return items

    async def get(self) -> Message:
        """Wait for and return the next message.

        Raises:
            SubscriptionOverflowError: If the queue is drained and overflowed
            SubscriptionClosedError: If the queue is drained and closed
        """
        while True:
            with self._lock:
                if self._buffer:
                    return self._buffer.popleft()
                if self._overflowed:
                    raise SubscriptionOverflowError(self.id, self.capacity)
                if self._closed:
                    raise SubscriptionClosedError(self.id)
                if self._ready is None:
                    self._loop = asyncio.get_running_loop()
                    self._ready = asyncio.Event()
                ready = self._ready
                ready.clear()
            await ready.wait()

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> Message:
        try:
            return await self.get()
        except SubscriptionClosedError:
            raise StopAsyncIteration

    def _notify(self) -> None:
        # Caller holds self._lock.
        if self._ready is None or self._loop is None or self._loop.is_closed():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._ready.set()
        else:
            self._loop.call_soon_threadsafe(self._ready.set)

    def __repr__(self) -> str:
        state = "overflowed" if self._overflowed else "closed" if self._closed else "active"
        return f"Subscription(id={self.id}, {state}, pending={len(self._buffer)})"
