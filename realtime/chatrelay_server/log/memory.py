"""
In-memory message log.

The log lives for the lifetime of the process; there is no durable storage.

Invariants:
    - All data is lost on process exit
    - Id assignment and the tail append happen under one mutex
    - Ids never wrap; exhaustion raises instead

How to change safely:
    - Keep the critical section free of I/O and awaits
    - Keep interface compatible with the MessageLog protocol
"""

from __future__ import annotations

import logging
import threading

from ..config import MAX_SAFE_MESSAGE_ID
from ..errors import LogExhaustedError
from .base import Message

logger = logging.getLogger(__name__)


class InMemoryMessageLog:
    """Append-only list of messages guarded by a mutex.

    Thread safety:
        append() and list() take a short threading lock, so the log can be
        shared between the event loop and worker threads. Neither method
        awaits, so within one event loop they are also indivisible.

    Example:
        >>> log = InMemoryMessageLog()
        >>> log.append("Alice", "hi", False).id
        1
        >>> [m.payload for m in log.list()]
        ['hi']
    """

    def __init__(self, max_id: int = MAX_SAFE_MESSAGE_ID) -> None:
        """Initialize an empty log.

        Args:
            max_id: Highest identifier the log may assign
        """
        if max_id < 1:
            raise ValueError("max_id must be at least 1")
        self.max_id = max_id
        self._messages: list[Message] = []
        self._next_id = 1
        self._lock = threading.Lock()

    def append(self, sender: str, payload: str, is_image: bool) -> Message:
        """Append a message and return it with its assigned id.

        Args:
            sender: Opaque sender label
            payload: Text or image data URI
            is_image: Payload discriminator

        Returns:
            The stored Message

        Raises:
            LogExhaustedError: If the next id would exceed max_id
        """
        with self._lock:
            if self._next_id > self.max_id:
                raise LogExhaustedError(self.max_id)
            message = Message(
                id=self._next_id,
                sender=sender,
                payload=payload,
                is_image=is_image,
            )
            self._messages.append(message)
            self._next_id += 1

        logger.debug(
            "Message appended to log",
            extra={"message_id": message.id, "sender": sender, "is_image": is_image},
        )
        return message

    def list(self) -> tuple[Message, ...]:
        """Return a point-in-time copy of all messages in id order."""
        with self._lock:
            return tuple(self._messages)

    @property
    def last_id(self) -> int:
        """Id of the newest message, or 0 when empty."""
        with self._lock:
            return self._next_id - 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)
