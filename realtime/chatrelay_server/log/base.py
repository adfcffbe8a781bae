"""
Base protocol and types for the message log.

This module defines the Message record and the MessageLog protocol that
log backends implement.

Invariants:
    - Message is immutable once created
    - Message ids are assigned by the log, strictly increasing, never reused
    - The wire shape is exactly {id, sender, payload, isImage}

How to change safely:
    - Protocol changes require updating all implementations
    - Never rename wire keys; clients parse them directly
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class Message:
    """A chat message as stored in the log.

    Attributes:
        id: Log-assigned identifier, starting at 1
        sender: Opaque label supplied by the submitter
        payload: Text, or an image encoded as a data URI
        is_image: Selects how payload is interpreted

    Example:
        >>> msg = Message(id=1, sender="Alice", payload="hi", is_image=False)
        >>> msg.to_dict()
        {'id': 1, 'sender': 'Alice', 'payload': 'hi', 'isImage': False}
    """

    id: int
    sender: str
    payload: str
    is_image: bool

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire representation."""
        return {
            "id": self.id,
            "sender": self.sender,
            "payload": self.payload,
            "isImage": self.is_image,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        """Create from the wire representation."""
        return cls(
            id=int(data["id"]),
            sender=data["sender"],
            payload=data["payload"],
            is_image=bool(data["isImage"]),
        )

    def __str__(self) -> str:
        kind = "image" if self.is_image else "text"
        return f"Message(id={self.id}, sender={self.sender}, {kind}, {len(self.payload)} chars)"


@runtime_checkable
class MessageLog(Protocol):
    """Protocol for message log backends.

    Ordering contract:
        - append() calls are serialized; ids follow that serialization
        - list() returns messages in append order

    Consistency contract:
        - list() never exposes a partially applied append
        - list() returns a copy; later appends do not change it
    """

    @abstractmethod
    def append(self, sender: str, payload: str, is_image: bool) -> Message:
        """Assign the next id, store the message at the tail and return it.

        Raises:
            LogExhaustedError: If no identifiers remain
        """
        ...

    @abstractmethod
    def list(self) -> tuple[Message, ...]:
        """Return every message in append order."""
        ...

    @property
    @abstractmethod
    def last_id(self) -> int:
        """Id of the newest message, or 0 when empty."""
        ...
