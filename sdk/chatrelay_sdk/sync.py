"""
Client-side reconciliation of optimistic and confirmed messages.

A chat UI shows a message the moment the user hits send, before the server
has assigned it an id. ClientSyncAdapter keeps those speculative entries
apart from confirmed ones and merges three sources:
- the initial snapshot (load_snapshot)
- the server's reply to send_message (confirm / reject)
- live subscription messages (apply_live)

Invariants:
    - The server's Message overwrites the speculative entry it confirms
    - A confirmed id appears once, whichever source delivered it first
    - A rejected entry disappears without touching confirmed messages
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass

from .client import ChatClient, ChatMessage
from .errors import ChatRelayError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingMessage:
    """A message shown locally before the server confirmed it.

    Attributes:
        local_id: Client-side key, unique within one adapter
        sender: Sender label
        payload: Text or image data URI
        is_image: Whether payload is an image
    """

    local_id: str
    sender: str
    payload: str
    is_image: bool


class ClientSyncAdapter:
    """Merged view of confirmed and pending messages for one client.

    Example:
        >>> sync = ClientSyncAdapter()
        >>> sync.load_snapshot(await client.messages())
        >>> await sync.send(client, "Alice", "hi")
    """

    def __init__(self) -> None:
        self._confirmed: dict[int, ChatMessage] = {}
        self._pending: dict[str, PendingMessage] = {}
        self._counter = itertools.count(1)

    @property
    def messages(self) -> list[ChatMessage | PendingMessage]:
        """Confirmed messages in id order, then pending ones in send order."""
        confirmed = [self._confirmed[i] for i in sorted(self._confirmed)]
        return [*confirmed, *self._pending.values()]

    @property
    def pending(self) -> list[PendingMessage]:
        return list(self._pending.values())

    @property
    def last_id(self) -> int:
        """Highest confirmed id, or 0."""
        return max(self._confirmed, default=0)

    def load_snapshot(self, messages: list[ChatMessage]) -> None:
        """Merge a full snapshot from the server."""
        for message in messages:
            self._confirmed[message.id] = message

    def add_pending(self, sender: str, payload: str, is_image: bool = False) -> PendingMessage:
        """Show a message before the server has accepted it."""
        entry = PendingMessage(
            local_id=f"local-{next(self._counter)}",
            sender=sender,
            payload=payload,
            is_image=is_image,
        )
        self._pending[entry.local_id] = entry
        return entry

    def confirm(self, local_id: str, message: ChatMessage) -> None:
        """Replace a pending entry with the server's record."""
        self._pending.pop(local_id, None)
        self._confirmed[message.id] = message

    def reject(self, local_id: str) -> PendingMessage | None:
        """Roll back a pending entry the server refused."""
        return self._pending.pop(local_id, None)

    def apply_live(self, message: ChatMessage) -> bool:
        """Merge a message from the live subscription.

        Returns:
            True if the message was new to this client
        """
        if message.id in self._confirmed:
            return False
        self._confirmed[message.id] = message
        return True

    async def send(
        self,
        client: ChatClient,
        sender: str,
        payload: str,
        is_image: bool = False,
    ) -> ChatMessage:
        """Send a message optimistically.

        The entry is visible as pending at once, replaced by the server's
        record on success and removed on failure.

        Raises:
            ChatRelayError: Whatever the client raised; the entry is rolled back
        """
        entry = self.add_pending(sender, payload, is_image)
        try:
            message = await client.send_message(sender, payload, is_image)
        except ChatRelayError as e:
            self.reject(entry.local_id)
            logger.info(
                "Optimistic message rolled back",
                extra={"local_id": entry.local_id, "error_code": e.code},
            )
            raise
        self.confirm(entry.local_id, message)
        return message
