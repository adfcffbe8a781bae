"""
chatrelay SDK - Python client for the chatrelay server.

Example:
    >>> from chatrelay_sdk import ChatClient, ClientSyncAdapter
    >>>
    >>> async with ChatClient("http://localhost:4000") as chat:
    ...     sync = ClientSyncAdapter()
    ...     sync.load_snapshot(await chat.messages())
    ...     await sync.send(chat, "Alice", "hi")

Invariants:
    - Messages returned by the server are authoritative
    - Errors mirror the server's error_code values
"""

from .client import ChatClient, ChatMessage
from .errors import (
    ChatRelayError,
    ConnectionError,
    ServerError,
    SubscriptionOverflowError,
    ValidationError,
)
from .sync import ClientSyncAdapter, PendingMessage

__version__ = "0.1.0"

__all__ = [
    # Client
    "ChatClient",
    "ChatMessage",
    # Sync
    "ClientSyncAdapter",
    "PendingMessage",
    # Errors
    "ChatRelayError",
    "ConnectionError",
    "ServerError",
    "SubscriptionOverflowError",
    "ValidationError",
]
