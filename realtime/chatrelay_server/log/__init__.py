"""
Message log for the chatrelay server.

The log is the record of every message ever accepted. Readers take
point-in-time snapshots of it; the broker carries new entries to live
listeners.

Invariants:
    - Append-only; no message is ever mutated or removed
    - Ids are strictly increasing with no gaps visible to readers
    - The log knows nothing about subscriptions
"""

from .base import Message, MessageLog
from .memory import InMemoryMessageLog

__all__ = [
    # Protocol and types
    "Message",
    "MessageLog",
    # Implementations
    "InMemoryMessageLog",
]
