"""
chatrelay server - real-time chat message relay.

This package implements the backend of a small real-time chat:
- An append-only in-memory message log with monotonically increasing ids
- A publish/subscribe broker fanning new messages out to live listeners
- HTTP + WebSocket surface for query, mutation and subscription

Architecture:
    ┌─────────────┐     ┌─────────────┐     ┌───────────────┐
    │   Client    │────▶│  HTTP / WS  │────▶│ IngestService │
    │   (SDK)     │     │    (API)    │     └───────┬───────┘
    └─────────────┘     └──────┬──────┘             │
           ▲                   │            append  │  publish
           │                   ▼                    ▼
           │            ┌─────────────┐     ┌───────────────┐
           │            │  Snapshot   │◀────│  MessageLog   │
           │            └─────────────┘     └───────────────┘
           │                                        │
           │            ┌─────────────┐             │
           └────────────│   Broker    │◀────────────┘
                        └─────────────┘

Invariants:
    - Message ids are strictly increasing with no gaps visible to readers
    - The log is append-only
    - Append and publish happen under one mutex, in that order
    - A slow subscriber never blocks publish for anyone else

How to change safely:
    - Keep the wire shape {id, sender, payload, isImage} stable
    - New subscriber overflow policies must be documented in config.py
    - Joiners must subscribe before reading the snapshot
"""

from ._version import __version__

__all__ = ["__version__"]
