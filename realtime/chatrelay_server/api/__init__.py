"""
API module for the chatrelay server.

Exposes the chat operations over HTTP and WebSocket:
- Query messages        (GET /v1/messages)
- Mutation sendMessage  (POST /v1/messages)
- Subscription messageSent (WS /v1/messages/subscribe)

Invariants:
    - All operations go through the ChatRelay held in app state
    - Writes go through IngestService only
"""

from .http_server import create_app

__all__ = [
    "create_app",
]
