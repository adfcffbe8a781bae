"""
chatrelay Test Suite.

This package contains:
- unit/: Unit tests (in-memory log, broker, services, config, SDK sync)
- integration/: Integration tests (HTTP/WebSocket API, SDK client)
"""
