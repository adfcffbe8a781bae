"""
chatrelay server - Main entry point.

This module starts the chat relay:
- Builds the ChatRelay (message log, broker, services)
- Serves the HTTP/WebSocket API with uvicorn

Usage:
    chatrelay-server
    python -m realtime.chatrelay_server.main

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - One ChatRelay per process, owned by Server
    - Shutdown closes every subscription before the process exits
"""

from __future__ import annotations

import logging
import sys

import json_log_formatter
import uvicorn

from .api import create_app
from .config import ServerConfig
from .service.relay import ChatRelay

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Route uvicorn through the root handler
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = []
        uvicorn_logger.propagate = True
    if not config.observability.access_log:
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


class Server:
    """chatrelay server orchestrator.

    Attributes:
        config: Server configuration
        relay: The chat relay
        app: FastAPI application bound to the relay

    Example:
        >>> server = Server(ServerConfig())
        >>> server.run()
    """

    def __init__(self, config: ServerConfig | None = None) -> None:
        """Initialize the server.

        Args:
            config: Optional server configuration (loaded from env if not provided)
        """
        self.config = config or ServerConfig.from_env()
        self.relay = ChatRelay.from_config(self.config)
        self.app = create_app(self.relay, self.config.http)

    def run(self) -> None:
        """Serve until interrupted."""
        logger.info("Starting chatrelay server")
        self.config.log_config()

        uvicorn.run(
            self.app,
            host=self.config.http.host,
            port=self.config.http.port,
            log_config=None,
            access_log=self.config.observability.access_log,
            ws_max_size=self.config.http.max_request_bytes,
        )
        logger.info("chatrelay server stopped")


def main() -> None:
    """Main entry point."""
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)

    Server(config).run()


if __name__ == "__main__":
    main()
