"""
chatrelay client for Python SDK.

This module provides the client interface to a chatrelay server:
- ChatMessage: A message as returned by the server
- ChatClient: messages(), send_message(), subscribe()

Example:
    >>> async with ChatClient("http://localhost:4000") as chat:
    ...     await chat.send_message("Alice", "hi")
    ...     async for message in chat.subscribe(history=True):
    ...         print(message.sender, message.payload)

Invariants:
    - The ChatMessage returned by send_message is authoritative
    - subscribe(history=True) yields every message exactly once, in id order
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

import aiohttp

from .errors import (
    ChatRelayError,
    ConnectionError,
    error_from_response,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatMessage:
    """A message stored by the server.

    Attributes:
        id: Server-assigned id
        sender: Sender label
        payload: Text, or an image data URI
        is_image: Whether payload is an image
    """

    id: int
    sender: str
    payload: str
    is_image: bool

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatMessage:
        return cls(
            id=int(data["id"]),
            sender=data["sender"],
            payload=data["payload"],
            is_image=bool(data["isImage"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sender": self.sender,
            "payload": self.payload,
            "isImage": self.is_image,
        }


class ChatClient:
    """Async client for the chatrelay HTTP/WebSocket API.

    Attributes:
        base_url: Server URL, e.g. ``http://localhost:4000``
    """

    def __init__(
        self,
        base_url: str = "http://localhost:4000",
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Server URL
            session: Optional existing aiohttp session (not closed by the client)
        """
        self.base_url = base_url.rstrip("/")
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> ChatClient:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def connect(self) -> None:
        """Open the HTTP session if the client owns one."""
        if self._session is None:
            self._session = aiohttp.ClientSession()

    async def close(self) -> None:
        """Close the HTTP session if the client owns it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise ConnectionError("Client not connected", address=self.base_url)
        return self._session

    async def messages(self) -> list[ChatMessage]:
        """Fetch every stored message in id order."""
        body = await self._request("GET", "/v1/messages")
        return [ChatMessage.from_dict(item) for item in body]

    async def send_message(
        self,
        sender: str,
        payload: str,
        is_image: bool = False,
    ) -> ChatMessage:
        """Submit a message.

        Returns:
            The stored message as assigned by the server

        Raises:
            ValidationError: If the server rejects the submission
        """
        body = await self._request(
            "POST",
            "/v1/messages",
            json={"sender": sender, "payload": payload, "isImage": is_image},
        )
        return ChatMessage.from_dict(body)

    async def subscribe(self, history: bool = False) -> AsyncIterator[ChatMessage]:
        """Stream messages until the server closes the connection.

        Args:
            history: Receive all stored messages before live ones

        Raises:
            SubscriptionOverflowError: If the server dropped this subscriber
            ConnectionError: If the connection fails
        """
        url = self._ws_url("/v1/messages/subscribe")
        params = {"history": "true"} if history else None
        try:
            ws = await self.session.ws_connect(url, params=params)
        except aiohttp.ClientError as e:
            raise ConnectionError(f"Subscribe failed: {e}", address=url)

        try:
            async for frame in ws:
                if frame.type == aiohttp.WSMsgType.TEXT:
                    data = json.loads(frame.data)
                    if "error_code" in data:
                        raise error_from_response(200, data)
                    yield ChatMessage.from_dict(data)
                elif frame.type == aiohttp.WSMsgType.ERROR:
                    raise ConnectionError(f"Subscription failed: {ws.exception()}", address=url)
        finally:
            await ws.close()

        logger.debug("Subscription closed by server", extra={"close_code": ws.close_code})

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = await self.session.request(method, url, **kwargs)
        except aiohttp.ClientError as e:
            raise ConnectionError(f"{method} {path} failed: {e}", address=self.base_url)

        try:
            try:
                body = await response.json()
            except (aiohttp.ContentTypeError, json.JSONDecodeError):
                body = None
            if response.status >= 400:
                raise error_from_response(response.status, body)
            if body is None:
                raise ChatRelayError(f"{method} {path} returned no JSON body")
            return body
        finally:
            response.release()

    def _ws_url(self, path: str) -> str:
        if self.base_url.startswith("https://"):
            return "wss://" + self.base_url[len("https://"):] + path
        if self.base_url.startswith("http://"):
            return "ws://" + self.base_url[len("http://"):] + path
        return self.base_url + path

