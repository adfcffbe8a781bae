"""
HTTP and WebSocket server for the chatrelay.

Exposes the three chat operations:
- GET  /v1/messages            query ``messages``
- POST /v1/messages            mutation ``sendMessage``
- WS   /v1/messages/subscribe  subscription ``messageSent``

Invariants:
    - Responses use the wire shape {id, sender, payload, isImage}
    - Validation failures are client-visible 400s and never touch the log
    - A WebSocket subscribes before it accepts, so a client that sees the
      handshake complete cannot miss a later message
    - A dropped connection always releases its subscription
    - Request bodies over max_request_bytes get 413, chunked or not

How to change safely:
    - Keep routes stable; browser clients hardcode them
    - Map new core errors in _STATUS_BY_CODE
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import anyio
from fastapi import APIRouter, Depends, FastAPI, Query, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.datastructures import Headers
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import ASGIApp, Receive, Scope, Send
from starlette.types import Message as ASGIMessage
from starlette.websockets import WebSocketDisconnect, WebSocketState

from .._version import __version__
from ..config import HttpConfig
from ..errors import (
    BrokerClosedError,
    ChatRelayError,
    SubscriptionOverflowError,
    TransportError,
)
from ..log.base import Message
from ..service.relay import ChatRelay

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])

_STATUS_BY_CODE = {
    "VALIDATION_ERROR": 400,
    "BROKER_CLOSED": 503,
    "LOG_EXHAUSTED": 507,
}

# WebSocket close codes
WS_GOING_AWAY = 1001
WS_TRY_AGAIN_LATER = 1013


# --- Request/Response Models ---


class SendMessageRequest(BaseModel):
    """Request body for sendMessage."""

    model_config = ConfigDict(populate_by_name=True)

    sender: str = Field(..., description="Sender label")
    payload: str = Field(..., description="Message text or image data URI")
    is_image: bool = Field(False, alias="isImage", description="Whether payload is an image")


class MessageResponse(BaseModel):
    """A stored message."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    sender: str
    payload: str
    is_image: bool = Field(..., alias="isImage")

    @classmethod
    def from_message(cls, message: Message) -> MessageResponse:
        return cls(
            id=message.id,
            sender=message.sender,
            payload=message.payload,
            is_image=message.is_image,
        )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    messages: int
    last_id: int
    subscribers: int


# --- Dependencies ---


def get_relay(request: Request) -> ChatRelay:
    """Get the chat relay from app state."""
    return request.app.state.relay


# --- Routes ---


@router.get("/messages", response_model=list[MessageResponse])
async def list_messages(relay: ChatRelay = Depends(get_relay)) -> list[MessageResponse]:
    """Return every message in id order."""
    return [MessageResponse.from_message(m) for m in relay.snapshots.list()]


@router.post("/messages", response_model=MessageResponse)
async def send_message(
    body: SendMessageRequest,
    relay: ChatRelay = Depends(get_relay),
) -> MessageResponse:
    """Submit a new message and return the stored record."""
    message = relay.ingest.submit(body.sender, body.payload, body.is_image)
    return MessageResponse.from_message(message)


@router.websocket("/messages/subscribe")
async def subscribe_messages(
    websocket: WebSocket,
    history: bool = Query(False, description="Send the full log before live messages"),
) -> None:
    """Stream messages to the client until it disconnects.

    With ``history=true`` the client first receives every stored message,
    then live ones, each exactly once.
    """
    relay: ChatRelay = websocket.app.state.relay

    try:
        if history:
            async with relay.join() as feed:
                await _serve(websocket, feed, feed.subscription.id)
        else:
            async with relay.broker.subscription() as subscription:
                await _serve(websocket, subscription, subscription.id)
    except BrokerClosedError:
        await websocket.close(code=WS_GOING_AWAY)


async def _serve(websocket: WebSocket, source: Any, subscription_id: str) -> None:
    """Accept the connection and stream source over it."""
    await websocket.accept()
    logger.info("Subscriber connected", extra={"subscription_id": subscription_id})

    outcome = await _pump(websocket, source, subscription_id)
    if isinstance(outcome, SubscriptionOverflowError):
        await websocket.send_json(outcome.to_dict())
        await websocket.close(code=WS_TRY_AGAIN_LATER)
    elif isinstance(outcome, TransportError):
        logger.info(
            "Subscriber disconnected",
            extra={"subscription_id": subscription_id, "reason": outcome.message},
        )
    elif websocket.application_state == WebSocketState.CONNECTED:
        # Source ended because the broker closed.
        await websocket.close(code=WS_GOING_AWAY)


async def _pump(websocket: WebSocket, source: Any, subscription_id: str) -> ChatRelayError | None:
    """Forward messages from source until it ends or the client leaves.

    Both directions run in one anyio task group, so cancellation by the
    ASGI server tears down both.

    Returns:
        SubscriptionOverflowError if the subscriber fell behind,
        TransportError if the client disconnected, None if the feed ended
    """
    outcomes: dict[str, ChatRelayError | None] = {}

    async def forward(cancel_scope: anyio.CancelScope) -> None:
        try:
            async for message in source:
                await websocket.send_json(message.to_dict())
        except SubscriptionOverflowError as e:
            outcomes["forward"] = e
        except (WebSocketDisconnect, RuntimeError) as e:
            outcomes["forward"] = TransportError(f"send failed: {e}", subscription_id)
        else:
            outcomes["forward"] = None
        cancel_scope.cancel()

    async def watch(cancel_scope: anyio.CancelScope) -> None:
        # Clients never send anything meaningful; reading only detects close.
        while True:
            event = await websocket.receive()
            if event["type"] == "websocket.disconnect":
                outcomes["watch"] = TransportError(
                    f"client closed with code {event.get('code')}", subscription_id
                )
                cancel_scope.cancel()
                return

    async with anyio.create_task_group() as tg:
        tg.start_soon(forward, tg.cancel_scope)
        tg.start_soon(watch, tg.cancel_scope)

    if "watch" in outcomes:
        return outcomes["watch"]
    return outcomes.get("forward")


def _too_large_response(limit: int) -> JSONResponse:
    return JSONResponse(
        {
            "error": f"request body exceeds {limit} bytes",
            "error_code": "PAYLOAD_TOO_LARGE",
        },
        status_code=413,
    )


class RequestTooLargeError(StarletteHTTPException):
    """Raised while streaming a request body that passed the size limit."""

    def __init__(self, limit: int) -> None:
        super().__init__(status_code=413, detail=f"request body exceeds {limit} bytes")
        self.limit = limit


class BodySizeLimitMiddleware:
    """Rejects HTTP requests whose body exceeds max_bytes.

    Content-Length is checked before the app runs. Bodies without it
    (chunked uploads) are counted as they stream and cut off as soon as
    the running total passes the limit.
    """

    def __init__(self, app: ASGIApp, max_bytes: int) -> None:
        self.app = app
        self.max_bytes = max_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        length = Headers(scope=scope).get("content-length")
        if length is not None and length.isdigit() and int(length) > self.max_bytes:
            await _too_large_response(self.max_bytes)(scope, receive, send)
            return

        received = 0

        async def limited_receive() -> ASGIMessage:
            nonlocal received
            event = await receive()
            if event["type"] == "http.request":
                received += len(event.get("body", b""))
                if received > self.max_bytes:
                    raise RequestTooLargeError(self.max_bytes)
            return event

        await self.app(scope, limited_receive, send)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Close the relay's subscribers on shutdown."""
    yield
    app.state.relay.close()


def create_app(relay: ChatRelay, config: HttpConfig | None = None) -> FastAPI:
    """Create the FastAPI application for a chat relay.

    Args:
        relay: The relay serving all requests
        config: HTTP configuration

    Returns:
        FastAPI application
    """
    config = config or HttpConfig()

    app = FastAPI(
        title="chatrelay",
        description="Real-time chat message relay",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.relay = relay
    app.state.http_config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_origins),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    app.add_middleware(BodySizeLimitMiddleware, max_bytes=config.max_request_bytes)

    @app.exception_handler(RequestTooLargeError)
    async def request_too_large_handler(request: Request, exc: RequestTooLargeError) -> JSONResponse:
        logger.info("Request body over limit", extra={"path": request.url.path, "limit": exc.limit})
        return _too_large_response(exc.limit)

    @app.exception_handler(ChatRelayError)
    async def chatrelay_error_handler(request: Request, exc: ChatRelayError) -> JSONResponse:
        status = _STATUS_BY_CODE.get(exc.code, 500)
        if status >= 500:
            logger.error(f"Request failed: {exc.message}", extra={"error_code": exc.code})
        return JSONResponse(exc.to_dict(), status_code=status)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"HTTP handler error: {exc}", exc_info=True)
        return JSONResponse({"error": str(exc), "error_code": "INTERNAL"}, status_code=500)

    app.include_router(router, prefix="/v1")

    @app.get("/health", response_model=HealthResponse)
    async def health() -> JSONResponse:
        """Health check; 503 once the relay is shutting down."""
        state = relay.health()
        body = HealthResponse(
            status="healthy" if state["healthy"] else "closed",
            version=__version__,
            messages=state["messages"],
            last_id=state["last_id"],
            subscribers=state["subscribers"],
        )
        return JSONResponse(body.model_dump(), status_code=200 if state["healthy"] else 503)

    return app
