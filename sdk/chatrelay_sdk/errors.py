"""
Error types for the chatrelay SDK.

This module defines all exception types raised by the SDK:
- ChatRelayError: Base exception
- ConnectionError: Server unreachable or connection lost
- ValidationError: Server rejected a submission
- SubscriptionOverflowError: Server dropped a subscriber that fell behind
- ServerError: Any other non-success response

Invariants:
    - All errors inherit from ChatRelayError
    - error_code mirrors the server's error_code when one was sent
"""

from __future__ import annotations

from typing import Any


class ChatRelayError(Exception):
    """Base exception for all chatrelay SDK errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "CHATRELAY_ERROR"
        self.details = details or {}


class ConnectionError(ChatRelayError):
    """Failed to reach the chatrelay server, or the connection dropped."""

    def __init__(self, message: str, address: str | None = None) -> None:
        super().__init__(
            message,
            code="CONNECTION_ERROR",
            details={"address": address},
        )
        self.address = address


class ValidationError(ChatRelayError):
    """The server rejected a message submission."""

    def __init__(self, message: str, field_name: str | None = None) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field_name},
        )
        self.field_name = field_name


class SubscriptionOverflowError(ChatRelayError):
    """The server disconnected this subscriber because it fell behind.

    Rejoin with history=True to catch up without gaps.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message, code="SUBSCRIPTION_OVERFLOW")


class ServerError(ChatRelayError):
    """The server answered with an unexpected status."""

    def __init__(self, message: str, status: int, code: str | None = None) -> None:
        super().__init__(message, code=code or "SERVER_ERROR", details={"status": status})
        self.status = status


def error_from_response(status: int, body: Any) -> ChatRelayError:
    """Build the SDK error matching a server error body.

    Args:
        status: HTTP status code
        body: Decoded JSON body, if any

    Returns:
        The most specific ChatRelayError for the response
    """
    if not isinstance(body, dict):
        return ServerError(f"HTTP {status}", status)

    message = str(body.get("error") or body.get("detail") or f"HTTP {status}")
    code = body.get("error_code")
    if code == "VALIDATION_ERROR" or status == 422:
        details = body.get("details") or {}
        return ValidationError(message, field_name=details.get("field"))
    if code == "SUBSCRIPTION_OVERFLOW":
        return SubscriptionOverflowError(message)
    return ServerError(message, status, code=code)
