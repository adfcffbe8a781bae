"""
Error types for the chatrelay server.

Every error carries a stable ``code`` so the API layer can map it onto a
client-visible response without inspecting messages.

Invariants:
    - All errors inherit from ChatRelayError
    - No error in the core is retried internally
    - A failed submission never leaves a partial append behind
"""

from __future__ import annotations

from typing import Any


class ChatRelayError(Exception):
    """Base exception for all chatrelay server errors.

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

    def to_dict(self) -> dict[str, Any]:
        """Convert to the error body sent to clients."""
        body: dict[str, Any] = {"error": self.message, "error_code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(ChatRelayError):
    """A message submission was rejected.

    Raised when:
    - Text payload is empty
    - Image payload is not a base64 image data URI
    - Payload exceeds the configured size limit
    - A field has the wrong type
    """

    def __init__(self, message: str, field_name: str | None = None) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field_name} if field_name else None,
        )
        self.field_name = field_name


class LogExhaustedError(ChatRelayError):
    """The message log ran out of identifiers."""

    def __init__(self, max_id: int) -> None:
        super().__init__(
            f"Message id space exhausted (max id {max_id})",
            code="LOG_EXHAUSTED",
            details={"max_id": max_id},
        )
        self.max_id = max_id


class SubscriptionError(ChatRelayError):
    """Base class for errors tied to one subscription."""

    def __init__(self, message: str, subscription_id: str, code: str) -> None:
        super().__init__(message, code=code, details={"subscription_id": subscription_id})
        self.subscription_id = subscription_id


class SubscriptionOverflowError(SubscriptionError):
    """The subscriber's delivery queue exceeded its capacity.

    Only the overflowing subscriber sees this error. Messages queued before
    the overflow are still delivered first.
    """

    def __init__(self, subscription_id: str, capacity: int) -> None:
        super().__init__(
            f"Subscription {subscription_id} overflowed its queue of {capacity} messages",
            subscription_id,
            code="SUBSCRIPTION_OVERFLOW",
        )
        self.capacity = capacity


class SubscriptionClosedError(SubscriptionError):
    """The subscription was closed and its queue is drained."""

    def __init__(self, subscription_id: str) -> None:
        super().__init__(
            f"Subscription {subscription_id} is closed",
            subscription_id,
            code="SUBSCRIPTION_CLOSED",
        )


class TransportError(ChatRelayError):
    """The connection carrying a subscription was lost."""

    def __init__(self, message: str, subscription_id: str | None = None) -> None:
        super().__init__(
            message,
            code="TRANSPORT_ERROR",
            details={"subscription_id": subscription_id} if subscription_id else None,
        )
        self.subscription_id = subscription_id


class BrokerClosedError(ChatRelayError):
    """The broker has been shut down and accepts no new subscriptions."""

    def __init__(self) -> None:
        super().__init__("Broker is closed", code="BROKER_CLOSED")
