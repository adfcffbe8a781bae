"""
Message ingestion.

IngestService is the only writer of the message log. It validates a
submission, appends it, publishes the stored record and hands that same
record back to the submitter.

Invariants:
    - Append and publish run under one mutex, append first
    - Publish order therefore equals id order
    - Snapshot reads that share the mutex never see an unpublished append
    - A rejected submission leaves the log untouched
    - The returned Message is authoritative for the submitter

How to change safely:
    - Keep I/O and awaits out of the critical section
    - New validation rules belong in validation.py
"""

from __future__ import annotations

import logging
import threading

from ..broker.broker import Broker
from ..config import TEN_MEGABYTES
from ..errors import ValidationError
from ..log.base import Message, MessageLog
from .validation import validate_submission

logger = logging.getLogger(__name__)


class IngestService:
    """Accepts new messages into the log and fans them out.

    Attributes:
        log: Message log to append to
        broker: Broker to publish to
        max_payload_bytes: Largest accepted payload
        lock: Guards append plus publish; shared with SnapshotService
    """

    def __init__(
        self,
        log: MessageLog,
        broker: Broker,
        max_payload_bytes: int = TEN_MEGABYTES,
    ) -> None:
        self.log = log
        self.broker = broker
        self.max_payload_bytes = max_payload_bytes
        self.lock = threading.Lock()

    def submit(self, sender: str, payload: str, is_image: bool) -> Message:
        """Validate, append and publish one message.

        Args:
            sender: Opaque sender label
            payload: Text or image data URI
            is_image: Payload discriminator

        Returns:
            The stored Message, as delivered to subscribers

        Raises:
            ValidationError: If the submission is rejected
            LogExhaustedError: If the log has no identifiers left
        """
        try:
            validate_submission(sender, payload, is_image, self.max_payload_bytes)
        except ValidationError as e:
            logger.info(
                "Submission rejected",
                extra={"sender": sender, "reason": e.message, "field": e.field_name},
            )
            raise

        with self.lock:
            message = self.log.append(sender, payload, is_image)
            delivered = self.broker.publish(message)

        logger.info(
            "Message accepted",
            extra={
                "message_id": message.id,
                "sender": sender,
                "is_image": is_image,
                "delivered": delivered,
            },
        )
        return message
