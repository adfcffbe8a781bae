"""
Point-in-time reads of the message log.

Invariants:
    - A snapshot never contains a message whose publish is still in flight,
      provided the service shares the ingest lock

How to change safely:
    - Hold the lock only around the log read
"""

from __future__ import annotations

import threading

from ..log.base import Message, MessageLog


class SnapshotService:
    """Serves the full ordered contents of the log.

    Attributes:
        log: Message log to read
        lock: Ingest critical-section lock; reads wait for an in-flight
            append and publish to finish
    """

    def __init__(self, log: MessageLog, lock: threading.Lock | None = None) -> None:
        self.log = log
        self.lock = lock or threading.Lock()

    def list(self) -> tuple[Message, ...]:
        with self.lock:
            return self.log.list()
