"""
Chat services built on the message log and broker.

- IngestService: validate, append, publish
- SnapshotService: full log reads
- join: subscribe-then-snapshot feed for new readers
- ChatRelay: owns all of the above for the process lifetime
"""

from .ingest import IngestService
from .join import MessageFeed, join
from .relay import ChatRelay
from .snapshot import SnapshotService
from .validation import validate_image_data_uri, validate_submission

__all__ = [
    "ChatRelay",
    "IngestService",
    "MessageFeed",
    "SnapshotService",
    "join",
    "validate_image_data_uri",
    "validate_submission",
]
