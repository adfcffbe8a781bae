"""
Submission validation.

Checks run before anything touches the log, so a rejected submission never
leaves a partial append behind.
"""

from __future__ import annotations

import base64
import binascii
import re

from ..errors import ValidationError

# data:image/<subtype>[;param=value...];base64,<data>
_IMAGE_DATA_URI = re.compile(
    r"^data:image/(?P<subtype>[a-zA-Z0-9.+-]+)(?:;[a-zA-Z0-9_.+-]+=[^;,]*)*;base64,(?P<data>.*)$",
    re.DOTALL,
)


def validate_submission(
    sender: object,
    payload: object,
    is_image: object,
    max_payload_bytes: int,
) -> None:
    """Validate a message submission.

    Args:
        sender: Sender label; any string is accepted
        payload: Text, or an image data URI when is_image is true
        is_image: Payload discriminator
        max_payload_bytes: Upper bound on the UTF-8 size of payload

    Raises:
        ValidationError: If the submission is rejected
    """
    if not isinstance(sender, str):
        raise ValidationError("sender must be a string", field_name="sender")
    if not isinstance(is_image, bool):
        raise ValidationError("isImage must be a boolean", field_name="isImage")
    if not isinstance(payload, str):
        raise ValidationError("payload must be a string", field_name="payload")

    if not payload:
        raise ValidationError("payload must not be empty", field_name="payload")

    size = len(payload.encode("utf-8"))
    if size > max_payload_bytes:
        raise ValidationError(
            f"payload is {size} bytes, limit is {max_payload_bytes}",
            field_name="payload",
        )

    if is_image:
        validate_image_data_uri(payload)


def validate_image_data_uri(payload: str) -> None:
    """Check that payload is a base64-encoded image data URI.

    Raises:
        ValidationError: If the URI is malformed or carries no image data
    """
    match = _IMAGE_DATA_URI.match(payload)
    if match is None:
        raise ValidationError(
            "image payload must be a base64 data URI (data:image/<type>;base64,...)",
            field_name="payload",
        )

    data = match.group("data")
    if not data:
        raise ValidationError("image payload has no data", field_name="payload")
    try:
        base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("image payload is not valid base64", field_name="payload")
