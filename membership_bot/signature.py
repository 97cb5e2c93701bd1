"""Signature upload: accept a single image under 1 MB, store it as a data URL."""

from __future__ import annotations

import base64

MAX_SIGNATURE_BYTES = 1024 * 1024

MSG_NOT_AN_IMAGE = "Please upload only image files (JPG, PNG, etc.)"
MSG_TOO_LARGE = "File size must be less than 1MB. Please choose a smaller image."


def check_signature(mime_type: str | None, size: int | None) -> str | None:
    """Return the user-facing rejection message, or None if the file is acceptable."""
    if not mime_type or not mime_type.startswith("image/"):
        return MSG_NOT_AN_IMAGE
    if size is not None and size > MAX_SIGNATURE_BYTES:
        return MSG_TOO_LARGE
    return None


def to_data_url(data: bytes, mime_type: str) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"
