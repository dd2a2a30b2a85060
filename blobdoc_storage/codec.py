"""Text <-> blob transcoding.

Blobs travel as base64 of the UTF-8 bytes, so every Unicode string
(Thai script, emoji, control characters) survives the round trip.
"""

from __future__ import annotations

import base64
import binascii

from .exceptions import CodecError


def encode(text: str) -> str:
    """Encode text into an ASCII-safe blob."""
    try:
        raw = text.encode("utf-8")
    except UnicodeEncodeError as e:
        raise CodecError(f"text is not encodable as UTF-8: {e.reason}") from e
    return base64.b64encode(raw).decode("ascii")


def decode(blob: str) -> str:
    """Decode a blob produced by :func:`encode`.

    Whitespace is ignored; GitHub wraps base64 content at 60 columns.
    """
    if not isinstance(blob, str):
        raise CodecError(f"blob must be a string, not {type(blob).__name__}")
    compact = "".join(blob.split())
    try:
        raw = base64.b64decode(compact, validate=True)
        return raw.decode("utf-8")
    except (binascii.Error, ValueError) as e:
        raise CodecError(f"blob is not valid base64 UTF-8: {e}") from e
