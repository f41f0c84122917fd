"""Base64 helpers for fields that must match exactly.

Encoded values use the URL-safe alphabet without padding, so they contain
neither separators nor pattern metacharacters.
"""

from __future__ import annotations

import base64


def encode_field(value: str) -> str:
    """Encode an arbitrary string into a lookup-safe field."""
    return base64.urlsafe_b64encode(value.encode("utf-8")).decode("ascii").rstrip("=")


def decode_field(value: str) -> str:
    """Reverse :func:`encode_field`."""
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding).decode("utf-8")
