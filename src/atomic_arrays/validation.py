"""Field validation for record writes.

Records are stored as tab-separated, newline-terminated lines, so a field
containing a tab, newline, or NUL byte would corrupt the file. Those are
rejected at write time only; reads assume well-formed records.

Fields are also used verbatim as regular expression text when looking
records up, so metacharacters are allowed but trigger an advisory
warning.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Sequence

from atomic_arrays.errors import InvalidFieldError

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = "\t"
RECORD_TERMINATOR = "\n"

_FORBIDDEN = {
    FIELD_SEPARATOR: "contains a tab",
    RECORD_TERMINATOR: "contains a newline",
    "\0": "contains a null byte",
}

_PATTERN_CHARS = re.compile(r"[][.*+?{}()|\\^$]")


def validate_fields(fields: Sequence[str], column_count: int | None = None) -> None:
    """Reject fields that cannot be stored safely.

    Args:
        fields: Proposed key field values.
        column_count: Required number of fields, or None to accept any.

    Raises:
        InvalidFieldError: If a field is not a string, contains a separator,
            terminator, or NUL byte, or the field count is wrong.
    """
    if not fields:
        raise InvalidFieldError(0, "", "is missing: at least one key field is required")

    if column_count is not None and len(fields) != column_count:
        raise InvalidFieldError(
            len(fields),
            FIELD_SEPARATOR.join(str(f) for f in fields),
            f"count mismatch: expected {column_count} key fields, got {len(fields)}",
        )

    for index, value in enumerate(fields):
        if not isinstance(value, str):
            raise InvalidFieldError(index, repr(value), "is not a string")
        for char, reason in _FORBIDDEN.items():
            if char in value:
                raise InvalidFieldError(index, value, reason)


def find_pattern_characters(fields: Iterable[str]) -> list[str]:
    """Return the fields that contain regular expression metacharacters."""
    return [value for value in fields if _PATTERN_CHARS.search(value)]


def warn_if_pattern_characters(fields: Iterable[str]) -> bool:
    """Log a warning when fields would behave as patterns during lookups.

    Never blocks the write.

    Returns:
        True if a warning was emitted.
    """
    suspicious = find_pattern_characters(fields)
    if not suspicious:
        return False
    logger.warning(
        "One or more fields contain regex-sensitive characters %s; "
        "consider base64 encoding if exact-match lookups are required",
        suspicious,
    )
    return True
