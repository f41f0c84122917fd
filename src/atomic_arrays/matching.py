"""Search patterns for key lookups.

A lookup key is a regular expression matched against whole stored lines.
It skips the leading token, then expects the supplied fields joined by
tabs::

    ^[0-9]+\\t<field1>\\t<field2>

Field values are pattern text, not literals. The owning pid is never part
of the pattern; it is always the trailing stored field.

``add``, ``get`` and ``delete`` all use the same key. It is a textual
prefix of the tab-joined key fields with no anchor after the last supplied
field, so ``"ab"`` also matches a record whose first field is ``"abc"``,
and ``("ab", "c")`` matches a record ``("ab", "cd")``.
"""

from __future__ import annotations

import logging
import re
from typing import Sequence

from atomic_arrays.validation import FIELD_SEPARATOR

logger = logging.getLogger(__name__)

TOKEN_PATTERN = r"^[0-9]+" + FIELD_SEPARATOR


def search_key(fields: Sequence[str]) -> str:
    """Build the pattern text for a possibly partial key."""
    return TOKEN_PATTERN + FIELD_SEPARATOR.join(fields)


def compile_key(fields: Sequence[str]) -> re.Pattern[str]:
    """Compile a key, falling back to literal matching for invalid patterns."""
    try:
        return re.compile(search_key(fields))
    except re.error as exc:
        logger.debug("Fields %s are not a valid pattern (%s); matching literally", fields, exc)
        return re.compile(search_key([re.escape(f) for f in fields]))
