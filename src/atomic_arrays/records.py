"""Record model and line codec.

On disk a record is one line::

    <token>\\t<field1>\\t...\\t<fieldN>\\t<pid>\\n

The token is an insertion-order discriminator, the pid identifies the
owning process. Parsing assumes the line was written by ``format_line``;
lines that do not parse are reported as None.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from atomic_arrays.validation import FIELD_SEPARATOR, RECORD_TERMINATOR


@dataclass(frozen=True)
class Record:
    """A stored record.

    Attributes:
        token: Token issued when the record was added.
        fields: Caller-supplied key fields.
        pid: Owning process id.
    """

    token: int
    fields: tuple[str, ...]
    pid: int

    def render(self) -> str:
        """Key fields and pid joined by tabs, without the token."""
        return FIELD_SEPARATOR.join((*self.fields, str(self.pid)))

    def __str__(self) -> str:
        return self.render()


def format_line(token: int, fields: Sequence[str], pid: int) -> str:
    """Encode one record as a terminated line."""
    return FIELD_SEPARATOR.join((str(token), *fields, str(pid))) + RECORD_TERMINATOR


def parse_line(line: str) -> Record | None:
    """Decode one stored line, or return None if it is not a record."""
    parts = line.rstrip(RECORD_TERMINATOR).split(FIELD_SEPARATOR)
    if len(parts) < 3:
        return None
    try:
        token = int(parts[0])
        pid = int(parts[-1])
    except ValueError:
        return None
    return Record(token=token, fields=tuple(parts[1:-1]), pid=pid)
