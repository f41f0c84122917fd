"""Exceptions raised by the record store.

All store failures derive from :class:`AtomicArraysError`. Failures are
reported to the immediate caller and never retried internally.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Sequence

if TYPE_CHECKING:
    from atomic_arrays.records import Record


class AtomicArraysError(Exception):
    """Base exception for all record store errors."""

    pass


class InvalidFieldError(AtomicArraysError):
    """Raised when a record field would corrupt the flat-file encoding.

    Checked before anything is written, so a rejected ``add`` leaves the
    store untouched.
    """

    def __init__(self, index: int, value: str, reason: str) -> None:
        self.index = index
        self.value = value
        self.reason = reason
        super().__init__(f"Field {index} {reason}: {value!r}")


class UnknownOperationError(AtomicArraysError):
    """Raised when the critical section is asked to run an unregistered body."""

    def __init__(self, operation: Any) -> None:
        self.operation = operation
        super().__init__(f"Unknown operation: {operation!r}")


class DeleteFailedError(AtomicArraysError):
    """Raised when the replace step of a delete could not complete.

    The backing file is left exactly as it was before the call.
    """

    def __init__(self, path: Path, cause: BaseException) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to safely remove records from {path}: {cause}")


class DuplicateSuppressed(Exception):
    """Outcome of an ``add`` whose key already exists.

    Not a failure: the add body raises it to abort the insert while the
    lock is held, and ``AtomicArrays.add`` turns it into a successful
    no-op result.
    """

    def __init__(self, fields: Sequence[str], matches: Sequence["Record"]) -> None:
        self.fields = tuple(fields)
        self.matches = tuple(matches)
        super().__init__(f"Avoided adding duplicate record {list(self.fields)}")
