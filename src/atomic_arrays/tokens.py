"""Monotonic token generator backed by a sidecar file.

CONTRACT: callers must hold the store's critical section. The generator
does no locking of its own; serialization comes entirely from the lock
around every read-increment-write.
"""

from __future__ import annotations

import re
from pathlib import Path

from atomic_arrays.atomic import atomic_write

_LEADING_DIGITS = re.compile(r"[0-9]*")


class TokenGenerator:
    """Issues strictly increasing tokens for one store.

    The sidecar holds a single decimal line with the last issued token.
    Missing, empty, or non-numeric content counts as zero.
    """

    def __init__(self, path: Path | str, sync: bool = True) -> None:
        self._path = Path(path)
        self._sync = sync

    @property
    def path(self) -> Path:
        return self._path

    def peek(self) -> int:
        """Return the last issued token without consuming one."""
        try:
            with open(self._path, encoding="utf-8") as f:
                first_line = f.readline()
        except FileNotFoundError:
            return 0
        digits = _LEADING_DIGITS.match(first_line.strip())
        return int(digits.group()) if digits and digits.group() else 0

    def next_token(self) -> int:
        """Consume and return the next token."""
        token = self.peek() + 1
        result = atomic_write(self._path, f"{token}\n", sync=self._sync)
        if not result.success:
            raise OSError(f"Failed to persist token to {self._path}: {result.error}")
        return token

    def reset(self) -> None:
        """Forget the sequence by removing the sidecar."""
        self._path.unlink(missing_ok=True)
