"""Atomic whole-file replacement.

Files are rewritten with the write-to-temp-then-rename pattern: content
goes to a temporary file in the target's directory, is synced to disk,
and is then renamed over the target. Readers see either the old or the
new complete content, never a mix.

These helpers do not lock; callers run them inside the store's critical
section.

Example:
    >>> with AtomicFileWriter(path) as writer:
    ...     writer.writelines(lines)
    ...     result = writer.commit()
    >>> if not result.success:
    ...     print(result.error)
"""

from __future__ import annotations

import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable


@dataclass
class AtomicOperation:
    """Represents an atomic operation result.

    Attributes:
        success: Whether the operation succeeded.
        path: Path that was operated on.
        error: Error message if operation failed.
        exception: The exception that caused the failure, if any.
        bytes_written: Number of bytes written.
    """

    success: bool
    path: Path
    error: str | None = None
    exception: BaseException | None = None
    bytes_written: int = 0


class AtomicFileWriter:
    """Atomic text file writer using write-to-temp-then-rename.

    If any step fails, the original file remains unchanged and the
    temporary file is removed when the context exits.
    """

    def __init__(
        self,
        path: Path | str,
        sync_on_commit: bool = True,
        encoding: str = "utf-8",
    ) -> None:
        """Initialize the atomic writer.

        Args:
            path: Target file path.
            sync_on_commit: Whether to fsync before rename.
            encoding: Text encoding of the written content.
        """
        self._path = Path(path)
        self._sync_on_commit = sync_on_commit
        self._encoding = encoding

        self._temp_file: Any = None
        self._temp_path: Path | None = None
        self._committed = False
        self._bytes_written = 0

    @property
    def temp_path(self) -> Path | None:
        return self._temp_path

    def __enter__(self) -> "AtomicFileWriter":
        """Enter context and create temp file."""
        self._path.parent.mkdir(parents=True, exist_ok=True)

        # Same directory as the target so the rename stays on one filesystem
        fd, temp_path = tempfile.mkstemp(
            dir=self._path.parent,
            prefix=f".{self._path.name}.",
            suffix=".tmp",
        )
        self._temp_path = Path(temp_path)
        self._temp_file = os.fdopen(fd, "w", encoding=self._encoding, newline="")
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit context and cleanup."""
        if self._temp_file and not self._temp_file.closed:
            self._temp_file.close()

        if not self._committed and self._temp_path:
            self._temp_path.unlink(missing_ok=True)

    def write(self, data: str) -> int:
        """Write text to the temp file."""
        if self._committed:
            raise RuntimeError("Cannot write after commit")
        if self._temp_file is None:
            raise RuntimeError("Must be used within context manager")

        count = self._temp_file.write(data)
        self._bytes_written += len(data.encode(self._encoding))
        return count

    def writelines(self, lines: Iterable[str]) -> None:
        for line in lines:
            self.write(line)

    def commit(self) -> AtomicOperation:
        """Commit the write by renaming the temp file over the target.

        Returns:
            AtomicOperation with result details.

        Raises:
            RuntimeError: If already committed or not in context.
        """
        if self._committed:
            raise RuntimeError("Already committed")

        if self._temp_file is None or self._temp_path is None:
            raise RuntimeError("Must be used within context manager")

        try:
            self._temp_file.flush()
            if self._sync_on_commit:
                os.fsync(self._temp_file.fileno())
            self._temp_file.close()

            if self._path.exists():
                shutil.copymode(self._path, self._temp_path)

            self._temp_path.replace(self._path)
            self._committed = True

            return AtomicOperation(
                success=True,
                path=self._path,
                bytes_written=self._bytes_written,
            )

        except OSError as e:
            return AtomicOperation(
                success=False,
                path=self._path,
                error=str(e),
                exception=e,
            )


def atomic_write(path: Path | str, content: str, sync: bool = True) -> AtomicOperation:
    """Convenience function for atomic file write.

    Example:
        >>> result = atomic_write(Path("counter.token"), "42\\n")
        >>> result.success
        True
    """
    with AtomicFileWriter(path, sync_on_commit=sync) as writer:
        writer.write(content)
        return writer.commit()
