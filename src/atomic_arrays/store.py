"""File-backed record store shared between processes.

``AtomicArrays`` coordinates a parent and its children through one flat
file of tab-separated records::

    <token>\\t<key1>\\t...\\t<keyN>\\t<pid>

Every operation runs as a body of the store's critical section, so the
file content after any set of concurrent calls equals some serial order
of those calls. Readers take the same exclusive lock as writers.

Example:
    >>> store = AtomicArrays(StoreConfig(path=Path("/tmp/jobs.txt")))
    >>> store.add("apple", "red", "fruit").token
    1
    >>> [str(r) for r in store.get("apple")]
    ['apple\\tred\\tfruit\\t4242']
    >>> store.delete("apple")
    1
    >>> store.destroy()
    True
"""

from __future__ import annotations

import atexit
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path

from atomic_arrays.atomic import AtomicFileWriter
from atomic_arrays.config import StoreConfig, UniquenessScope
from atomic_arrays.critical import CriticalSection, LockStatistics, Operation
from atomic_arrays.errors import DeleteFailedError, DuplicateSuppressed
from atomic_arrays.identity import ProcessIdentityResolver
from atomic_arrays.locks import LockStrategy, get_lock_strategy
from atomic_arrays.matching import compile_key
from atomic_arrays.records import Record, format_line, parse_line
from atomic_arrays.tokens import TokenGenerator
from atomic_arrays.validation import (
    RECORD_TERMINATOR,
    validate_fields,
    warn_if_pattern_characters,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AddResult:
    """Outcome of :meth:`AtomicArrays.add`.

    Attributes:
        token: Token of the new record, or None if the insert was suppressed.
        fields: Key fields that were added.
        pid: Owning pid the record was (or would have been) stored under.
        duplicates: Existing records that suppressed the insert.
    """

    token: int | None
    fields: tuple[str, ...]
    pid: int
    duplicates: tuple[Record, ...] = ()

    @property
    def added(self) -> bool:
        return self.token is not None


class AtomicArrays:
    """Cross-process record store backed by a single file.

    Args:
        config: Store configuration. Defaults to a process-exclusive file
            under the temp directory.
        lock_strategy: Lock strategy override; defaults to the one named
            in ``config``.
        resolver: Owning-pid resolver; defaults to the running process.
    """

    def __init__(
        self,
        config: StoreConfig | None = None,
        *,
        lock_strategy: LockStrategy | None = None,
        resolver: ProcessIdentityResolver | None = None,
    ) -> None:
        self._config = config or StoreConfig()
        self._strategy = lock_strategy or get_lock_strategy(self._config.lock_strategy)
        self._resolver = resolver or ProcessIdentityResolver()
        self._tokens = TokenGenerator(self._config.token_path, sync=self._config.sync_writes)
        self._section = CriticalSection(
            self._config.lock_path,
            self._strategy,
            self._resolver,
            {
                Operation.ADD: self._add,
                Operation.GET: self._get,
                Operation.DELETE: self._delete,
                Operation.LIST: self._list,
                Operation.DESTROY: self._destroy,
            },
        )

    def __repr__(self) -> str:
        return f"AtomicArrays(path={str(self.path)!r}, uniqueness={self._config.uniqueness.value})"

    @property
    def config(self) -> StoreConfig:
        return self._config

    @property
    def path(self) -> Path:
        return self._config.path

    @property
    def resolver(self) -> ProcessIdentityResolver:
        return self._resolver

    @property
    def statistics(self) -> LockStatistics:
        return self._section.statistics

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def add(self, *fields: str) -> AddResult:
        """Add a record unless an equivalent one already exists.

        Existing records are found with the same prefix key as :meth:`get`,
        so a record whose key starts with ``fields`` counts as a match.
        Under per-process uniqueness any match suppresses the insert; under
        global uniqueness only one owned by the same pid does. A suppressed insert is logged as a warning and
        reported as a successful no-op.

        Raises:
            InvalidFieldError: If a field contains a tab, newline or NUL
                byte, or the field count does not match ``column_count``.
        """
        validate_fields(fields, self._config.column_count)
        if self._config.warn_on_pattern_chars:
            warn_if_pattern_characters(fields)

        pattern = compile_key(fields)
        uniqueness = self._config.uniqueness
        with self._resolver.scope() as pid:
            try:
                token = self._section.run(Operation.ADD, fields, pattern, uniqueness)
            except DuplicateSuppressed as dup:
                logger.warning("Avoided adding duplicate record %s", list(fields))
                return AddResult(token=None, fields=dup.fields, pid=pid, duplicates=dup.matches)

        logger.info("Added record %s with token %d", list(fields), token)
        return AddResult(token=token, fields=tuple(fields), pid=pid)

    def get(self, *fields: str) -> list[Record]:
        """Return records whose leading key fields match ``fields``.

        ``fields`` may be a partial key. Nothing matching, an empty store,
        and a missing store all return an empty list.
        """
        return self._section.run(Operation.GET, compile_key(fields))

    def delete(self, *fields: str) -> int:
        """Remove every record matching ``fields`` (same rule as :meth:`get`).

        With no fields every record is removed; the file itself remains.

        Returns:
            Number of records removed.

        Raises:
            DeleteFailedError: If the file could not be replaced; the store
                is left unchanged.
        """
        removed = self._section.run(Operation.DELETE, compile_key(fields))
        if removed:
            logger.info("Removed %d record(s) matching %s", removed, list(fields))
        return removed

    def list(self) -> list[Record]:
        """Return every record in insertion order."""
        return self._section.run(Operation.LIST)

    def destroy(self) -> bool:
        """Remove the backing file and its token sidecar.

        Returns:
            True if the backing file existed.
        """
        existed = self._section.run(Operation.DESTROY)
        if existed:
            logger.info("Destroyed record store %s", self.path)
        return existed

    def destroy_at_exit(self) -> None:
        """Best-effort removal of the store when this process exits.

        Forked children inherit the registration but do not act on it.
        """
        owner = os.getpid()

        def cleanup() -> None:
            if os.getpid() != owner:
                return
            try:
                self.destroy()
            except OSError as e:
                logger.warning("Failed to destroy record store %s at exit: %s", self.path, e)

        atexit.register(cleanup)

    # ------------------------------------------------------------------
    # Critical section bodies: no logging, no subprocesses
    # ------------------------------------------------------------------

    def _read_lines(self) -> list[str]:
        try:
            with open(self.path, encoding="utf-8", newline=RECORD_TERMINATOR) as f:
                return f.readlines()
        except FileNotFoundError:
            return []

    def _matching_records(self, pattern: re.Pattern[str]) -> list[Record]:
        records = []
        for line in self._read_lines():
            if pattern.match(line):
                record = parse_line(line)
                if record is not None:
                    records.append(record)
        return records

    def _add(
        self,
        pid: int,
        fields: tuple[str, ...],
        pattern: re.Pattern[str],
        uniqueness: UniquenessScope,
    ) -> int:
        matches = self._matching_records(pattern)
        if matches and (
            uniqueness is UniquenessScope.PER_PROCESS or any(r.pid == pid for r in matches)
        ):
            raise DuplicateSuppressed(fields, matches)

        token = self._tokens.next_token()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8", newline=RECORD_TERMINATOR) as f:
            f.write(format_line(token, fields, pid))
            if self._config.sync_writes:
                f.flush()
                os.fsync(f.fileno())
        return token

    def _get(self, pid: int, pattern: re.Pattern[str]) -> list[Record]:
        return self._matching_records(pattern)

    def _list(self, pid: int) -> list[Record]:
        return [r for r in map(parse_line, self._read_lines()) if r is not None]

    def _delete(self, pid: int, pattern: re.Pattern[str]) -> int:
        lines = self._read_lines()
        kept = [line for line in lines if not pattern.match(line)]
        removed = len(lines) - len(kept)
        if not removed:
            return 0

        try:
            with AtomicFileWriter(self.path, sync_on_commit=self._config.sync_writes) as writer:
                writer.writelines(kept)
                result = writer.commit()
        except OSError as e:
            raise DeleteFailedError(self.path, e) from e
        if not result.success:
            raise DeleteFailedError(self.path, result.exception or OSError(result.error))
        return removed

    def _destroy(self, pid: int) -> bool:
        existed = self.path.exists()
        self.path.unlink(missing_ok=True)
        self._tokens.reset()
        return existed
