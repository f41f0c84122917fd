"""Store configuration.

A store is described by an explicit :class:`StoreConfig` handed to
``AtomicArrays`` at construction. Processes that share a store pass the
configuration to their children through the environment:

    ATOMIC_ARRAYS_INSTANCE_FILE=/tmp/build.4242.txt
    ATOMIC_ARRAYS_ROWS_UNIQUE_PER_PROCESS=1
    ATOMIC_ARRAYS_LOCK_STRATEGY=auto
    ATOMIC_ARRAYS_COLUMN_COUNT=3

Example:
    >>> config = StoreConfig(path=Path("/tmp/jobs.txt"))
    >>> child_env = {**os.environ, **config.to_env()}
    >>> StoreConfig.from_env(child_env).path
    PosixPath('/tmp/jobs.txt')
"""

from __future__ import annotations

import os
import sys
import tempfile
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Mapping

ENV_PREFIX = "ATOMIC_ARRAYS_"
ENV_INSTANCE_FILE = f"{ENV_PREFIX}INSTANCE_FILE"
ENV_UNIQUE_PER_PROCESS = f"{ENV_PREFIX}ROWS_UNIQUE_PER_PROCESS"
ENV_LOCK_STRATEGY = f"{ENV_PREFIX}LOCK_STRATEGY"
ENV_COLUMN_COUNT = f"{ENV_PREFIX}COLUMN_COUNT"
ENV_PID = f"{ENV_PREFIX}PID"

TOKEN_SUFFIX = ".token"


class UniquenessScope(str, Enum):
    """Duplicate detection policy for ``add``."""

    PER_PROCESS = "per_process"  # any existing match blocks the insert
    GLOBAL = "global"  # only a match owned by the same pid blocks


class LockStrategyType(str, Enum):
    """Available lock strategy types."""

    AUTO = "auto"  # Auto-detect best strategy
    FCNTL = "fcntl"  # POSIX fcntl (Unix only)
    FILELOCK = "filelock"  # filelock library


def default_store_path(pid: int | None = None) -> Path:
    """Build the default backing file path for the running program.

    The path is unique per process: ``<tempdir>/<program>.<pid>.txt``.
    """
    program = Path(sys.argv[0]).stem if sys.argv and sys.argv[0] else ""
    if not program or program == "-c":
        program = "atomic_arrays"
    return Path(tempfile.gettempdir()) / f"{program}.{pid or os.getpid()}.txt"


@dataclass
class StoreConfig:
    """Configuration for one record store.

    Attributes:
        path: Backing file holding the records.
        uniqueness: Duplicate detection policy for ``add``.
        lock_strategy: Which lock strategy serializes the critical section.
        column_count: Expected number of key fields, or None to accept any.
        warn_on_pattern_chars: Log a warning when added fields contain
            pattern metacharacters.
        sync_writes: fsync appended and replaced data before returning.
    """

    path: Path = field(default_factory=default_store_path)
    uniqueness: UniquenessScope = UniquenessScope.PER_PROCESS
    lock_strategy: LockStrategyType = LockStrategyType.AUTO
    column_count: int | None = None
    warn_on_pattern_chars: bool = True
    sync_writes: bool = True

    def __post_init__(self) -> None:
        self.path = Path(self.path)
        self.uniqueness = UniquenessScope(self.uniqueness)
        self.lock_strategy = LockStrategyType(self.lock_strategy)
        if self.column_count is not None and self.column_count < 1:
            raise ValueError(f"column_count must be positive, got {self.column_count}")

    @property
    def token_path(self) -> Path:
        """Sidecar file holding the last issued token."""
        return self.path.with_name(self.path.name + TOKEN_SUFFIX)

    @property
    def lock_path(self) -> Path:
        """Dedicated lock file tied to the backing file."""
        return self.path.parent / f".{self.path.name}.lock"

    @property
    def unique_per_process(self) -> bool:
        return self.uniqueness is UniquenessScope.PER_PROCESS

    def with_uniqueness(self, uniqueness: UniquenessScope | str) -> "StoreConfig":
        """Return a copy using a different uniqueness scope."""
        return replace(self, uniqueness=UniquenessScope(uniqueness))

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "StoreConfig":
        """Load configuration from ``ATOMIC_ARRAYS_*`` environment variables.

        Unset variables keep their defaults. ``ATOMIC_ARRAYS_ROWS_UNIQUE_PER_PROCESS``
        follows the shell convention: ``1`` selects per-process scope, ``0``
        selects global scope.
        """
        env = os.environ if environ is None else environ
        kwargs: dict[str, object] = {}

        path = env.get(ENV_INSTANCE_FILE)
        if path:
            kwargs["path"] = Path(path)

        unique = env.get(ENV_UNIQUE_PER_PROCESS, "").strip()
        if unique:
            kwargs["uniqueness"] = (
                UniquenessScope.GLOBAL if unique == "0" else UniquenessScope.PER_PROCESS
            )

        strategy = env.get(ENV_LOCK_STRATEGY, "").strip().lower()
        if strategy:
            kwargs["lock_strategy"] = LockStrategyType(strategy)

        column_count = env.get(ENV_COLUMN_COUNT, "").strip()
        if column_count:
            kwargs["column_count"] = int(column_count)

        return cls(**kwargs)  # type: ignore[arg-type]

    def to_env(self) -> dict[str, str]:
        """Export this configuration for child processes."""
        env = {
            ENV_INSTANCE_FILE: str(self.path),
            ENV_UNIQUE_PER_PROCESS: "1" if self.unique_per_process else "0",
            ENV_LOCK_STRATEGY: self.lock_strategy.value,
        }
        if self.column_count is not None:
            env[ENV_COLUMN_COUNT] = str(self.column_count)
        return env
