"""Lock strategies for the critical section.

This module implements the Strategy pattern for exclusive file locking,
allowing different locking mechanisms to be used interchangeably based on
platform.

Supported strategies:
- FcntlLockStrategy: POSIX flock-based locking (Unix/Linux/macOS)
- FileLockStrategy: Cross-platform locking via the filelock library

Locks are advisory and exclusive only; there is no shared/reader mode and
no acquisition timeout. Every acquisition opens its own descriptor on the
lock file, so two threads of one process exclude each other just like two
processes do. Descriptors are not inheritable, so a child started while a
lock is held does not keep it alive.
"""

from __future__ import annotations

import os
import sys
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from atomic_arrays.config import LockStrategyType


@dataclass(frozen=True)
class LockHandle:
    """Handle representing an acquired lock.

    This is an opaque handle that must be passed to release the lock.

    Attributes:
        path: Path to the lock file.
        fd: File descriptor (if applicable).
        timestamp: When the lock was acquired.
        thread_id: ID of the thread that acquired the lock.
        process_id: ID of the process that acquired the lock.
    """

    path: Path
    fd: int | None = None
    timestamp: float = field(default_factory=time.time)
    thread_id: int = field(default_factory=threading.get_ident)
    process_id: int = field(default_factory=os.getpid)

    def __str__(self) -> str:
        return f"LockHandle({self.path}, pid={self.process_id})"


class LockStrategy(ABC):
    """Abstract base class for lock strategies.

    Implementations must exclude other threads and other processes.
    """

    name: str = "abstract"

    @abstractmethod
    def acquire(self, path: Path) -> LockHandle:
        """Block until an exclusive lock on ``path`` is held.

        Args:
            path: Lock file; created if missing, never removed.

        Returns:
            LockHandle for the acquired lock.

        Raises:
            OSError: If locking fails due to system error.
        """
        pass

    @abstractmethod
    def release(self, handle: LockHandle) -> None:
        """Release a previously acquired lock.

        Raises:
            ValueError: If the handle is invalid or already released.
        """
        pass


class FcntlLockStrategy(LockStrategy):
    """POSIX flock-based file locking strategy.

    Features:
    - Advisory locking (cooperative)
    - Automatic release on file descriptor close, including process death
    - Works across processes and across threads of one process
    """

    name = "fcntl"

    def __init__(self) -> None:
        """Initialize the fcntl lock strategy."""
        if sys.platform == "win32":
            raise RuntimeError("FcntlLockStrategy is not available on Windows")

        import fcntl

        self._fcntl = fcntl

    def acquire(self, path: Path) -> LockHandle:
        """Acquire a lock using fcntl.flock()."""
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(str(path), os.O_RDWR | os.O_CREAT, 0o666)
        try:
            self._fcntl.flock(fd, self._fcntl.LOCK_EX)
        except BaseException:
            os.close(fd)
            raise
        return LockHandle(path=path, fd=fd)

    def release(self, handle: LockHandle) -> None:
        """Release the flock and close the descriptor."""
        if handle.fd is None:
            raise ValueError(f"Lock not held: {handle.path}")
        try:
            self._fcntl.flock(handle.fd, self._fcntl.LOCK_UN)
        finally:
            os.close(handle.fd)


class FileLockStrategy(LockStrategy):
    """Cross-platform locking using the filelock library.

    Requires: pip install filelock
    """

    name = "filelock"

    def __init__(self) -> None:
        """Initialize the filelock strategy."""
        try:
            import filelock

            self._filelock = filelock
        except ImportError as e:
            raise ImportError(
                "filelock is required for FileLockStrategy. "
                "Install it with: pip install filelock"
            ) from e

        self._locks: dict[tuple[str, int], Any] = {}
        self._lock = threading.Lock()

    def _new_lock(self, path: Path) -> Any:
        # A private instance per acquisition: filelock instances are reentrant,
        # which would let two threads sharing one instance both enter.
        return self._filelock.FileLock(str(path), thread_local=False, is_singleton=False)

    def acquire(self, path: Path) -> LockHandle:
        """Acquire a lock using filelock."""
        path.parent.mkdir(parents=True, exist_ok=True)
        lock = self._new_lock(path)
        lock.acquire(timeout=-1)
        handle = LockHandle(path=path)
        with self._lock:
            self._locks[(str(path), handle.thread_id)] = lock
        return handle

    def release(self, handle: LockHandle) -> None:
        """Release the filelock lock."""
        with self._lock:
            lock = self._locks.pop((str(handle.path), handle.thread_id), None)
        if lock is None:
            raise ValueError(f"Lock not held: {handle.path}")
        lock.release()


def get_default_lock_strategy() -> LockStrategy:
    """Get the best available lock strategy for the current platform.

    Priority order:
    1. FcntlLockStrategy (Unix-like systems)
    2. FileLockStrategy
    """
    if sys.platform != "win32":
        return FcntlLockStrategy()
    return FileLockStrategy()


def get_lock_strategy(strategy_type: LockStrategyType | str) -> LockStrategy:
    """Create the lock strategy selected in configuration."""
    strategy_type = LockStrategyType(strategy_type)
    if strategy_type is LockStrategyType.FCNTL:
        return FcntlLockStrategy()
    if strategy_type is LockStrategyType.FILELOCK:
        return FileLockStrategy()
    return get_default_lock_strategy()
