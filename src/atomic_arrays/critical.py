"""Critical section manager for store operations.

Every store operation body runs through :meth:`CriticalSection.run`:

1. The owning pid is resolved (outside the lock, may inspect processes)
2. An exclusive lock on the store's lock file is acquired (blocks, no timeout)
3. The registered body runs in the calling thread with the pid prepended
4. The lock is released, also when the body raises
5. Timings are logged, now that the lock is no longer held

Bodies are registered per store in a mapping keyed by :class:`Operation`.
Nothing that logs or starts a subprocess may run between steps 2 and 4.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping

from atomic_arrays.errors import UnknownOperationError
from atomic_arrays.identity import ProcessIdentityResolver
from atomic_arrays.locks import LockStrategy

logger = logging.getLogger(__name__)


class Operation(str, Enum):
    """Operations that can run inside the critical section."""

    ADD = "add"
    GET = "get"
    DELETE = "delete"
    LIST = "list"
    DESTROY = "destroy"


OperationBody = Callable[..., Any]


@dataclass
class LockStatistics:
    """Statistics about critical section usage.

    Useful for debugging lock contention between processes.
    """

    total_acquisitions: int = 0
    total_wait_time: float = 0.0
    total_hold_time: float = 0.0
    max_wait_time: float = 0.0
    max_hold_time: float = 0.0

    def record(self, wait_time: float, hold_time: float) -> None:
        """Record one completed critical section."""
        self.total_acquisitions += 1
        self.total_wait_time += wait_time
        self.total_hold_time += hold_time
        self.max_wait_time = max(self.max_wait_time, wait_time)
        self.max_hold_time = max(self.max_hold_time, hold_time)

    @property
    def avg_wait_time(self) -> float:
        """Average wait time for lock acquisition."""
        if self.total_acquisitions == 0:
            return 0.0
        return self.total_wait_time / self.total_acquisitions

    @property
    def avg_hold_time(self) -> float:
        """Average time locks are held."""
        if self.total_acquisitions == 0:
            return 0.0
        return self.total_hold_time / self.total_acquisitions


class CriticalSection:
    """Runs registered operation bodies under an exclusive cross-process lock.

    At most one body executes at a time across all processes and threads
    that use the same lock file. A process that dies while holding the
    lock releases it with its descriptors; a process that hangs while
    holding it blocks every other caller indefinitely.

    Example:
        >>> section = CriticalSection(lock_path, strategy, resolver, {
        ...     Operation.GET: lambda pid, *fields: read(fields),
        ... })
        >>> section.run(Operation.GET, "apple")
    """

    def __init__(
        self,
        lock_path: Path,
        strategy: LockStrategy,
        resolver: ProcessIdentityResolver,
        bodies: Mapping[Operation, OperationBody],
    ) -> None:
        self._lock_path = Path(lock_path)
        self._strategy = strategy
        self._resolver = resolver
        self._bodies = dict(bodies)
        self._stats = LockStatistics()
        self._stats_lock = threading.Lock()

    @property
    def lock_path(self) -> Path:
        return self._lock_path

    @property
    def statistics(self) -> LockStatistics:
        return self._stats

    @property
    def operations(self) -> frozenset[Operation]:
        return frozenset(self._bodies)

    def run(self, operation: Operation, *args: Any) -> Any:
        """Execute one registered body under the lock.

        Args:
            operation: Which body to run.
            *args: Arguments passed to the body after the owning pid.

        Returns:
            Whatever the body returns.

        Raises:
            UnknownOperationError: If ``operation`` has no registered body.
        """
        body = self._bodies.get(operation) if isinstance(operation, Operation) else None
        if body is None:
            raise UnknownOperationError(operation)

        with self._resolver.scope() as pid:
            started = time.monotonic()
            handle = self._strategy.acquire(self._lock_path)
            acquired = time.monotonic()
            try:
                return body(pid, *args)
            finally:
                self._strategy.release(handle)
                released = time.monotonic()
                with self._stats_lock:
                    self._stats.record(acquired - started, released - acquired)
                logger.debug(
                    "%s by pid %d: waited %.4fs, held %.4fs",
                    operation.value,
                    pid,
                    acquired - started,
                    released - acquired,
                )
