"""Resolution of the process that owns a record.

Records are scoped to a logical owning process. Inside a Python program
that is simply the running process. When the store is driven from a shell
script through the command line tool, the tool itself is a short-lived
child; the owner is the script, found by walking up the parent chain past
subshell forks (``$(...)``, ``( ... )``), which carry the same executable
and command line as the shell they were forked from.

Resolution reads process tables directly and never spawns a helper, but
it still runs before the critical section is entered, never under the
lock.

Example:
    >>> resolver = ProcessIdentityResolver(OwnerMode.CALLER)
    >>> with resolver.scope() as pid:
    ...     store.add("job", "42")  # every nested entry reuses ``pid``
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from contextvars import ContextVar
from enum import Enum
from typing import Iterator

import psutil

logger = logging.getLogger(__name__)

class OwnerMode(str, Enum):
    """Which process owns the records written by this process."""

    SELF = "self"  # the running process
    CALLER = "caller"  # the invoking process, skipping subshell forks


def _is_subshell_of(proc: psutil.Process, parent: psutil.Process) -> bool:
    return proc.name() == parent.name() and proc.cmdline() == parent.cmdline()


def resolve_caller_pid() -> int:
    """Return the pid of the logical process that invoked this one.

    Starts at the direct parent and climbs while the current candidate is a
    fork of its own parent. Stops at the first process that cannot be
    inspected.
    """
    try:
        proc = psutil.Process(os.getpid()).parent()
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return os.getppid()
    if proc is None:
        return os.getppid()

    while True:
        try:
            parent = proc.parent()
            if parent is None or not _is_subshell_of(proc, parent):
                return proc.pid
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return proc.pid
        proc = parent


class ProcessIdentityResolver:
    """Resolves and memoizes the owning process id.

    The resolved value is cached per running process: a forked child
    re-resolves on first use instead of inheriting its parent's answer.
    A pid pinned with :meth:`scope` applies to this resolver only.
    """

    def __init__(self, mode: OwnerMode | str = OwnerMode.SELF) -> None:
        self._mode = OwnerMode(mode)
        self._cached: int | None = None
        self._cached_in: int | None = None
        self._pinned: ContextVar[int | None] = ContextVar(
            f"atomic_arrays_pinned_pid_{id(self):x}", default=None
        )

    @property
    def mode(self) -> OwnerMode:
        return self._mode

    def resolve(self) -> int:
        """Return the owning pid, honoring any pid pinned by :meth:`scope`."""
        pinned = self._pinned.get()
        if pinned is not None:
            return pinned

        current = os.getpid()
        if self._cached is not None and self._cached_in == current:
            return self._cached

        if self._mode is OwnerMode.CALLER:
            pid = resolve_caller_pid()
        else:
            pid = current
        logger.debug("Resolved owning pid %d (mode=%s, process=%d)", pid, self._mode.value, current)

        self._cached, self._cached_in = pid, current
        return pid

    @contextmanager
    def scope(self, pid: int | None = None) -> Iterator[int]:
        """Pin the owning pid for the enclosed call tree.

        Args:
            pid: Explicit owner to pin. None resolves once, or reuses a pid
                already pinned by an enclosing scope.

        Yields:
            The pinned pid.
        """
        pinned = self._pinned.get()
        if pid is None and pinned is not None:
            yield pinned
            return

        token = self._pinned.set(pid if pid is not None else self.resolve())
        try:
            yield self._pinned.get()  # type: ignore[misc]
        finally:
            self._pinned.reset(token)
