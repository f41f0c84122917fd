"""atomic-arrays - file-backed record store for coordinating processes.

Independent processes (a parent and its forked or backgrounded children)
add, query, delete and enumerate tab-separated records in one shared file.
Every operation runs inside an exclusive cross-process critical section;
no daemon is involved.

Layers:

1. Lock Strategy Layer: flock or filelock based exclusive locks
2. Critical Section Layer: one operation body at a time per backing file
3. Store Layer: add/get/delete/list/destroy over the flat file

Example:
    >>> from atomic_arrays import AtomicArrays, StoreConfig
    >>>
    >>> store = AtomicArrays(StoreConfig(path="/tmp/jobs.txt"))
    >>> store.add("build", "linux", "running")
    >>> for record in store.get("build"):
    ...     print(record.fields, record.pid)
"""

from atomic_arrays.config import LockStrategyType, StoreConfig, UniquenessScope, default_store_path
from atomic_arrays.critical import CriticalSection, LockStatistics, Operation
from atomic_arrays.encoding import decode_field, encode_field
from atomic_arrays.errors import (
    AtomicArraysError,
    DeleteFailedError,
    DuplicateSuppressed,
    InvalidFieldError,
    UnknownOperationError,
)
from atomic_arrays.identity import OwnerMode, ProcessIdentityResolver
from atomic_arrays.locks import (
    FcntlLockStrategy,
    FileLockStrategy,
    LockHandle,
    LockStrategy,
    get_default_lock_strategy,
    get_lock_strategy,
)
from atomic_arrays.records import Record
from atomic_arrays.store import AddResult, AtomicArrays
from atomic_arrays.tokens import TokenGenerator
from atomic_arrays.validation import validate_fields

# Version: Single source of truth from pyproject.toml
try:
    from importlib.metadata import version, PackageNotFoundError

    __version__ = version("atomic-arrays")
except PackageNotFoundError:
    # Package not installed (development mode)
    __version__ = "0.0.0.dev"

__all__ = [
    # Store
    "AtomicArrays",
    "AddResult",
    "Record",
    # Configuration
    "StoreConfig",
    "UniquenessScope",
    "LockStrategyType",
    "default_store_path",
    # Critical section
    "CriticalSection",
    "Operation",
    "LockStatistics",
    "TokenGenerator",
    # Locks
    "LockStrategy",
    "LockHandle",
    "FcntlLockStrategy",
    "FileLockStrategy",
    "get_default_lock_strategy",
    "get_lock_strategy",
    # Process identity
    "OwnerMode",
    "ProcessIdentityResolver",
    # Fields
    "validate_fields",
    "encode_field",
    "decode_field",
    # Errors
    "AtomicArraysError",
    "InvalidFieldError",
    "UnknownOperationError",
    "DeleteFailedError",
    "DuplicateSuppressed",
]
