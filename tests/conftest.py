"""Shared fixtures for atomic-arrays tests."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, Iterator

import pytest

from atomic_arrays import AtomicArrays, StoreConfig


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    """Backing file inside a per-test directory."""
    return tmp_path / "records.txt"


@pytest.fixture
def config(store_path: Path) -> StoreConfig:
    """Per-process store configuration without fsync overhead."""
    return StoreConfig(path=store_path, sync_writes=False)


@pytest.fixture
def store(config: StoreConfig) -> AtomicArrays:
    """Store owned by the running process."""
    return AtomicArrays(config)


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """Drop handlers and levels the CLI installs on the package logger."""
    yield
    package_logger = logging.getLogger("atomic_arrays")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def lock_held() -> Callable[[Path], bool]:
    """Report whether some descriptor holds an exclusive flock on a path."""
    fcntl = pytest.importorskip("fcntl")

    def check(path: Path) -> bool:
        if not path.exists():
            return False
        fd = os.open(str(path), os.O_RDWR)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            return True
        finally:
            os.close(fd)
        return False

    return check
