"""Tests for store configuration."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import pytest

from atomic_arrays.config import (
    ENV_COLUMN_COUNT,
    ENV_INSTANCE_FILE,
    ENV_LOCK_STRATEGY,
    ENV_UNIQUE_PER_PROCESS,
    LockStrategyType,
    StoreConfig,
    UniquenessScope,
    default_store_path,
)


class TestStoreConfig:
    """Tests for StoreConfig."""

    def test_defaults(self) -> None:
        """Test default values."""
        config = StoreConfig()

        assert config.uniqueness is UniquenessScope.PER_PROCESS
        assert config.unique_per_process
        assert config.lock_strategy is LockStrategyType.AUTO
        assert config.column_count is None
        assert config.warn_on_pattern_chars
        assert config.sync_writes
        assert config.path.parent == Path(tempfile.gettempdir())
        assert f".{os.getpid()}." in config.path.name

    def test_coerces_values(self, tmp_path: Path) -> None:
        """Test that plain values are converted."""
        config = StoreConfig(path=str(tmp_path / "r.txt"), uniqueness="global", lock_strategy="filelock")  # type: ignore[arg-type]

        assert config.path == tmp_path / "r.txt"
        assert config.uniqueness is UniquenessScope.GLOBAL
        assert not config.unique_per_process
        assert config.lock_strategy is LockStrategyType.FILELOCK

    def test_invalid_values(self, tmp_path: Path) -> None:
        """Test validation on construction."""
        with pytest.raises(ValueError):
            StoreConfig(path=tmp_path / "r.txt", column_count=0)
        with pytest.raises(ValueError):
            StoreConfig(path=tmp_path / "r.txt", uniqueness="sometimes")  # type: ignore[arg-type]

    def test_derived_paths(self, tmp_path: Path) -> None:
        """Test sidecar and lock file locations."""
        config = StoreConfig(path=tmp_path / "records.txt")

        assert config.token_path == tmp_path / "records.txt.token"
        assert config.lock_path == tmp_path / ".records.txt.lock"

    def test_with_uniqueness(self, tmp_path: Path) -> None:
        """Test that scope changes produce a copy."""
        config = StoreConfig(path=tmp_path / "r.txt")
        changed = config.with_uniqueness("global")

        assert changed.uniqueness is UniquenessScope.GLOBAL
        assert config.uniqueness is UniquenessScope.PER_PROCESS
        assert changed.path == config.path


class TestEnvironment:
    """Tests for environment round trips."""

    def test_from_env(self, tmp_path: Path) -> None:
        """Test loading every variable."""
        config = StoreConfig.from_env(
            {
                ENV_INSTANCE_FILE: str(tmp_path / "shared.txt"),
                ENV_UNIQUE_PER_PROCESS: "0",
                ENV_LOCK_STRATEGY: "FILELOCK",
                ENV_COLUMN_COUNT: "3",
            }
        )

        assert config.path == tmp_path / "shared.txt"
        assert config.uniqueness is UniquenessScope.GLOBAL
        assert config.lock_strategy is LockStrategyType.FILELOCK
        assert config.column_count == 3

    def test_from_empty_env(self) -> None:
        """Test that unset variables keep defaults."""
        config = StoreConfig.from_env({ENV_UNIQUE_PER_PROCESS: ""})

        assert config.uniqueness is UniquenessScope.PER_PROCESS
        assert config.column_count is None

    def test_from_process_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test reading os.environ by default."""
        monkeypatch.setenv(ENV_INSTANCE_FILE, str(tmp_path / "env.txt"))
        monkeypatch.setenv(ENV_UNIQUE_PER_PROCESS, "1")

        config = StoreConfig.from_env()

        assert config.path == tmp_path / "env.txt"
        assert config.uniqueness is UniquenessScope.PER_PROCESS

    def test_to_env(self, tmp_path: Path) -> None:
        """Test exporting for child processes."""
        config = StoreConfig(path=tmp_path / "r.txt", uniqueness=UniquenessScope.GLOBAL, column_count=2)

        env = config.to_env()

        assert env == {
            ENV_INSTANCE_FILE: str(tmp_path / "r.txt"),
            ENV_UNIQUE_PER_PROCESS: "0",
            ENV_LOCK_STRATEGY: "auto",
            ENV_COLUMN_COUNT: "2",
        }
        assert StoreConfig.from_env(env) == config


class TestDefaultStorePath:
    """Tests for default_store_path."""

    def test_explicit_pid(self) -> None:
        """Test that the owner pid is part of the name."""
        path = default_store_path(4242)

        assert path.name.endswith(".4242.txt")
        assert path.parent == Path(tempfile.gettempdir())
