"""Tests for atomic file replacement."""

from __future__ import annotations

import os
import stat
import sys
from pathlib import Path

import pytest

from atomic_arrays.atomic import AtomicFileWriter, atomic_write


def _temp_files(directory: Path) -> list[Path]:
    return [p for p in directory.iterdir() if p.name.endswith(".tmp")]


class TestAtomicFileWriter:
    """Tests for AtomicFileWriter."""

    def test_write_and_commit(self, tmp_path: Path) -> None:
        """Test basic write and commit."""
        target = tmp_path / "records.txt"

        with AtomicFileWriter(target) as writer:
            writer.writelines(["1\ta\t9\n", "2\tb\t9\n"])
            result = writer.commit()

        assert result.success
        assert result.bytes_written == 12
        assert target.read_text() == "1\ta\t9\n2\tb\t9\n"
        assert _temp_files(tmp_path) == []

    def test_replaces_existing_content(self, tmp_path: Path) -> None:
        """Test that committed content replaces the old file."""
        target = tmp_path / "records.txt"
        target.write_text("old\n")

        with AtomicFileWriter(target) as writer:
            writer.write("new\n")
            writer.commit()

        assert target.read_text() == "new\n"

    def test_no_commit_leaves_target(self, tmp_path: Path) -> None:
        """Test that leaving the context without commit discards the write."""
        target = tmp_path / "records.txt"
        target.write_text("original\n")

        with AtomicFileWriter(target) as writer:
            writer.write("partial")
            assert writer.temp_path is not None
            assert writer.temp_path.exists()

        assert target.read_text() == "original\n"
        assert _temp_files(tmp_path) == []

    def test_exception_cleans_up(self, tmp_path: Path) -> None:
        """Test cleanup when the block raises."""
        target = tmp_path / "records.txt"

        with pytest.raises(ValueError):
            with AtomicFileWriter(target) as writer:
                writer.write("partial")
                raise ValueError("boom")

        assert not target.exists()
        assert _temp_files(tmp_path) == []

    def test_write_after_commit(self, tmp_path: Path) -> None:
        """Test that the writer is closed after commit."""
        with AtomicFileWriter(tmp_path / "records.txt") as writer:
            writer.commit()
            with pytest.raises(RuntimeError):
                writer.write("late")
            with pytest.raises(RuntimeError):
                writer.commit()

    def test_requires_context(self, tmp_path: Path) -> None:
        """Test usage outside the context manager."""
        writer = AtomicFileWriter(tmp_path / "records.txt")

        with pytest.raises(RuntimeError):
            writer.write("data")

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_preserves_mode(self, tmp_path: Path) -> None:
        """Test that the replaced file keeps its permissions."""
        target = tmp_path / "records.txt"
        target.write_text("old\n")
        os.chmod(target, 0o640)

        with AtomicFileWriter(target) as writer:
            writer.write("new\n")
            writer.commit()

        assert stat.S_IMODE(target.stat().st_mode) == 0o640

    def test_failed_replace(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that a failed rename is reported and the target kept."""
        target = tmp_path / "records.txt"
        target.write_text("original\n")

        def fail(self: Path, other: Path) -> Path:
            raise OSError("disk gone")

        monkeypatch.setattr(Path, "replace", fail)

        with AtomicFileWriter(target) as writer:
            writer.write("new\n")
            result = writer.commit()

        assert not result.success
        assert "disk gone" in (result.error or "")
        assert isinstance(result.exception, OSError)
        assert target.read_text() == "original\n"
        assert _temp_files(tmp_path) == []


class TestAtomicWrite:
    """Tests for the atomic_write helper."""

    def test_atomic_write(self, tmp_path: Path) -> None:
        """Test writing a whole file in one call."""
        target = tmp_path / "sub" / "counter.token"

        result = atomic_write(target, "42\n", sync=False)

        assert result.success
        assert result.path == target
        assert target.read_text() == "42\n"
