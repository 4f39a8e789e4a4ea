"""Tests for utility helpers."""

import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from mbforge.errors import ArchiveError
from mbforge.util import (
    blob_name,
    calculate_file_hash,
    format_duration,
    format_size,
    temporary_directory,
    timestamp_to_iso,
    unix_now,
    verify_file_integrity,
)


class TestHashing:
    """Test file hashing helpers."""

    def test_file_hash(self):
        """Files hash in chunks to the same digest."""
        with tempfile.TemporaryDirectory() as temp_dir:
            test_file = Path(temp_dir) / "test.txt"
            test_file.write_bytes(b"abc")

            assert calculate_file_hash(test_file, chunk_size=1) == "a9993e364706816aba3e25717850c26c9cd0d89d"
            assert verify_file_integrity(test_file, "A9993E364706816ABA3E25717850C26C9CD0D89D")
            assert not verify_file_integrity(test_file, "0" * 40)

    def test_missing_file(self):
        """Unreadable files hash to None and never verify."""
        missing = Path("/nonexistent/mbforge/file")

        assert calculate_file_hash(missing) is None
        assert not verify_file_integrity(missing, "0" * 40)

    def test_blob_name(self):
        """Blob names are the SHA-1 of domain and path joined with a dash."""
        assert blob_name("Library", "Library/Preferences/com.example.plist") == "d5835a080107b7d3e6165bee3950789a662ea6cb"
        assert blob_name("HomeDomain", "Library/Preferences/com.apple.springboard.plist") == (
            "662bc19b13aecef58a7e855d0316e4cf61e2642b"
        )


class TestTemporaryDirectory:
    """Test scratch directory lifecycle."""

    def test_removed_on_exit(self):
        """The directory and its contents are removed."""
        with tempfile.TemporaryDirectory() as root:
            with temporary_directory(prefix="restore-", root=Path(root)) as work_dir:
                assert work_dir.name.startswith("restore-")
                (work_dir / "blob").write_bytes(b"x")

            assert not work_dir.exists()

    def test_removed_on_error(self):
        """The directory is removed when the body raises."""
        with tempfile.TemporaryDirectory() as root:
            with pytest.raises(RuntimeError):
                with temporary_directory(root=Path(root)) as work_dir:
                    raise RuntimeError("boom")

            assert not work_dir.exists()

    def test_cleanup_failure_keeps_body_error(self):
        """A failed removal does not mask the error raised by the body."""
        with tempfile.TemporaryDirectory() as root:
            with patch("mbforge.util.paths.shutil.rmtree", side_effect=PermissionError("busy")) as mock_rmtree:
                with pytest.raises(RuntimeError, match="boom"):
                    with temporary_directory(root=Path(root)):
                        raise RuntimeError("boom")

            mock_rmtree.assert_called_once()

    def test_cleanup_failure_after_success(self):
        """A failed removal after a clean exit is an archive error."""
        with tempfile.TemporaryDirectory() as root:
            with patch("mbforge.util.paths.shutil.rmtree", side_effect=PermissionError("busy")):
                with pytest.raises(ArchiveError):
                    with temporary_directory(root=Path(root)):
                        pass

    def test_unusable_root(self):
        """A missing parent directory is an archive error."""
        with pytest.raises(ArchiveError):
            with temporary_directory(root=Path("/nonexistent/mbforge/root")):
                pass


class TestFormatting:
    """Test display helpers."""

    def test_format_size(self):
        assert format_size(0) == "0 B"
        assert format_size(1536) == "1.5 KB"

    def test_format_duration(self):
        assert format_duration(12) == "12.0s"
        assert format_duration(90) == "1.5m"

    def test_timestamps(self):
        """Unix time fits in 32 bits and renders as UTC."""
        assert 0 <= unix_now() <= 0xFFFFFFFF
        assert timestamp_to_iso(0) == "1970-01-01T00:00:00+00:00"
