"""Tests for file mode composition."""

import pytest

from mbforge.mbdb.filemode import (
    DEFAULT_FILE_MODE,
    FileMode,
    file_type,
    is_type,
    mode_string,
    permission_bits,
    with_file_type,
)


class TestFileMode:
    """Test bitwise composition and extraction."""

    def test_regular_owner_read_write(self):
        """Type and permission bits combine with OR."""
        mode = FileMode.S_IFREG | FileMode.S_IRUSR | FileMode.S_IWUSR
        assert mode == 0o100600

    def test_default_mode(self):
        """Default entry permissions are rwxr-xr-x."""
        assert DEFAULT_FILE_MODE == 0o755

    def test_type_extraction(self):
        """Masking with S_IFMT isolates the type."""
        assert file_type(0o120777) == FileMode.S_IFLNK
        assert file_type(0o040755) == FileMode.S_IFDIR
        assert file_type(0o644) == 0

    def test_permission_bits(self):
        """Permission extraction keeps setuid/setgid/sticky."""
        assert permission_bits(0o104755) == 0o4755

    def test_with_file_type_replaces_type(self):
        """Existing type bits are replaced, not OR-ed into another type."""
        assert with_file_type(0o040644, FileMode.S_IFREG) == 0o100644
        assert is_type(with_file_type(0o644, FileMode.S_IFDIR), FileMode.S_IFDIR)

    def test_with_file_type_requires_single_type(self):
        """Combining two types is not a valid type."""
        with pytest.raises(ValueError):
            with_file_type(0o644, FileMode.S_IFMT)
        with pytest.raises(ValueError):
            with_file_type(0o644, 0o644)

    def test_mode_string(self):
        """ls-style rendering."""
        assert mode_string(0o100644) == "-rw-r--r--"
        assert mode_string(0o040755) == "drwxr-xr-x"
        assert mode_string(0o120777) == "lrwxrwxrwx"
