"""Unix file mode bits as stored in MBDB records."""

from enum import IntFlag


class FileMode(IntFlag):
    """16-bit file mode: one file-type value plus permission bits."""

    # File types (mutually exclusive values under S_IFMT)
    S_IFMT = 0o170000
    S_IFIFO = 0o010000
    S_IFCHR = 0o020000
    S_IFDIR = 0o040000
    S_IFBLK = 0o060000
    S_IFREG = 0o100000
    S_IFLNK = 0o120000
    S_IFSOCK = 0o140000

    # Special modes
    S_ISUID = 0o004000
    S_ISGID = 0o002000
    S_ISVTX = 0o001000

    # User permissions
    S_IRUSR = 0o000400
    S_IWUSR = 0o000200
    S_IXUSR = 0o000100

    # Group permissions
    S_IRGRP = 0o000040
    S_IWGRP = 0o000020
    S_IXGRP = 0o000010

    # Other permissions
    S_IROTH = 0o000004
    S_IWOTH = 0o000002
    S_IXOTH = 0o000001


PERMISSION_MASK = 0o7777

FILE_TYPES = frozenset({
    FileMode.S_IFIFO,
    FileMode.S_IFCHR,
    FileMode.S_IFDIR,
    FileMode.S_IFBLK,
    FileMode.S_IFREG,
    FileMode.S_IFLNK,
    FileMode.S_IFSOCK,
})

# rwxr-xr-x
DEFAULT_FILE_MODE = (
    FileMode.S_IRUSR | FileMode.S_IWUSR | FileMode.S_IXUSR
    | FileMode.S_IRGRP | FileMode.S_IXGRP
    | FileMode.S_IROTH | FileMode.S_IXOTH
)


def file_type(mode: int) -> FileMode:
    """Type bits of mode (0 when no type is set)."""
    return FileMode(mode & FileMode.S_IFMT)


def permission_bits(mode: int) -> FileMode:
    """Permission and special bits of mode, type bits cleared."""
    return FileMode(mode & PERMISSION_MASK)


def with_file_type(mode: int, kind: int) -> FileMode:
    """Replace the type bits of mode with kind, which must be a single file type."""
    if kind not in FILE_TYPES:
        raise ValueError(f"not a file type: {oct(kind)}")
    return FileMode(permission_bits(mode) | kind)


def is_type(mode: int, kind: int) -> bool:
    return int(file_type(mode)) == int(kind)


def mode_string(mode: int) -> str:
    """ls-style rendering, e.g. ``-rw-r--r--``."""
    kind = file_type(mode)
    prefix = {
        FileMode.S_IFDIR: "d",
        FileMode.S_IFLNK: "l",
        FileMode.S_IFREG: "-",
        FileMode.S_IFIFO: "p",
        FileMode.S_IFCHR: "c",
        FileMode.S_IFBLK: "b",
        FileMode.S_IFSOCK: "s",
    }.get(kind, "?")

    chars = []
    for shift in (6, 3, 0):
        bits = (mode >> shift) & 0o7
        chars.append("r" if bits & 0o4 else "-")
        chars.append("w" if bits & 0o2 else "-")
        chars.append("x" if bits & 0o1 else "-")
    return prefix + "".join(chars)
