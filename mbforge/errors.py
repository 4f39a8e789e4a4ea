"""Error hierarchy shared across MBForge."""


class ForgeError(Exception):
    """Base error for this package."""
    pass


class DecodeError(ForgeError):
    """Raised when MBDB bytes are truncated, malformed or carry a bad header."""

    def __init__(self, message: str, offset: int = -1):
        if offset >= 0:
            message = f"{message} (at offset {offset})"
        super().__init__(message)
        self.offset = offset


class EncodeError(ForgeError, ValueError):
    """Raised when a value cannot be represented in the MBDB wire format."""
    pass


class ArchiveError(ForgeError):
    """I/O failure while assembling, reading or removing an archive directory."""
    pass


class ManifestError(ForgeError):
    """Reference backup Manifest.plist is missing or unparsable."""
    pass


class ProcessError(ForgeError):
    """External tool exited unsuccessfully."""

    def __init__(self, message: str, stderr: str = "", stdout: str = "", returncode: int = -1):
        super().__init__(message)
        self.stderr = stderr
        self.stdout = stdout
        self.returncode = returncode
