"""Filesystem helpers for archive directories."""

import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from ..errors import ArchiveError
from .logging import get_logger

logger = get_logger(__name__)


def ensure_directory(path: Path) -> Path:
    """Ensure directory exists, creating it if necessary."""
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ArchiveError(f"Could not create directory {path}: {e}") from e
    return path


@contextmanager
def temporary_directory(prefix: str = "restore-", root: Optional[Path] = None) -> Iterator[Path]:
    """Create a unique scratch directory and remove it on every exit path."""
    try:
        path = Path(tempfile.mkdtemp(prefix=prefix, dir=root))
    except OSError as e:
        raise ArchiveError(f"Could not create temporary directory: {e}") from e

    logger.debug(f"Created temporary directory {path}")
    try:
        yield path
    except BaseException:
        # The body's error is the one reported; a cleanup failure is only logged
        _remove_directory(path, strict=False)
        raise
    _remove_directory(path, strict=True)


def _remove_directory(path: Path, strict: bool) -> None:
    try:
        shutil.rmtree(path)
        logger.debug(f"Removed temporary directory {path}")
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.error(f"Failed to remove temporary directory {path}: {e}")
        if strict:
            raise ArchiveError(f"Could not remove temporary directory {path}: {e}") from e


def format_size(size_bytes: int) -> str:
    """Format file size in human readable format."""
    if size_bytes == 0:
        return "0 B"

    size_names = ["B", "KB", "MB", "GB", "TB"]
    size = float(size_bytes)
    i = 0
    while size >= 1024.0 and i < len(size_names) - 1:
        size /= 1024.0
        i += 1

    return f"{size:.1f} {size_names[i]}"
