"""Hashing helpers built on the bundled SHA-1 engine."""

from pathlib import Path
from typing import BinaryIO, Optional

from .logging import get_logger
from .sha1 import Sha1, sha1_hexdigest

logger = get_logger(__name__)


def calculate_file_hash(file_path: Path, chunk_size: int = 65536) -> Optional[str]:
    """Calculate the SHA-1 hex digest of a file, or None if it cannot be read."""
    try:
        with open(file_path, "rb") as f:
            return calculate_stream_hash(f, chunk_size)
    except OSError as e:
        logger.error(f"Failed to calculate hash for {file_path}: {e}")
        return None


def calculate_stream_hash(stream: BinaryIO, chunk_size: int = 65536) -> str:
    """Calculate the SHA-1 hex digest of a binary stream."""
    hasher = Sha1()

    while chunk := stream.read(chunk_size):
        hasher.update(chunk)

    return hasher.hexdigest()


def verify_file_integrity(file_path: Path, expected_hash: str) -> bool:
    """Verify a file against an expected SHA-1 hex digest."""
    actual_hash = calculate_file_hash(file_path)

    if actual_hash is None:
        return False

    return actual_hash.lower() == expected_hash.lower()


def blob_name(domain: str, path: str) -> str:
    """Content-addressed blob filename for an archive entry.

    Keyed on the entry's identity (domain and path), not on its content.
    """
    return sha1_hexdigest(f"{domain}-{path}")
