"""Utility module initialization."""

from .hashing import (
    blob_name,
    calculate_file_hash,
    calculate_stream_hash,
    verify_file_integrity,
)
from .logging import get_logger, setup_logging
from .paths import ensure_directory, format_size, temporary_directory
from .sha1 import Sha1, sha1_digest, sha1_hexdigest
from .timeutil import format_duration, timestamp_to_iso, unix_now

__all__ = [
    # hashing
    "blob_name",
    "calculate_file_hash",
    "calculate_stream_hash",
    "verify_file_integrity",
    # logging
    "get_logger",
    "setup_logging",
    # paths
    "ensure_directory",
    "format_size",
    "temporary_directory",
    # sha1
    "Sha1",
    "sha1_digest",
    "sha1_hexdigest",
    # timeutil
    "format_duration",
    "timestamp_to_iso",
    "unix_now",
]
