"""MBDB wire format."""

from .codec import MBDB_HEADER, MBDB_MAGIC, MBDB_VERSION, Mbdb, MbdbRecord, iter_records
from .cursor import ABSENT_LENGTH, ByteReader, ByteWriter
from .filemode import (
    DEFAULT_FILE_MODE,
    FileMode,
    file_type,
    is_type,
    mode_string,
    permission_bits,
    with_file_type,
)

__all__ = [
    # codec
    "MBDB_HEADER",
    "MBDB_MAGIC",
    "MBDB_VERSION",
    "Mbdb",
    "MbdbRecord",
    "iter_records",
    # cursor
    "ABSENT_LENGTH",
    "ByteReader",
    "ByteWriter",
    # filemode
    "DEFAULT_FILE_MODE",
    "FileMode",
    "file_type",
    "is_type",
    "mode_string",
    "permission_bits",
    "with_file_type",
]
