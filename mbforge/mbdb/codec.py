"""MBDB manifest codec.

Wire layout (big-endian)::

    header  = "mbdb" 0x05 0x00
    record  = [str domain][str path][str link][bytes hash][bytes key]
              [u16 mode][u64 inode][u32 uid][u32 gid]
              [u32 mtime][u32 atime][u32 ctime][u64 size]
              [u8 flags][u8 count] count x ([str name][str value])

Records appear in the order they were supplied; the codec never sorts or
deduplicates.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Tuple

from ..errors import ArchiveError, DecodeError, EncodeError
from ..util.logging import get_logger
from ..util.sha1 import sha1_hexdigest
from .cursor import ByteReader, ByteWriter
from .filemode import FileMode, file_type

logger = get_logger(__name__)

MBDB_MAGIC = b"mbdb"
MBDB_VERSION = b"\x05\x00"
MBDB_HEADER = MBDB_MAGIC + MBDB_VERSION

MAX_PROPERTIES = 0xFF


@dataclass(frozen=True)
class MbdbRecord:
    """One archived filesystem entry."""

    domain: str
    path: str
    link: str = ""
    hash: bytes = b""
    key: bytes = b""
    mode: int = 0
    inode: int = 0
    user_id: int = 0
    group_id: int = 0
    mtime: int = 0
    atime: int = 0
    ctime: int = 0
    size: int = 0
    flags: int = 0
    properties: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    @property
    def file_id(self) -> str:
        """Blob filename of this entry inside the archive directory."""
        return sha1_hexdigest(f"{self.domain}-{self.path}")

    @property
    def file_type(self) -> FileMode:
        return file_type(self.mode)

    def write(self, writer: ByteWriter) -> None:
        if len(self.properties) > MAX_PROPERTIES:
            raise EncodeError(
                f"{self.domain}-{self.path}: {len(self.properties)} properties, "
                f"at most {MAX_PROPERTIES} allowed"
            )

        writer.write_length_prefixed_string(self.domain)
        writer.write_length_prefixed_string(self.path)
        writer.write_length_prefixed_string(self.link)
        writer.write_length_prefixed_bytes(self.hash)
        writer.write_length_prefixed_bytes(self.key)
        writer.write_u16(int(self.mode))
        writer.write_u64(self.inode)
        writer.write_u32(self.user_id)
        writer.write_u32(self.group_id)
        writer.write_u32(self.mtime)
        writer.write_u32(self.atime)
        writer.write_u32(self.ctime)
        writer.write_u64(self.size)
        writer.write_u8(self.flags)
        writer.write_u8(len(self.properties))

        for name, value in self.properties:
            writer.write_length_prefixed_string(name)
            writer.write_length_prefixed_string(value)

    def to_bytes(self) -> bytes:
        writer = ByteWriter()
        self.write(writer)
        return writer.getvalue()

    @classmethod
    def read(cls, reader: ByteReader) -> "MbdbRecord":
        """Decode one record; any short or malformed field raises DecodeError."""
        domain = reader.read_length_prefixed_string()
        path = reader.read_length_prefixed_string()
        link = reader.read_length_prefixed_string()
        digest = reader.read_length_prefixed_bytes()
        key = reader.read_length_prefixed_bytes()

        mode = FileMode(reader.read_u16())
        inode = reader.read_u64()
        user_id = reader.read_u32()
        group_id = reader.read_u32()
        mtime = reader.read_u32()
        atime = reader.read_u32()
        ctime = reader.read_u32()
        size = reader.read_u64()
        flags = reader.read_u8()
        count = reader.read_u8()

        properties = tuple(
            (reader.read_length_prefixed_string(), reader.read_length_prefixed_string())
            for _ in range(count)
        )

        return cls(
            domain=domain,
            path=path,
            link=link,
            hash=digest,
            key=key,
            mode=mode,
            inode=inode,
            user_id=user_id,
            group_id=group_id,
            mtime=mtime,
            atime=atime,
            ctime=ctime,
            size=size,
            flags=flags,
            properties=properties,
        )


def _check_header(reader: ByteReader) -> None:
    if reader.remaining < len(MBDB_HEADER):
        raise DecodeError("stream too short for an MBDB header", 0)

    magic = reader.read_bytes(len(MBDB_MAGIC))
    if magic != MBDB_MAGIC:
        raise DecodeError(f"bad magic {magic!r}, not an MBDB stream", 0)

    version = reader.read_bytes(len(MBDB_VERSION))
    if version != MBDB_VERSION:
        raise DecodeError(f"unsupported MBDB version {version.hex()}", len(MBDB_MAGIC))


def iter_records(data: bytes) -> Iterator[MbdbRecord]:
    """Yield records from an MBDB stream, raising DecodeError on the first problem."""
    reader = ByteReader(data)
    _check_header(reader)

    while not reader.at_end():
        start = reader.offset
        try:
            yield MbdbRecord.read(reader)
        except DecodeError as e:
            raise DecodeError(f"malformed record starting at offset {start}: {e}") from e


@dataclass
class Mbdb:
    """An ordered MBDB manifest."""

    records: List[MbdbRecord] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[MbdbRecord]:
        return iter(self.records)

    def to_bytes(self) -> bytes:
        writer = ByteWriter()
        writer.write_bytes(MBDB_HEADER)
        for record in self.records:
            record.write(writer)
        return writer.getvalue()

    @classmethod
    def from_bytes(cls, data: bytes, lenient: bool = False) -> "Mbdb":
        """Decode a manifest.

        Strict mode raises DecodeError for a bad header or malformed record.
        Lenient mode returns an empty manifest for a bad header and stops at
        the first malformed record, keeping the records before it.
        """
        records: List[MbdbRecord] = []
        try:
            for record in iter_records(data):
                records.append(record)
        except DecodeError as e:
            if not lenient:
                raise
            logger.warning(f"Lenient MBDB decode stopped after {len(records)} records: {e}")

        return cls(records)

    @classmethod
    def from_file(cls, path: Path, lenient: bool = False) -> "Mbdb":
        try:
            data = Path(path).read_bytes()
        except OSError as e:
            raise ArchiveError(f"Could not read {path}: {e}") from e
        return cls.from_bytes(data, lenient=lenient)

    def write(self, path: Path) -> None:
        data = self.to_bytes()
        try:
            Path(path).write_bytes(data)
        except OSError as e:
            raise ArchiveError(f"Could not write {path}: {e}") from e
        logger.debug(f"Wrote {len(self.records)} MBDB records ({len(data)} bytes) to {path}")
