"""Bounds-checked big-endian reader and writer for MBDB fields.

Variable-length fields are ``[u16 length][length bytes]``. A length of
0xFFFF is reserved to mean "absent" and decodes to an empty value, so
no field can carry 65535 bytes or more.
"""

import struct

from ..errors import DecodeError, EncodeError

ABSENT_LENGTH = 0xFFFF
MAX_FIELD_LENGTH = ABSENT_LENGTH - 1

_U8 = struct.Struct(">B")
_U16 = struct.Struct(">H")
_U32 = struct.Struct(">I")
_U64 = struct.Struct(">Q")


class ByteReader:
    """Sequential reader over an immutable byte buffer."""

    def __init__(self, data: bytes, offset: int = 0):
        self._data = bytes(data)
        self.offset = offset

    @property
    def remaining(self) -> int:
        return len(self._data) - self.offset

    def at_end(self) -> bool:
        return self.offset >= len(self._data)

    def read_bytes(self, count: int) -> bytes:
        if count < 0 or count > self.remaining:
            raise DecodeError(
                f"need {count} bytes, only {self.remaining} left", self.offset
            )
        value = self._data[self.offset:self.offset + count]
        self.offset += count
        return value

    def _unpack(self, fmt: struct.Struct) -> int:
        return fmt.unpack(self.read_bytes(fmt.size))[0]

    def read_u8(self) -> int:
        return self._unpack(_U8)

    def read_u16(self) -> int:
        return self._unpack(_U16)

    def read_u32(self) -> int:
        return self._unpack(_U32)

    def read_u64(self) -> int:
        return self._unpack(_U64)

    def read_length_prefixed_bytes(self) -> bytes:
        length = self.read_u16()
        if length == ABSENT_LENGTH:
            return b""
        return self.read_bytes(length)

    def read_length_prefixed_string(self) -> str:
        start = self.offset
        raw = self.read_length_prefixed_bytes()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"string field is not valid UTF-8: {e}", start) from e


class ByteWriter:
    """Append-only writer mirroring ByteReader."""

    def __init__(self):
        self._buffer = bytearray()

    def __len__(self) -> int:
        return len(self._buffer)

    def getvalue(self) -> bytes:
        return bytes(self._buffer)

    def write_bytes(self, data: bytes) -> None:
        self._buffer += data

    def _pack(self, fmt: struct.Struct, value: int, name: str) -> None:
        try:
            self._buffer += fmt.pack(value)
        except struct.error as e:
            raise EncodeError(f"{value!r} does not fit in {name}") from e

    def write_u8(self, value: int) -> None:
        self._pack(_U8, value, "u8")

    def write_u16(self, value: int) -> None:
        self._pack(_U16, value, "u16")

    def write_u32(self, value: int) -> None:
        self._pack(_U32, value, "u32")

    def write_u64(self, value: int) -> None:
        self._pack(_U64, value, "u64")

    def write_length_prefixed_bytes(self, data: bytes) -> None:
        # 0xFFFF would read back as "absent", so it is not a usable length
        if len(data) > MAX_FIELD_LENGTH:
            raise EncodeError(
                f"field of {len(data)} bytes exceeds the {MAX_FIELD_LENGTH} byte limit"
            )
        self.write_u16(len(data))
        self.write_bytes(data)

    def write_length_prefixed_string(self, value: str) -> None:
        self.write_length_prefixed_bytes(value.encode("utf-8"))
