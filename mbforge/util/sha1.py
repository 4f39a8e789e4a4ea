"""Pure-Python SHA-1 (FIPS 180-1).

Used for the content hash stored in each MBDB record and for the
content-addressed blob names. It does not use hashlib.
"""

import struct
from typing import Union

_IV = (0x67452301, 0xEFCDAB89, 0x98BADCFE, 0x10325476, 0xC3D2E1F0)
_MASK = 0xFFFFFFFF
_BLOCK = 64

_WORDS = struct.Struct(">16I")
_DIGEST = struct.Struct(">5I")
_BIT_LENGTH = struct.Struct(">Q")


def _rotl(value: int, bits: int) -> int:
    return ((value << bits) | (value >> (32 - bits))) & _MASK


def _as_bytes(data: Union[bytes, bytearray, memoryview, str]) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


class Sha1:
    """Incremental SHA-1 with a hashlib-like interface."""

    digest_size = 20
    block_size = _BLOCK
    name = "sha1"

    def __init__(self, data: Union[bytes, str] = b""):
        self._h = list(_IV)
        self._buffer = b""
        self._length = 0
        if data:
            self.update(data)

    def update(self, data: Union[bytes, bytearray, memoryview, str]) -> None:
        data = _as_bytes(data)
        self._length += len(data)
        buffer = self._buffer + data

        offset = 0
        while len(buffer) - offset >= _BLOCK:
            self._compress(buffer[offset:offset + _BLOCK])
            offset += _BLOCK

        self._buffer = buffer[offset:]

    def _compress(self, block: bytes) -> None:
        w = list(_WORDS.unpack(block))
        for i in range(16, 80):
            w.append(_rotl(w[i - 3] ^ w[i - 8] ^ w[i - 14] ^ w[i - 16], 1))

        a, b, c, d, e = self._h
        for i in range(80):
            if i < 20:
                f = (b & c) | (~b & d)
                k = 0x5A827999
            elif i < 40:
                f = b ^ c ^ d
                k = 0x6ED9EBA1
            elif i < 60:
                f = (b & c) | (b & d) | (c & d)
                k = 0x8F1BBCDC
            else:
                f = b ^ c ^ d
                k = 0xCA62C1D6

            temp = (_rotl(a, 5) + (f & _MASK) + e + k + w[i]) & _MASK
            e = d
            d = c
            c = _rotl(b, 30)
            b = a
            a = temp

        self._h = [
            (self._h[0] + a) & _MASK,
            (self._h[1] + b) & _MASK,
            (self._h[2] + c) & _MASK,
            (self._h[3] + d) & _MASK,
            (self._h[4] + e) & _MASK,
        ]

    def copy(self) -> "Sha1":
        clone = Sha1()
        clone._h = list(self._h)
        clone._buffer = self._buffer
        clone._length = self._length
        return clone

    def digest(self) -> bytes:
        # Finalize a copy so update() may continue afterwards
        final = self.copy()
        bit_length = (self._length * 8) & 0xFFFFFFFFFFFFFFFF

        padding = b"\x80" + b"\x00" * ((55 - self._length) % _BLOCK)
        final._buffer += padding + _BIT_LENGTH.pack(bit_length)

        buffer = final._buffer
        for offset in range(0, len(buffer), _BLOCK):
            final._compress(buffer[offset:offset + _BLOCK])

        return _DIGEST.pack(*final._h)

    def hexdigest(self) -> str:
        return self.digest().hex()


def sha1_digest(data: Union[bytes, str]) -> bytes:
    """Return the 20-byte SHA-1 digest of data (str is hashed as UTF-8)."""
    return Sha1(data).digest()


def sha1_hexdigest(data: Union[bytes, str]) -> str:
    """Return the SHA-1 digest of data as 40 lowercase hex characters."""
    return Sha1(data).hexdigest()
