"""Tests for the MBDB manifest codec."""

import tempfile
from pathlib import Path

import pytest

from mbforge.errors import DecodeError, EncodeError
from mbforge.mbdb import MBDB_HEADER, FileMode, Mbdb, MbdbRecord, iter_records
from mbforge.util.sha1 import sha1_digest, sha1_hexdigest


def make_record(**overrides) -> MbdbRecord:
    fields = dict(
        domain="HomeDomain",
        path="Library/Preferences/com.example.plist",
        link="",
        hash=sha1_digest(b"<plist/>"),
        key=b"",
        mode=FileMode.S_IFREG | 0o644,
        inode=0x0102030405060708,
        user_id=501,
        group_id=501,
        mtime=1700000000,
        atime=1700000001,
        ctime=1700000002,
        size=8,
        flags=4,
        properties=(),
    )
    fields.update(overrides)
    return MbdbRecord(**fields)


class TestRecordEncoding:
    """Test byte-exact record layout."""

    def test_wire_layout(self):
        """Every field lands at its documented position."""
        record = MbdbRecord(
            domain="D",
            path="p",
            mode=0o100644,
            inode=1,
            user_id=501,
            group_id=20,
            mtime=10,
            atime=11,
            ctime=12,
            size=5,
            flags=4,
            properties=(("k", "v"),),
        )

        expected = bytes.fromhex(
            "000144"            # domain
            "000170"            # path
            "0000"              # link
            "0000"              # hash
            "0000"              # key
            "81a4"              # mode
            "0000000000000001"  # inode
            "000001f5"          # uid
            "00000014"          # gid
            "0000000a"          # mtime
            "0000000b"          # atime
            "0000000c"          # ctime
            "0000000000000005"  # size
            "04"                # flags
            "01"                # property count
            "00016b" "000176"   # k = v
        )

        assert record.to_bytes() == expected

    def test_manifest_header(self):
        """A manifest starts with the magic and version."""
        assert Mbdb().to_bytes() == b"mbdb\x05\x00"
        assert MBDB_HEADER == b"mbdb\x05\x00"

    def test_too_many_properties(self):
        """The property count is a single byte."""
        props = tuple((f"n{i}", "v") for i in range(256))

        with pytest.raises(EncodeError):
            make_record(properties=props).to_bytes()

    def test_oversized_path(self):
        """Strings longer than the length field allows are rejected."""
        with pytest.raises(EncodeError):
            make_record(path="x" * 70000).to_bytes()

    def test_file_id(self):
        """Blob name is the SHA-1 of domain-path."""
        record = make_record()
        assert record.file_id == sha1_hexdigest(f"{record.domain}-{record.path}")


class TestRoundTrip:
    """decode(encode(records)) reproduces the records."""

    def test_round_trip(self):
        """Files, directories and links survive encoding field for field."""
        records = [
            make_record(),
            make_record(path="Library/Preferences", hash=b"", size=0, mode=FileMode.S_IFDIR | 0o755, inode=0),
            make_record(path="Library/link", link="../target", hash=b"", size=0, mode=FileMode.S_IFLNK | 0o755),
            make_record(domain="", path="", properties=(("com.apple.xattr", "1"), ("b", ""))),
            make_record(properties=tuple((f"n{i}", str(i)) for i in range(255))),
        ]

        decoded = Mbdb.from_bytes(Mbdb(records).to_bytes())

        assert decoded.records == records

    def test_record_order_preserved(self):
        """Records are neither sorted nor deduplicated."""
        records = [make_record(path="b"), make_record(path="a"), make_record(path="b")]

        decoded = Mbdb.from_bytes(Mbdb(records).to_bytes())

        assert [r.path for r in decoded] == ["b", "a", "b"]

    def test_absent_fields_decode_empty(self):
        """Fields written with the 0xFFFF sentinel decode as empty."""
        record = make_record(hash=b"", link="")
        data = bytearray(Mbdb([record]).to_bytes())
        # link and hash are the 3rd and 4th fields, both written as 0x0000
        link_at = len(MBDB_HEADER) + 2 + len(record.domain) + 2 + len(record.path)
        data[link_at:link_at + 2] = b"\xff\xff"
        data[link_at + 2:link_at + 4] = b"\xff\xff"

        decoded = Mbdb.from_bytes(bytes(data))

        assert decoded.records == [record]

    def test_file_round_trip(self):
        """write() and from_file() use the same bytes."""
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "Manifest.mbdb"
            Mbdb([make_record()]).write(path)

            assert Mbdb.from_file(path).records == [make_record()]


class TestDecodePolicy:
    """Strict decoding raises; lenient decoding degrades."""

    def test_bad_magic_strict(self):
        """Wrong magic is an error by default."""
        with pytest.raises(DecodeError):
            Mbdb.from_bytes(b"mbdx\x05\x00")

    def test_bad_magic_lenient(self):
        """Wrong magic yields an empty manifest when lenient."""
        data = b"MBDB\x05\x00" + make_record().to_bytes()
        assert Mbdb.from_bytes(data, lenient=True).records == []

    def test_bad_version_lenient(self):
        """Correct magic with another version also yields nothing."""
        data = b"mbdb\x04\x00" + make_record().to_bytes()
        assert Mbdb.from_bytes(data, lenient=True).records == []

        with pytest.raises(DecodeError):
            Mbdb.from_bytes(data)

    def test_short_header(self):
        """A stream shorter than the header is rejected."""
        with pytest.raises(DecodeError):
            Mbdb.from_bytes(b"mbd")
        assert len(Mbdb.from_bytes(b"mbd", lenient=True)) == 0

    def test_header_only(self):
        """A bare header is a valid empty manifest."""
        assert Mbdb.from_bytes(MBDB_HEADER).records == []

    def test_truncated_record_strict(self):
        """A record cut short aborts the decode."""
        data = Mbdb([make_record(), make_record(path="second")]).to_bytes()

        with pytest.raises(DecodeError):
            Mbdb.from_bytes(data[:-3])

    def test_truncated_record_lenient(self):
        """Lenient decoding keeps the records before the malformed one."""
        data = Mbdb([make_record(), make_record(path="second")]).to_bytes()

        decoded = Mbdb.from_bytes(data[:-3], lenient=True)

        assert decoded.records == [make_record()]

    def test_iter_records_is_lazy(self):
        """The generator yields good records before reaching a bad one."""
        data = Mbdb([make_record()]).to_bytes() + b"\x00"
        records = iter_records(data)

        assert next(records) == make_record()
        with pytest.raises(DecodeError):
            next(records)
