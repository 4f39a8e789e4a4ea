"""Tests for archive assembly."""

import dataclasses
import plistlib
import tempfile
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import pytest

from mbforge.backup import (
    AppBundle,
    Backup,
    ConcreteFile,
    Directory,
    RestoreRequest,
    SymbolicLink,
    expand_request,
    load_archive,
    verify_archive,
)
from mbforge.backup.assembler import BACKUP_KEY_BAG, ZERO_UUID
from mbforge.errors import ArchiveError, DecodeError
from mbforge.mbdb.filemode import FileMode, is_type
from mbforge.util.hashing import blob_name
from mbforge.util.sha1 import sha1_digest


def example_entries():
    request = RestoreRequest(path="Library/Preferences/com.example.plist", contents="<plist/>")
    return expand_request(request)


class TestWriteToDirectory:
    """Test the on-disk archive layout."""

    def test_end_to_end_layout(self):
        """A single request yields directory, file and crash report."""
        entries = example_entries()

        assert len(entries) == 3
        assert all(entry.domain == "Library" for entry in entries)
        assert isinstance(entries[0], Directory)
        assert entries[0].path == "Library/Preferences"
        assert isinstance(entries[1], ConcreteFile)
        assert entries[1].path == "Library/Preferences/com.example.plist"
        assert isinstance(entries[2], ConcreteFile)
        assert entries[2].path.startswith("CrashReporter/crash-")

        with tempfile.TemporaryDirectory() as temp_dir:
            out = Path(temp_dir)
            Backup(entries).write_to_directory(out)

            names = {p.name for p in out.iterdir()}
            blobs = names - {"Manifest.mbdb", "Status.plist", "Manifest.plist", "Info.plist"}

            expected_blobs = {
                blob_name(entry.domain, entry.path) for entry in entries if isinstance(entry, ConcreteFile)
            }
            assert blobs == expected_blobs
            assert len(blobs) == 2
            assert all(len(name) == 40 for name in blobs)

            file_blob = out / blob_name("Library", "Library/Preferences/com.example.plist")
            assert file_blob.read_bytes() == b"<plist/>"

            mbdb = load_archive(out)
            assert [(r.domain, r.path) for r in mbdb] == [(e.domain, e.path) for e in entries]

    def test_known_blob_name(self):
        """The example file lands in its fixed blob."""
        with tempfile.TemporaryDirectory() as temp_dir:
            out = Path(temp_dir)
            Backup(example_entries()).write_to_directory(out)

            assert (out / "d5835a080107b7d3e6165bee3950789a662ea6cb").read_bytes() == b"<plist/>"

    def test_record_metadata(self):
        """Records carry the entry's hash, size and typed mode."""
        entries = example_entries()

        with tempfile.TemporaryDirectory() as temp_dir:
            Backup(entries).write_to_directory(Path(temp_dir))
            directory, plist_file, crash = load_archive(Path(temp_dir)).records

        assert is_type(directory.mode, FileMode.S_IFDIR)
        assert directory.size == 0
        assert directory.hash == b""

        assert plist_file.mode == FileMode.S_IFREG | 0o644
        assert plist_file.hash == sha1_digest(b"<plist/>")
        assert plist_file.size == 8
        assert plist_file.user_id == plist_file.group_id == 501

        assert crash.mode == 0o100644
        assert crash.size > 0

    def test_sidecars(self):
        """Status, Manifest and Info plists hold their fixed keys."""
        with tempfile.TemporaryDirectory() as temp_dir:
            out = Path(temp_dir)
            Backup(example_entries()).write_to_directory(out)

            with open(out / "Status.plist", "rb") as f:
                status = plistlib.load(f)
            with open(out / "Manifest.plist", "rb") as f:
                manifest = plistlib.load(f)
            with open(out / "Info.plist", "rb") as f:
                info = plistlib.load(f)

            assert (out / "Status.plist").read_bytes().startswith(b"bplist00")

        assert status == {
            "BackupState": "new",
            "Date": datetime(1970, 1, 1),
            "IsFullBackup": False,
            "SnapshotState": "finished",
            "UUID": ZERO_UUID,
            "Version": "2.4",
        }
        assert manifest["BackupKeyBag"] == BACKUP_KEY_BAG
        assert manifest["Lockdown"] == {}
        assert manifest["SystemDomainsVersion"] == "20.0"
        assert manifest["Version"] == "9.1"
        assert "Applications" not in manifest
        assert info == {}

    def test_key_bag_constant(self):
        """The key bag is the fixed TLV blob starting with its version tag."""
        assert BACKUP_KEY_BAG[:4] == b"VERS"
        assert len(BACKUP_KEY_BAG) == 1336

    def test_applications(self):
        """App bundles are listed by bundle identifier."""
        app = AppBundle(
            identifier="com.example.app",
            path="/var/containers/Bundle/Application/X/Example.app",
            container_content_class="Data/Application",
        )

        manifest = plistlib.loads(Backup([], [app]).generate_manifest())

        assert manifest["Applications"] == {
            "com.example.app": {
                "CFBundleIdentifier": "com.example.app",
                "CFBundleVersion": "804",
                "ContainerContentClass": "Data/Application",
                "Path": "/var/containers/Bundle/Application/X/Example.app",
            }
        }

    def test_duplicate_identity_rejected(self):
        """Two regular files sharing domain and path never reach disk."""
        entries = [
            ConcreteFile(path="a.txt", domain="HomeDomain", contents=b"one"),
            ConcreteFile(path="a.txt", domain="HomeDomain", contents=b"two"),
        ]

        with tempfile.TemporaryDirectory() as temp_dir:
            out = Path(temp_dir) / "archive"
            with pytest.raises(ArchiveError):
                Backup(entries).write_to_directory(out)
            assert not out.exists()

    def test_symlink_has_no_blob(self):
        """Only regular files are written as blobs."""
        entries = [
            Directory(path="Library", domain="HomeDomain"),
            SymbolicLink(path="Library/current", domain="HomeDomain", target="/var/mobile"),
        ]

        with tempfile.TemporaryDirectory() as temp_dir:
            out = Path(temp_dir)
            Backup(entries).write_to_directory(out)

            assert sorted(p.name for p in out.iterdir()) == [
                "Info.plist", "Manifest.mbdb", "Manifest.plist", "Status.plist",
            ]
            assert load_archive(out).records[1].link == "/var/mobile"

    def test_creates_missing_directory(self):
        """The target directory is created with its parents."""
        with tempfile.TemporaryDirectory() as temp_dir:
            out = Path(temp_dir) / "nested" / "archive"
            assert Backup(example_entries()).write_to_directory(out) == out
            assert (out / "Manifest.mbdb").is_file()


class TestIdempotence:
    """Test repeated assembly of the same entries."""

    def test_pinned_fields_give_identical_bytes(self):
        """With time and inodes fixed, two writes are byte-identical."""
        entries = example_entries()

        with tempfile.TemporaryDirectory() as first, tempfile.TemporaryDirectory() as second:
            with patch("mbforge.backup.entries.unix_now", return_value=1700000000), \
                    patch("mbforge.backup.entries.random_inode", return_value=0x1122334455667788):
                Backup(entries).write_to_directory(Path(first))
                Backup(entries).write_to_directory(Path(second))

            for name in sorted(p.name for p in Path(first).iterdir()):
                assert (Path(first) / name).read_bytes() == (Path(second) / name).read_bytes(), name
            assert sorted(p.name for p in Path(first).iterdir()) == sorted(p.name for p in Path(second).iterdir())

    def test_only_volatile_fields_differ(self):
        """Unpinned writes differ at most in inode and timestamps."""
        entries = example_entries()

        with tempfile.TemporaryDirectory() as first, tempfile.TemporaryDirectory() as second:
            Backup(entries).write_to_directory(Path(first))
            Backup(entries).write_to_directory(Path(second))

            def stable(directory):
                return [
                    dataclasses.replace(record, inode=0, mtime=0, atime=0, ctime=0)
                    for record in load_archive(Path(directory))
                ]

            assert stable(first) == stable(second)


class TestVerifyArchive:
    """Test archive verification."""

    def test_clean_archive(self):
        """A freshly written archive has no problems."""
        with tempfile.TemporaryDirectory() as temp_dir:
            out = Path(temp_dir)
            Backup(example_entries()).write_to_directory(out)

            assert verify_archive(out) == []

    def test_tampered_blob(self):
        """Changed blob contents are reported."""
        with tempfile.TemporaryDirectory() as temp_dir:
            out = Path(temp_dir)
            Backup(example_entries()).write_to_directory(out)
            (out / blob_name("Library", "Library/Preferences/com.example.plist")).write_bytes(b"<dict/>!")

            problems = verify_archive(out)

        assert len(problems) == 1
        assert "hash mismatch" in problems[0]

    def test_missing_blob_and_sidecar(self):
        """Missing files are each reported."""
        with tempfile.TemporaryDirectory() as temp_dir:
            out = Path(temp_dir)
            Backup(example_entries()).write_to_directory(out)
            (out / blob_name("Library", "Library/Preferences/com.example.plist")).unlink()
            (out / "Info.plist").unlink()

            problems = verify_archive(out)

        assert "missing Info.plist" in problems
        assert any("missing" in p and "com.example.plist" in p for p in problems)

    def test_corrupt_manifest(self):
        """A bad manifest header fails strict loading."""
        with tempfile.TemporaryDirectory() as temp_dir:
            out = Path(temp_dir)
            (out / "Manifest.mbdb").write_bytes(b"nope!!")

            with pytest.raises(DecodeError):
                load_archive(out)
            assert len(load_archive(out, lenient=True)) == 0
