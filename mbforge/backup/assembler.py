"""Archive assembly: blobs, Manifest.mbdb and the property-list sidecars."""

import base64
import plistlib
from pathlib import Path
from typing import Dict, List, Sequence

from pydantic import BaseModel, Field

from ..errors import ArchiveError
from ..mbdb.codec import Mbdb
from ..mbdb.filemode import FileMode, is_type
from ..util.hashing import blob_name, verify_file_integrity
from ..util.logging import get_logger
from ..util.paths import ensure_directory
from ..util.timeutil import EPOCH
from .entries import BackupFile, ConcreteFile

logger = get_logger(__name__)

MANIFEST_DB = "Manifest.mbdb"
STATUS_PLIST = "Status.plist"
MANIFEST_PLIST = "Manifest.plist"
INFO_PLIST = "Info.plist"

ZERO_UUID = "00000000-0000-0000-0000-000000000000"
STATUS_VERSION = "2.4"
MANIFEST_VERSION = "9.1"
SYSTEM_DOMAINS_VERSION = "20.0"

# Unlocked key bag the restore tool expects in every unencrypted archive.
# Copied byte for byte; it is a protocol constant, not key material.
BACKUP_KEY_BAG = base64.b64decode("".join("""
    VkVSUwAAAAQAAAAFVFlQRQAAAAQAAAABVVVJRAAAABDud41d1b9NBICR1BH9JfVtSE1D
    SwAAACgAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAV1JBUAAA
    AAQAAAAAU0FMVAAAABRY5Ne2bthGQ5rf4O3gikep1e6tZUlURVIAAAAEAAAnEFVVSUQA
    AAAQB7R8awiGR9aba1UuVahGPENMQVMAAAAEAAAAAVdSQVAAAAAEAAAAAktUWVAAAAAE
    AAAAAFdQS1kAAAAoN3kQAJloFg+ukEUY+v5P+dhc/Welw/oucsyS40UBh67ZHef5ZMk9
    UVVVSUQAAAAQgd0cg0hSTgaxR3PVUbcEkUNMQVMAAAAEAAAAAldSQVAAAAAEAAAAAktU
    WVAAAAAEAAAAAFdQS1kAAAAoMiQTXx0SJlyrGJzdKZQ+SfL124w+2Tf/3d1R2i9yNj9z
    ZCHNJhnorVVVSUQAAAAQf7JFQiBOS12JDD7qwKNTSkNMQVMAAAAEAAAAA1dSQVAAAAAE
    AAAAAktUWVAAAAAEAAAAAFdQS1kAAAAoSEelorROJA46ZUdwDHhMKiRguQyqHukotrxh
    jIfqiZ5ESBXX9txi51VVSUQAAAAQfF0G/837QLq01xH9+66vx0NMQVMAAAAEAAAABFdS
    QVAAAAAEAAAAAktUWVAAAAAEAAAAAFdQS1kAAAAol0BvFhd5bu4Hr75XqzNf4g0fMqZA
    ie6OxI+x/pgm6Y95XW17N+ZIDVVVSUQAAAAQimkT2dp1QeadMu1KhJKNTUNMQVMAAAAE
    AAAABVdSQVAAAAAEAAAAA0tUWVAAAAAEAAAAAFdQS1kAAAAo2N2DZarQ6GPoWRgTiy/t
    djKArOqTaH0tPSG9KLbIjGTOcLodhx23xFVVSUQAAAAQQV37JVZHQFiKpoNiGmT6+ENM
    QVMAAAAEAAAABldSQVAAAAAEAAAAA0tUWVAAAAAEAAAAAFdQS1kAAAAofe2QSvDC2cV7
    Etk4fSBbgqDx5ne/z1VHwmJ6NdVrTyWi80Sy869DM1VVSUQAAAAQFzkdH+VgSOmTj3yE
    cfWmMUNMQVMAAAAEAAAAB1dSQVAAAAAEAAAAA0tUWVAAAAAEAAAAAFdQS1kAAAAo7kLY
    PQ/DnHBERGpaz37eyntIX/XzovsS0mpHW3SoHvrb9RBgOB+WblVVSUQAAAAQEBpgKOz9
    Tni8F9kmSXd0sENMQVMAAAAEAAAACFdSQVAAAAAEAAAAA0tUWVAAAAAEAAAAAFdQS1kA
    AAAo5mxVoyNFgPMzphYhm1VG8Fhsin/xX+r6mCd9gByF5SxeolAIT/ICF1VVSUQAAAAQ
    rfKB2uPSQtWh82yx6w4BoUNMQVMAAAAEAAAACVdSQVAAAAAEAAAAA0tUWVAAAAAEAAAA
    AFdQS1kAAAAo5iayZBwcRa1c1MMx7vh6lOYux3oDI/bdxFCW1WHCQR/Ub1MOv+QaYFVV
    SUQAAAAQiLXvK3qvQza/mea5inss/0NMQVMAAAAEAAAACldSQVAAAAAEAAAAA0tUWVAA
    AAAEAAAAAFdQS1kAAAAoD2wHX7KriEe1E31z7SQ7/+AVymcpARMYnQgegtZD0Mq2U55u
    xwNr2FVVSUQAAAAQ/Q9feZxLS++qSe/a4emRRENMQVMAAAAEAAAAC1dSQVAAAAAEAAAA
    A0tUWVAAAAAEAAAAAFdQS1kAAAAocYda2jyYzzSKggRPw/qgh6QPESlkZedgDUKpTr4Z
    Z8FDgd7YoALY1g==
""".split()))


class AppBundle(BaseModel):
    """Application metadata listed under Applications in Manifest.plist."""

    identifier: str = Field(description="Bundle identifier")
    path: str = Field(description="Bundle path on device")
    container_content_class: str = Field(description="Container class, e.g. Data/Application")
    version: str = Field(default="804", description="CFBundleVersion")

    def to_plist(self) -> Dict[str, str]:
        return {
            "CFBundleIdentifier": self.identifier,
            "CFBundleVersion": self.version,
            "ContainerContentClass": self.container_content_class,
            "Path": self.path,
        }


def _dump_plist(value: dict) -> bytes:
    return plistlib.dumps(value, fmt=plistlib.FMT_BINARY)


def _write(path: Path, data: bytes) -> None:
    try:
        path.write_bytes(data)
    except OSError as e:
        raise ArchiveError(f"Could not write {path}: {e}") from e


class Backup:
    """An ordered set of entries that can be written out as an archive."""

    def __init__(self, files: Sequence[BackupFile], apps: Sequence[AppBundle] = ()):
        self.files: List[BackupFile] = list(files)
        self.apps: List[AppBundle] = list(apps)

    def _check_blob_identities(self) -> None:
        seen = set()
        for entry in self.files:
            if not isinstance(entry, ConcreteFile):
                continue
            if entry.identity in seen:
                domain, path = entry.identity
                raise ArchiveError(
                    f"Duplicate file {domain}-{path}: both would share blob {blob_name(domain, path)}"
                )
            seen.add(entry.identity)

    def write_to_directory(self, directory: Path) -> Path:
        """Write blobs, Manifest.mbdb and the three plists directly under directory."""
        directory = Path(directory)
        self._check_blob_identities()
        ensure_directory(directory)

        blob_count = 0
        for entry in self.files:
            if isinstance(entry, ConcreteFile):
                name = blob_name(entry.domain, entry.path)
                _write(directory / name, entry.resolve().data)
                logger.debug(f"Wrote blob {name} for {entry.domain}-{entry.path}")
                blob_count += 1

        self.generate_manifest_db().write(directory / MANIFEST_DB)
        _write(directory / STATUS_PLIST, self.generate_status())
        _write(directory / MANIFEST_PLIST, self.generate_manifest())
        _write(directory / INFO_PLIST, self.generate_info())

        logger.info(f"Assembled archive in {directory}: {len(self.files)} entries, {blob_count} blobs")
        return directory

    def generate_manifest_db(self) -> Mbdb:
        return Mbdb([entry.to_record() for entry in self.files])

    def generate_status(self) -> bytes:
        return _dump_plist({
            "BackupState": "new",
            "Date": EPOCH,
            "IsFullBackup": False,
            "SnapshotState": "finished",
            "UUID": ZERO_UUID,
            "Version": STATUS_VERSION,
        })

    def generate_manifest(self) -> bytes:
        manifest = {
            "BackupKeyBag": BACKUP_KEY_BAG,
            "Lockdown": {},
            "SystemDomainsVersion": SYSTEM_DOMAINS_VERSION,
            "Version": MANIFEST_VERSION,
        }
        if self.apps:
            manifest["Applications"] = {app.identifier: app.to_plist() for app in self.apps}
        return _dump_plist(manifest)

    def generate_info(self) -> bytes:
        return _dump_plist({})


def load_archive(directory: Path, lenient: bool = False) -> Mbdb:
    """Decode Manifest.mbdb from an assembled archive directory."""
    return Mbdb.from_file(Path(directory) / MANIFEST_DB, lenient=lenient)


def verify_archive(directory: Path, lenient: bool = False) -> List[str]:
    """Check each regular-file record against its blob; return problems found."""
    directory = Path(directory)
    problems: List[str] = []

    for required in (MANIFEST_DB, STATUS_PLIST, MANIFEST_PLIST, INFO_PLIST):
        if not (directory / required).is_file():
            problems.append(f"missing {required}")

    if (directory / MANIFEST_DB).is_file():
        for record in load_archive(directory, lenient=lenient):
            if not is_type(record.mode, FileMode.S_IFREG):
                continue

            label = f"{record.domain}-{record.path}"
            blob = directory / record.file_id
            if not blob.is_file():
                problems.append(f"{label}: blob {record.file_id} missing")
                continue

            size = blob.stat().st_size
            if size != record.size:
                problems.append(f"{label}: size {size} != recorded {record.size}")

            if not verify_file_integrity(blob, record.hash.hex()):
                problems.append(f"{label}: hash mismatch")

    for problem in problems:
        logger.warning(f"Archive check: {problem}")
    return problems
