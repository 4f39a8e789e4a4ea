"""Archive entries: regular files, directories and symbolic links.

Each variant converts itself to an ``MbdbRecord`` with ``to_record()``.
The family is closed; code that needs to tell them apart uses
``isinstance`` against the three classes below.
"""

import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from ..errors import ArchiveError
from ..mbdb.codec import MbdbRecord
from ..mbdb.filemode import DEFAULT_FILE_MODE, FileMode, with_file_type
from ..util.logging import get_logger
from ..util.sha1 import sha1_digest
from ..util.timeutil import unix_now

logger = get_logger(__name__)

# Record flag value for entries whose data is present in the archive
TRANSFERRED_FLAG = 4


def random_inode() -> int:
    return secrets.randbits(64)


@dataclass(frozen=True)
class ResolvedContent:
    """One snapshot of a file's content with the values derived from it."""

    data: bytes
    digest: bytes
    size: int

    @classmethod
    def from_bytes(cls, data: bytes) -> "ResolvedContent":
        return cls(data=data, digest=sha1_digest(data), size=len(data))


@dataclass
class ConcreteFile:
    """Regular file with inline contents or a source path read on demand."""

    path: str
    domain: str
    contents: Optional[bytes] = None
    src_path: Optional[Path] = None
    owner: int = 0
    group: int = 0
    inode: Optional[int] = None
    mode: int = DEFAULT_FILE_MODE
    # None while pending; set once by resolve()
    _resolved: Optional[ResolvedContent] = field(default=None, init=False, repr=False, compare=False)

    @property
    def identity(self):
        return (self.domain, self.path)

    @property
    def is_resolved(self) -> bool:
        return self._resolved is not None

    def read_contents(self) -> bytes:
        if self.contents is not None:
            return bytes(self.contents)
        if self.src_path is not None:
            try:
                return Path(self.src_path).read_bytes()
            except OSError as e:
                raise ArchiveError(f"Could not read {self.src_path} for {self.domain}-{self.path}: {e}") from e
        return b""

    def resolve(self) -> ResolvedContent:
        """Read the content once and cache data, hash and size together."""
        if self._resolved is None:
            self._resolved = ResolvedContent.from_bytes(self.read_contents())
            logger.debug(f"Resolved {self.domain}-{self.path}: {self._resolved.size} bytes")
        return self._resolved

    def to_record(self) -> MbdbRecord:
        resolved = self.resolve()
        now = unix_now()
        return MbdbRecord(
            domain=self.domain,
            path=self.path,
            hash=resolved.digest,
            mode=with_file_type(self.mode, FileMode.S_IFREG),
            inode=self.inode if self.inode is not None else random_inode(),
            user_id=self.owner,
            group_id=self.group,
            mtime=now,
            atime=now,
            ctime=now,
            size=resolved.size,
            flags=TRANSFERRED_FLAG,
        )


@dataclass
class Directory:
    """Directory entry; carries no content."""

    path: str
    domain: str
    owner: int = 0
    group: int = 0
    mode: int = DEFAULT_FILE_MODE

    @property
    def identity(self):
        return (self.domain, self.path)

    def to_record(self) -> MbdbRecord:
        now = unix_now()
        return MbdbRecord(
            domain=self.domain,
            path=self.path,
            mode=with_file_type(self.mode, FileMode.S_IFDIR),
            inode=0,
            user_id=self.owner,
            group_id=self.group,
            mtime=now,
            atime=now,
            ctime=now,
            size=0,
            flags=TRANSFERRED_FLAG,
        )


@dataclass
class SymbolicLink:
    """Symbolic link entry pointing at target."""

    path: str
    domain: str
    target: str
    owner: int = 0
    group: int = 0
    inode: Optional[int] = None
    mode: int = DEFAULT_FILE_MODE

    @property
    def identity(self):
        return (self.domain, self.path)

    def to_record(self) -> MbdbRecord:
        now = unix_now()
        return MbdbRecord(
            domain=self.domain,
            path=self.path,
            link=self.target,
            mode=with_file_type(self.mode, FileMode.S_IFLNK),
            inode=self.inode if self.inode is not None else random_inode(),
            user_id=self.owner,
            group_id=self.group,
            mtime=now,
            atime=now,
            ctime=now,
            size=0,
            flags=TRANSFERRED_FLAG,
        )


BackupFile = Union[ConcreteFile, Directory, SymbolicLink]
