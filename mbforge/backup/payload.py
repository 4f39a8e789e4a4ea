"""Restore requests and their expansion into archive entries."""

import posixpath
import uuid
from pathlib import Path
from typing import Iterable, List, Optional, Set, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from ..errors import ArchiveError
from ..mbdb.filemode import FileMode
from ..util.logging import get_logger
from .assembler import AppBundle
from .domains import ProtectedDomain, classify_path, get_domain_for_path
from .entries import BackupFile, ConcreteFile, Directory

logger = get_logger(__name__)

CRASH_REPORTER_DIR = "CrashReporter"
CRASH_REPORT_DOMAIN = ProtectedDomain.LIBRARY.folder_name

# rw-r--r--, no execute bits
CRASH_REPORT_MODE = FileMode.S_IRUSR | FileMode.S_IWUSR | FileMode.S_IRGRP | FileMode.S_IROTH

CRASH_REPORT_TEMPLATE = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    '<!DOCTYPE plist PUBLIC "-//Apple//DTD PLIST 1.0//EN" '
    '"http://www.apple.com/DTDs/PropertyList-1.0.dtd">\n'
    '<plist version="1.0"><dict><key>IncidentIdentifier</key>'
    '<string>{incident}</string></dict></plist>'
)


class RestoreRequest(BaseModel):
    """One file the caller wants placed on the device."""

    path: str = Field(description="Restore path, optionally prefixed with its domain")
    domain: str = Field(default="", description="Domain hint")
    contents: str = Field(description="File contents (UTF-8 text)")
    owner: int = Field(default=501, ge=0, le=0xFFFFFFFF, description="Owner uid")
    group: int = Field(default=501, ge=0, le=0xFFFFFFFF, description="Group gid")
    mode: int = Field(default=0o644, ge=0, le=0o177777, description="Permission bits")
    uses_domains: bool = Field(
        default=False,
        alias="usesDomains",
        description="Take the domain from the first path segment"
    )

    class Config:
        """Pydantic configuration."""
        populate_by_name = True

    @field_validator("path")
    @classmethod
    def _path_not_empty(cls, value: str) -> str:
        if not value.strip("/"):
            raise ValueError("path must not be empty")
        return value.lstrip("/")

    @model_validator(mode="after")
    def _relative_path_not_empty(self) -> "RestoreRequest":
        domain, relative = get_domain_for_path(self.path, self.uses_domains)
        if not relative.strip("/"):
            raise ValueError(f"path {self.path!r} names only the domain {domain!r}, not a file")
        return self

    def resolve(self) -> Tuple[str, str]:
        """(domain, relative path) the request's file entry will carry."""
        domain, relative = get_domain_for_path(self.path, self.uses_domains)
        if not self.uses_domains:
            domain = classify_path(relative)
        return domain, relative


class RestorePlan(BaseModel):
    """A batch of requests, as loaded from a YAML plan file."""

    files: List[RestoreRequest] = Field(default_factory=list)
    apps: List[AppBundle] = Field(default_factory=list)
    reboot: bool = Field(default=False, description="Reboot the device after restoring")


def load_plan(plan_path: Path) -> RestorePlan:
    """Load a restore plan from YAML."""
    yaml = YAML(typ="safe")
    try:
        with open(plan_path, "r", encoding="utf-8") as f:
            data = yaml.load(f) or {}
    except OSError as e:
        raise ArchiveError(f"Could not read plan {plan_path}: {e}") from e
    except YAMLError as e:
        raise ArchiveError(f"Could not parse plan {plan_path}: {e}") from e

    if isinstance(data, list):
        data = {"files": data}
    if not isinstance(data, dict):
        raise ArchiveError(f"Plan {plan_path} must be a mapping or a list of files, not {type(data).__name__}")
    return RestorePlan(**data)


def make_crash_report(
    domain: str,
    owner: int = 501,
    group: int = 501,
    directory: str = CRASH_REPORTER_DIR
) -> ConcreteFile:
    """Synthetic crash report whose arrival wakes the device's crash reporter."""
    contents = CRASH_REPORT_TEMPLATE.format(incident=str(uuid.uuid4()).upper())
    return ConcreteFile(
        path=f"{directory}/crash-{str(uuid.uuid4()).upper()}.plist",
        domain=domain,
        contents=contents.encode("utf-8"),
        owner=owner,
        group=group,
        mode=CRASH_REPORT_MODE,
    )


def expand_request(
    request: RestoreRequest,
    crash_reporter_dir: str = CRASH_REPORTER_DIR,
    seen_directories: Optional[Set[Tuple[str, str]]] = None
) -> List[BackupFile]:
    """Expand one request into parent directory, file and crash report entries."""
    entries: List[BackupFile] = []
    domain, relative = request.resolve()

    parent = posixpath.dirname(relative)
    if parent:
        key = (domain, parent)
        if seen_directories is None or key not in seen_directories:
            entries.append(Directory(path=parent, domain=domain))
            if seen_directories is not None:
                seen_directories.add(key)

    entries.append(ConcreteFile(
        path=relative,
        domain=domain,
        contents=request.contents.encode("utf-8"),
        owner=request.owner,
        group=request.group,
        mode=request.mode,
    ))

    crash_domain = domain if request.uses_domains else CRASH_REPORT_DOMAIN
    entries.append(make_crash_report(crash_domain, request.owner, request.group, crash_reporter_dir))

    return entries


def merge_duplicates(requests: Iterable[RestoreRequest]) -> List[RestoreRequest]:
    """Keep the first request for every resolved (domain, path)."""
    unique: List[RestoreRequest] = []
    seen: Set[Tuple[str, str]] = set()

    for request in requests:
        key = request.resolve()
        if key in seen:
            logger.warning(f"Dropping duplicate restore request for {key[0]}-{key[1]}")
            continue
        seen.add(key)
        unique.append(request)

    return unique


def expand_requests(
    requests: Iterable[RestoreRequest],
    crash_reporter_dir: str = CRASH_REPORTER_DIR
) -> List[BackupFile]:
    """Expand a batch of requests, merging duplicates and shared parent directories.

    Each request contributes its parent directory, file and crash report in
    that order, except that a parent directory already emitted for an
    earlier request in the batch is not repeated.
    """
    entries: List[BackupFile] = []
    seen_directories: Set[Tuple[str, str]] = set()

    for request in merge_duplicates(requests):
        entries.extend(expand_request(request, crash_reporter_dir, seen_directories))

    return entries
