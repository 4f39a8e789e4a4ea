"""Backup archive module initialization."""

from .assembler import AppBundle, Backup, load_archive, verify_archive
from .domains import ProtectedDomain, classify_path, get_domain_for_path
from .entries import (
    TRANSFERRED_FLAG,
    BackupFile,
    ConcreteFile,
    Directory,
    ResolvedContent,
    SymbolicLink,
)
from .payload import (
    RestorePlan,
    RestoreRequest,
    expand_request,
    expand_requests,
    load_plan,
    make_crash_report,
    merge_duplicates,
)
from .restore import RestoreExecutor, RestoreResult, read_reference_manifest, restore_file

__all__ = [
    # assembler
    "AppBundle",
    "Backup",
    "load_archive",
    "verify_archive",
    # domains
    "ProtectedDomain",
    "classify_path",
    "get_domain_for_path",
    # entries
    "TRANSFERRED_FLAG",
    "BackupFile",
    "ConcreteFile",
    "Directory",
    "ResolvedContent",
    "SymbolicLink",
    # payload
    "RestorePlan",
    "RestoreRequest",
    "expand_request",
    "expand_requests",
    "load_plan",
    "make_crash_report",
    "merge_duplicates",
    # restore
    "RestoreExecutor",
    "RestoreResult",
    "read_reference_manifest",
    "restore_file",
]
