"""Restore pipeline: reference backup, archive assembly, transfer, reboot."""

import plistlib
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence

from ..config import ForgeConfig, get_config
from ..device.tool import BackupTool, DiagnosticsTool
from ..errors import ForgeError, ManifestError
from ..util.logging import get_logger
from ..util.paths import temporary_directory
from .assembler import MANIFEST_PLIST, AppBundle, Backup
from .payload import RestoreRequest, expand_request, merge_duplicates

logger = get_logger(__name__)

ProgressCallback = Callable[[int], None]


@dataclass
class RestoreResult:
    """Outcome reported to callers of RestoreExecutor.run."""

    success: bool
    error: Optional[str] = None


def read_reference_manifest(directory: Path) -> dict:
    """Load the Manifest.plist the backup tool produced in directory.

    The tool may write into a per-device subdirectory; a single such
    subdirectory is searched when the file is not at the top level.
    """
    candidate = directory / MANIFEST_PLIST
    if not candidate.is_file():
        nested = [d / MANIFEST_PLIST for d in directory.iterdir() if d.is_dir()]
        nested = [p for p in nested if p.is_file()]
        if len(nested) != 1:
            raise ManifestError(f"Reference backup has no {MANIFEST_PLIST} in {directory}")
        candidate = nested[0]

    try:
        with open(candidate, "rb") as f:
            manifest = plistlib.load(f)
    except (OSError, plistlib.InvalidFileException, ValueError) as e:
        raise ManifestError(f"Could not parse reference {candidate}: {e}") from e

    if not isinstance(manifest, dict):
        raise ManifestError(f"Reference {candidate} is not a dictionary")

    return manifest


class RestoreExecutor:
    """Runs a batch of restore requests against the connected device."""

    def __init__(
        self,
        backup_tool: Optional[BackupTool] = None,
        diagnostics_tool: Optional[DiagnosticsTool] = None,
        config: Optional[ForgeConfig] = None
    ):
        self.config = config if config is not None else get_config()
        tools = self.config.tools

        if backup_tool is None:
            backup_tool = BackupTool(
                tools.backup_tool,
                udid=tools.udid,
                timeout=tools.timeout,
                completion_phrases=tools.completion_phrases,
            )
        if diagnostics_tool is None:
            diagnostics_tool = DiagnosticsTool(tools.diagnostics_tool, udid=tools.udid, timeout=tools.timeout)

        self.backup_tool = backup_tool
        self.diagnostics_tool = diagnostics_tool

    def restore_files(
        self,
        requests: Sequence[RestoreRequest],
        reboot: bool = False,
        progress: Optional[ProgressCallback] = None,
        apps: Sequence[AppBundle] = ()
    ) -> None:
        """Restore requests to the device, raising ForgeError on the first failure."""
        archive = self.config.archive
        requests = merge_duplicates(requests)

        with temporary_directory(archive.temp_prefix, archive.temp_root) as work_dir:
            logger.info("Creating reference backup")
            self.backup_tool.create_empty_backup(work_dir)

            reference = read_reference_manifest(work_dir)
            logger.debug(
                f"Reference manifest version {reference.get('Version')}, "
                f"encrypted={reference.get('IsEncrypted', False)}"
            )

            entries = []
            seen_directories = set()
            for index, request in enumerate(requests):
                if progress:
                    progress(int(index / len(requests) * 50))
                entries.extend(expand_request(request, archive.crash_reporter_dir, seen_directories))

            Backup(entries, apps).write_to_directory(work_dir)
            if progress:
                progress(75)

            logger.info(f"Restoring {len(requests)} files ({len(entries)} entries)")
            self.backup_tool.restore(work_dir)

            if reboot:
                logger.info("Rebooting device")
                self.diagnostics_tool.restart()

        if progress:
            progress(100)
        logger.info("Restore completed")

    def run(
        self,
        requests: Sequence[RestoreRequest],
        reboot: bool = False,
        progress: Optional[ProgressCallback] = None,
        apps: Sequence[AppBundle] = ()
    ) -> RestoreResult:
        """Like restore_files, but report failure as a result instead of raising."""
        try:
            self.restore_files(requests, reboot=reboot, progress=progress, apps=apps)
        except ForgeError as e:
            logger.error(f"Restore failed: {e}")
            return RestoreResult(False, str(e))
        return RestoreResult(True)


def restore_file(path: str, contents: str, executor: Optional[RestoreExecutor] = None) -> bool:
    """Restore a single file to its classified domain; True on success."""
    executor = executor or RestoreExecutor()
    return executor.run([RestoreRequest(path=path, contents=contents)]).success
