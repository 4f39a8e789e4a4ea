"""Subprocess wrappers for the libimobiledevice command-line tools."""

import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from ..errors import ProcessError
from ..util.logging import get_logger

logger = get_logger(__name__)

DEFAULT_COMPLETION_PHRASES = ("crash_on_purpose", "Restore completed", "恢复完成")


@dataclass
class ToolResult:
    """Outcome of one tool invocation."""

    success: bool
    stdout: str
    stderr: str
    returncode: int = 0


def check_tool_available(executable: str) -> bool:
    """Check whether an executable can be found on PATH."""
    return shutil.which(executable) is not None


def run_tool(executable: str, arguments: Sequence[str], timeout: Optional[int] = None) -> ToolResult:
    """Run a tool to completion and capture its output."""
    cmd = [executable] + list(arguments)
    logger.debug(f"Running: {' '.join(cmd)}")

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError:
        message = f"{executable} not found; is libimobiledevice installed?"
        logger.error(message)
        return ToolResult(False, "", message, returncode=127)
    except subprocess.TimeoutExpired as e:
        message = f"{executable} timed out after {timeout}s"
        logger.error(message)
        stdout = e.stdout if isinstance(e.stdout, str) else ""
        return ToolResult(False, stdout, message, returncode=-1)

    return ToolResult(result.returncode == 0, result.stdout or "", result.stderr or "", result.returncode)


class BackupTool:
    """The backup transfer tool (idevicebackup2)."""

    def __init__(
        self,
        executable: str = "idevicebackup2",
        udid: Optional[str] = None,
        timeout: Optional[int] = None,
        completion_phrases: Sequence[str] = DEFAULT_COMPLETION_PHRASES
    ):
        self.executable = executable
        self.udid = udid
        self.timeout = timeout
        self.completion_phrases = list(completion_phrases)

    def _arguments(self, *arguments: str) -> List[str]:
        prefix = ["-u", self.udid] if self.udid else []
        return prefix + list(arguments)

    def _run(self, *arguments: str) -> ToolResult:
        return run_tool(self.executable, self._arguments(*arguments), timeout=self.timeout)

    def create_empty_backup(self, directory: Path) -> ToolResult:
        """Produce a full reference backup in directory."""
        result = self._run("backup", "--full", "--system", str(directory))
        if not result.success:
            logger.error(f"Backup failed: {result.stderr.strip()}")
            raise ProcessError(
                f"Failed to create empty backup: {result.stderr.strip()}",
                stderr=result.stderr,
                stdout=result.stdout,
                returncode=result.returncode,
            )
        return result

    def restore(self, directory: Path) -> ToolResult:
        """Apply the archive in directory to the device."""
        result = self._run("restore", "--system", str(directory))
        if result.success:
            return result

        # The tool often exits nonzero after the device reboots mid-restore
        for phrase in self.completion_phrases:
            if phrase in result.stdout:
                logger.info(f"Restore exited with {result.returncode} but reported '{phrase}'")
                return ToolResult(True, result.stdout, result.stderr, result.returncode)

        logger.error(f"Restore failed: {result.stderr.strip()}")
        raise ProcessError(
            f"Failed to restore backup: {result.stderr.strip()}",
            stderr=result.stderr,
            stdout=result.stdout,
            returncode=result.returncode,
        )


class DiagnosticsTool:
    """The diagnostics tool (idevicediagnostics), used to reboot the device."""

    def __init__(self, executable: str = "idevicediagnostics", udid: Optional[str] = None, timeout: Optional[int] = None):
        self.executable = executable
        self.udid = udid
        self.timeout = timeout

    def restart(self) -> ToolResult:
        prefix = ["-u", self.udid] if self.udid else []
        result = run_tool(self.executable, prefix + ["restart"], timeout=self.timeout)
        if not result.success:
            logger.error(f"Reboot failed: {result.stderr.strip()}")
            raise ProcessError(
                f"Failed to reboot device: {result.stderr.strip()}",
                stderr=result.stderr,
                stdout=result.stdout,
                returncode=result.returncode,
            )
        return result
