"""Device tool collaborators."""

from .tool import (
    DEFAULT_COMPLETION_PHRASES,
    BackupTool,
    DiagnosticsTool,
    ToolResult,
    check_tool_available,
    run_tool,
)

__all__ = [
    "DEFAULT_COMPLETION_PHRASES",
    "BackupTool",
    "DiagnosticsTool",
    "ToolResult",
    "check_tool_available",
    "run_tool",
]
