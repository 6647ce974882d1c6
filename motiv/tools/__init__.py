"""
Motiv workspace tools.

Available tools:
- read_file, write_file, edit_file, list_directory, delete_file, get_file_info
- execute_command: shell commands in the workspace
- search_files, find_files: content and name search
- view_diff: uncommitted changes
- done: completion signal
"""

from .catalog import TOOL_CATALOG, TOOL_NAMES
from .executor import ToolExecutor
from .registry import ToolDefinition, ToolRegistry
from .results import ToolResult
from .sandbox import Sandbox, SandboxViolation

__all__ = [
    "TOOL_CATALOG",
    "TOOL_NAMES",
    "ToolExecutor",
    "ToolDefinition",
    "ToolRegistry",
    "ToolResult",
    "Sandbox",
    "SandboxViolation",
]
