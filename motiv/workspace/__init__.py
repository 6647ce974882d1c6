"""
Workspace checkouts and subprocess helpers.
"""

from .git import MANIFEST_FILENAME, WORKSPACE_EXCLUDES, GitWorkspace, run_git
from .shell import CommandResult, run_process, run_shell

__all__ = [
    "MANIFEST_FILENAME",
    "WORKSPACE_EXCLUDES",
    "GitWorkspace",
    "run_git",
    "CommandResult",
    "run_process",
    "run_shell",
]
