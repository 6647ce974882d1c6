"""
Tool executor.

Runs the fixed tool catalog against one workspace root. Every failure a
tool can hit (unknown tool, missing parameter, sandbox violation, I/O
error) comes back as an error ToolResult for the model to react to; the
executor itself never raises.
"""

import functools
import logging
from pathlib import Path
from typing import Union

from . import filesystem, search, shell
from .catalog import TOOL_CATALOG
from .registry import (
    ToolRegistry,
    preview_command,
    preview_path,
    preview_pattern,
    preview_title,
)
from .results import ToolResult
from .sandbox import Sandbox, SandboxViolation

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT = 600
DEFAULT_MAX_OUTPUT_CHARS = 50_000
MAX_ERROR_LENGTH = 500


def _done(params: dict) -> ToolResult:
    return ToolResult.ok(done=True, title=params["title"], summary=params["summary"])


class ToolExecutor:
    """
    Sandboxed executor for the workspace tool catalog.

    Args:
        root: Workspace root every path is confined to
        command_timeout: Seconds before execute_command kills its process
        max_output_chars: Per-stream truncation limit for command output
    """

    def __init__(
        self,
        root: Union[str, Path],
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
        max_output_chars: int = DEFAULT_MAX_OUTPUT_CHARS,
    ):
        self.sandbox = Sandbox(root)
        self.command_timeout = command_timeout
        self.max_output_chars = max_output_chars
        self.registry = self._build_registry()

    @property
    def root(self) -> Path:
        return self.sandbox.root

    def _build_registry(self) -> ToolRegistry:
        sandbox = self.sandbox
        handlers = {
            "read_file": (functools.partial(filesystem.read_file, sandbox), preview_path),
            "write_file": (functools.partial(filesystem.write_file, sandbox), preview_path),
            "edit_file": (functools.partial(filesystem.edit_file, sandbox), preview_path),
            "list_directory": (functools.partial(filesystem.list_directory, sandbox), preview_path),
            "delete_file": (functools.partial(filesystem.delete_file, sandbox), preview_path),
            "get_file_info": (functools.partial(filesystem.get_file_info, sandbox), preview_path),
            "execute_command": (
                functools.partial(
                    shell.execute_command,
                    sandbox,
                    timeout=self.command_timeout,
                    max_output_chars=self.max_output_chars,
                ),
                preview_command,
            ),
            "search_files": (functools.partial(search.search_files, sandbox), preview_pattern),
            "find_files": (functools.partial(search.find_files, sandbox), preview_pattern),
            "view_diff": (functools.partial(search.view_diff, sandbox), preview_path),
            "done": (_done, preview_title),
        }

        registry = ToolRegistry()
        for entry in TOOL_CATALOG:
            handler, preview = handlers[entry["name"]]
            registry.register(
                name=entry["name"],
                description=entry["description"],
                input_schema=entry["input_schema"],
                handler=handler,
                preview=preview,
            )
        return registry

    def catalog(self) -> list[dict]:
        """Backend-neutral tool declarations."""
        return self.registry.catalog()

    def preview(self, name: str, params: dict) -> str:
        """Short parameter preview for progress logs."""
        tool = self.registry.get(name)
        if tool is None or not isinstance(params, dict):
            return ""
        return tool.preview(params)

    def execute(self, name: str, params: dict) -> ToolResult:
        """
        Execute a tool call.

        Args:
            name: Tool name from the catalog
            params: Tool input as sent by the model

        Returns:
            ToolResult with either a success or an error payload
        """
        tool = self.registry.get(name)
        if tool is None:
            return ToolResult.error(f"Unknown tool: {name}")
        if not isinstance(params, dict):
            return ToolResult.error(f"Invalid input for {name}: expected an object")

        missing = [p for p in tool.required if params.get(p) is None]
        if missing:
            return ToolResult.error(
                f"Missing required parameter(s) for {name}: {', '.join(missing)}"
            )

        try:
            return tool.handler(params)
        except SandboxViolation as e:
            return ToolResult.error(str(e))
        except Exception as e:
            logger.error(f"Tool {name} failed: {e}")
            return ToolResult.error(f"{name} failed: {str(e)[:MAX_ERROR_LENGTH]}")
