"""
Shell command tool.
"""

import logging

from ..workspace import run_shell
from .results import ToolResult
from .sandbox import Sandbox

logger = logging.getLogger(__name__)


def truncate_output(text: str, limit: int) -> str:
    """Keep the tail of long output, where errors and summaries usually are."""
    if limit <= 0 or len(text) <= limit:
        return text
    omitted = len(text) - limit
    return f"[... {omitted} characters truncated ...]\n" + text[-limit:]


def execute_command(
    sandbox: Sandbox,
    params: dict,
    timeout: float,
    max_output_chars: int,
) -> ToolResult:
    command = str(params["command"])
    if not command.strip():
        return ToolResult.error("command must not be empty")

    result = run_shell(sandbox.root, command, timeout=timeout)
    payload = {
        "stdout": truncate_output(result.stdout, max_output_chars),
        "stderr": truncate_output(result.stderr, max_output_chars),
        "exit_code": result.exit_code,
    }
    if result.timed_out:
        payload["timed_out"] = True
    return ToolResult.ok(**payload)
