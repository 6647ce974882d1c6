"""
File tools: read, write, edit, list, delete and stat inside the workspace.
"""

import logging
from datetime import datetime, timezone

from .results import ToolResult
from .sandbox import Sandbox

logger = logging.getLogger(__name__)


def read_file(sandbox: Sandbox, params: dict) -> ToolResult:
    path = sandbox.resolve(params["path"])
    if not path.is_file():
        return ToolResult.error(f"File not found: {params['path']}")
    return ToolResult.ok(content=path.read_text(encoding="utf-8", errors="replace"))


def write_file(sandbox: Sandbox, params: dict) -> ToolResult:
    path = sandbox.resolve(params["path"])
    if path.is_dir():
        return ToolResult.error(f"Path is a directory: {params['path']}")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(str(params["content"]), encoding="utf-8")
    return ToolResult.ok(success=True, message=f"Wrote {params['path']}")


def edit_file(sandbox: Sandbox, params: dict) -> ToolResult:
    """Replace exactly one occurrence of old_string; anything else leaves the file untouched."""
    path = sandbox.resolve(params["path"])
    if not path.is_file():
        return ToolResult.error(f"File not found: {params['path']}")

    old_string = str(params["old_string"])
    new_string = str(params["new_string"])
    if not old_string:
        return ToolResult.error("old_string must not be empty")

    content = path.read_text(encoding="utf-8", errors="replace")
    occurrences = content.count(old_string)
    if occurrences == 0:
        return ToolResult.error(
            f"old_string not found in {params['path']}. Make sure the string matches "
            f"exactly, including whitespace and indentation."
        )
    if occurrences > 1:
        return ToolResult.error(
            f"old_string is ambiguous: it appears {occurrences} times in {params['path']}. "
            f"Include more surrounding context so it matches exactly once."
        )

    path.write_text(content.replace(old_string, new_string, 1), encoding="utf-8")
    return ToolResult.ok(success=True, message=f"Edited {params['path']}")


def list_directory(sandbox: Sandbox, params: dict) -> ToolResult:
    path = sandbox.resolve(params.get("path") or ".")
    if not path.is_dir():
        return ToolResult.error(f"Cannot list directory: {params.get('path')}")
    entries = []
    for entry in path.iterdir():
        if entry.name == ".git":
            continue
        entries.append(f"{entry.name}/" if entry.is_dir() else entry.name)
    return ToolResult.ok(entries=sorted(entries))


def delete_file(sandbox: Sandbox, params: dict) -> ToolResult:
    path = sandbox.resolve(params["path"])
    if not path.exists():
        return ToolResult.error(f"File not found: {params['path']}")
    if path.is_dir():
        return ToolResult.error(f"Path is a directory, not a file: {params['path']}")
    path.unlink()
    return ToolResult.ok(success=True, message=f"Deleted {params['path']}")


def get_file_info(sandbox: Sandbox, params: dict) -> ToolResult:
    path = sandbox.resolve(params["path"])
    if not path.exists():
        return ToolResult.ok(exists=False)

    stat = path.stat()
    info = {
        "exists": True,
        "type": "directory" if path.is_dir() else "file",
        "size": stat.st_size,
        "modified": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
    }
    if path.is_file():
        info["lines"] = len(path.read_text(encoding="utf-8", errors="replace").split("\n"))
    return ToolResult.ok(**info)
