"""
Search tools: content search, file-name search and the working-tree diff.

Content and name search prefer ripgrep and fall back to grep/find when it
is not installed. Commands are built as argument lists, never shell
strings, so patterns cannot inject shell syntax.
"""

import logging
import shutil

from ..errors import GitError
from ..workspace import run_git, run_process
from .results import ToolResult
from .sandbox import Sandbox

logger = logging.getLogger(__name__)

MAX_FIND_RESULTS = 200

# Hash of git's empty tree, used to diff a repository with no commits
EMPTY_TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"


def _has_ripgrep() -> bool:
    return shutil.which("rg") is not None


def _search_path(sandbox: Sandbox, params: dict) -> str:
    return sandbox.relative(sandbox.resolve(params.get("path") or "."))


def search_files(sandbox: Sandbox, params: dict) -> ToolResult:
    pattern = str(params["pattern"])
    search_path = _search_path(sandbox, params)
    include = params.get("include")

    if _has_ripgrep():
        argv = ["rg", "--line-number", "--no-heading", "--color", "never", "-e", pattern]
        if include:
            argv.extend(["--glob", str(include)])
        argv.append(search_path)
        result = run_process(sandbox.root, argv)
        if result.exit_code == 0:
            return ToolResult.ok(matches=result.stdout)
        if result.exit_code == 1:
            return ToolResult.ok(matches="", message="No matches found")
        logger.debug(f"rg failed (exit {result.exit_code}), falling back to grep")

    argv = ["grep", "-rn", "--exclude-dir=.git"]
    if include:
        argv.append(f"--include={include}")
    argv.extend(["-e", pattern, search_path])
    result = run_process(sandbox.root, argv)
    if result.exit_code > 1:
        return ToolResult.error(f"Search failed: {result.stderr.strip()}")
    return ToolResult.ok(matches=result.stdout or "No matches found")


def find_files(sandbox: Sandbox, params: dict) -> ToolResult:
    pattern = str(params["pattern"])
    search_path = _search_path(sandbox, params)

    if _has_ripgrep():
        result = run_process(
            sandbox.root, ["rg", "--files", "--glob", pattern, search_path]
        )
        if result.exit_code == 0 and result.stdout.strip():
            return ToolResult.ok(files=result.stdout.strip())

    result = run_process(
        sandbox.root,
        [
            "find", search_path,
            "-name", pattern,
            "-not", "-path", "*/.git/*",
            "-not", "-path", "*/node_modules/*",
        ],
    )
    files = sorted(line for line in result.stdout.splitlines() if line.strip())
    files = files[:MAX_FIND_RESULTS]
    return ToolResult.ok(files="\n".join(files) or "No files found")


def view_diff(sandbox: Sandbox, params: dict) -> ToolResult:
    path_args: list[str] = []
    if params.get("path"):
        path_args = ["--", sandbox.relative(sandbox.resolve(params["path"]))]

    # Mark untracked files intent-to-add so new files show up in the diff
    try:
        run_git(sandbox.root, ["add", "--intent-to-add", "--all"])
    except GitError as e:
        logger.debug(f"view_diff could not mark untracked files: {e}")

    try:
        result = run_git(sandbox.root, ["diff", "HEAD", *path_args])
    except GitError:
        # No HEAD yet: diff the index against the empty tree
        try:
            result = run_git(sandbox.root, ["diff", EMPTY_TREE, *path_args])
        except GitError as e:
            logger.debug(f"view_diff failed: {e}")
            return ToolResult.ok(diff="No changes detected")
    return ToolResult.ok(diff=result.stdout.strip() or "No changes detected")
