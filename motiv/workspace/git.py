"""
Git workspace management.

A workspace is a local clone of a project repository under
``<home>/workspaces/<project>``. Motiv owns all git operations on it; the
agent only edits files.
"""

import json
import logging
from pathlib import Path
from typing import Optional, Union

from ..errors import GitError
from ..models import APP_NAME, APP_NAME_LOWER
from .shell import CommandResult, run_process, run_shell

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = f".{APP_NAME_LOWER}.json"

# Local-only ignore rules written to .git/info/exclude so they never
# appear in the repository's tracked .gitignore
WORKSPACE_EXCLUDES = f"""# {APP_NAME} workspace excludes -- common build artifacts and dependencies

# JavaScript / Node
node_modules/
.npm
dist/
build/
.next/
.nuxt/
.output/
.cache/

# Python
__pycache__/
*.pyc
*.pyo
.venv/
venv/
env/
*.egg-info/
.eggs/
.mypy_cache/
.pytest_cache/
.ruff_cache/

# Java / JVM
target/
.gradle/
*.class

# Go / PHP
vendor/

# .NET / C#
bin/
obj/
packages/

# Ruby
.bundle/

# IDE and editor files
.idea/
.vscode/
*.swp
*.swo
*~

# OS files
.DS_Store
Thumbs.db

# Environment and secrets
.env
.env.local
.env.*.local

# Misc
coverage/
tmp/
temp/
*.log
"""


def run_git(cwd: Union[str, Path], args: list[str]) -> CommandResult:
    """
    Run a git command in ``cwd``.

    Args:
        cwd: Working directory
        args: Arguments after ``git``

    Returns:
        CommandResult of the successful command

    Raises:
        GitError: If git exits with a non-zero status
    """
    result = run_process(cwd, ["git", *args])
    if result.exit_code != 0:
        raise GitError(args, result.exit_code, result.stdout, result.stderr)
    return result


class GitWorkspace:
    """A project checkout that Motiv clones, branches, commits and pushes."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"GitWorkspace({str(self.path)!r})"

    def git(self, *args: str) -> CommandResult:
        return run_git(self.path, list(args))

    def exists(self) -> bool:
        """Whether the workspace has been cloned."""
        if not (self.path / ".git").exists():
            return False
        try:
            self.git("rev-parse", "--git-dir")
        except GitError:
            return False
        return True

    def clone(self, repo_url: str) -> None:
        """Clone the repository and configure a local identity and excludes."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Cloning {repo_url} into {self.path}")
        run_git(self.path.parent, ["clone", "-q", repo_url, str(self.path)])
        self.git("config", "user.name", APP_NAME)
        self.git("config", "user.email", f"{APP_NAME_LOWER}@local")
        self._write_excludes()

    def _write_excludes(self) -> None:
        exclude_path = self.path / ".git" / "info" / "exclude"
        exclude_path.parent.mkdir(parents=True, exist_ok=True)
        exclude_path.write_text(WORKSPACE_EXCLUDES)

    def fetch(self) -> None:
        logger.info("Fetching latest changes")
        self.git("fetch", "--all", "-q")

    def reset_to_default(self, default_branch: str = "main") -> None:
        """Discard leftovers, check out the default branch and fast-forward it."""
        self.git("reset", "-q", "--hard")
        self.git("clean", "-fdq")
        self.git("checkout", "-q", default_branch)
        self.git("pull", "--ff-only", "-q")

    def ensure(self, repo_url: str, default_branch: str = "main") -> None:
        """Clone if needed, otherwise fetch; then sit on an up-to-date default branch."""
        if not self.exists():
            self.clone(repo_url)
        else:
            self.fetch()
        self.reset_to_default(default_branch)

    def ensure_for_amend(self, repo_url: str, branch: str) -> None:
        """
        Prepare the workspace to continue work on an existing request branch.

        Uses the local branch when present, otherwise recreates it from the
        pushed remote branch.
        """
        if not self.exists():
            self.clone(repo_url)
        else:
            self.fetch()

        if self.has_branch(branch):
            self.git("checkout", "-q", branch)
            self.git("reset", "-q", "--hard", "HEAD")
        else:
            self.git("checkout", "-q", "-b", branch, "--track", f"origin/{branch}")

    def has_branch(self, branch: str) -> bool:
        try:
            self.git("rev-parse", "--verify", "--quiet", f"refs/heads/{branch}")
        except GitError:
            return False
        return True

    def current_branch(self) -> str:
        return self.git("rev-parse", "--abbrev-ref", "HEAD").stdout.strip()

    def checkout_branch(self, branch: str, create: bool = False) -> None:
        """
        Switch to a branch.

        With ``create``, an existing branch of the same name is reused and
        hard-reset to discard uncommitted changes.
        """
        if create and not self.has_branch(branch):
            self.git("checkout", "-q", "-b", branch)
            return
        self.git("checkout", "-q", branch)
        if create:
            self.git("reset", "-q", "--hard", "HEAD")

    def delete_branch(self, branch: str) -> bool:
        """Delete a local branch. Returns False when it did not exist."""
        if not self.has_branch(branch):
            return False
        if self.current_branch() == branch:
            raise GitError(
                ["branch", "-D", branch], 1, stderr=f"cannot delete checked-out branch {branch}"
            )
        self.git("branch", "-D", branch)
        logger.info(f"Deleted branch {branch}")
        return True

    def commit_all(self, message: str) -> bool:
        """
        Stage everything and commit.

        Returns:
            False when there was nothing to commit
        """
        self.git("add", "-A")
        status = self.git("status", "--porcelain")
        if not status.stdout.strip():
            return False
        self.git("commit", "-q", "-m", message)
        return True

    def push_branch(self, branch: str, force: bool = False) -> None:
        args = ["push", "-u"]
        if force:
            args.append("--force")
        args.extend(["origin", branch])
        self.git(*args)

    def current_commit(self) -> str:
        """Short hash of HEAD."""
        return self.git("rev-parse", "--short", "HEAD").stdout.strip()

    def run_command(self, command: str, timeout: Optional[float] = None) -> CommandResult:
        """Run a shell command in the workspace without raising."""
        return run_shell(self.path, command, timeout=timeout)

    def read_manifest(self) -> dict:
        """Parsed project manifest, or an empty dict when absent or invalid."""
        manifest_path = self.path / MANIFEST_FILENAME
        if not manifest_path.is_file():
            return {}
        try:
            data = json.loads(manifest_path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable {MANIFEST_FILENAME}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def test_command(self) -> Optional[str]:
        """The manifest's ``tech_stack.test_command``, if any."""
        tech_stack = self.read_manifest().get("tech_stack") or {}
        if not isinstance(tech_stack, dict):
            return None
        command = tech_stack.get("test_command")
        return command if isinstance(command, str) and command.strip() else None
