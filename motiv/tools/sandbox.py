"""
Path confinement for workspace tools.

Every path the model supplies is resolved against the workspace root.
Absolute paths, paths escaping the root (directly or through symlinks)
and paths inside the ``.git`` directory are rejected.
"""

import logging
from pathlib import Path, PurePosixPath
from typing import Union

logger = logging.getLogger(__name__)


class SandboxViolation(ValueError):
    """A tool path that falls outside the workspace."""


class Sandbox:
    """Resolves model-supplied relative paths inside one root directory."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()

    def resolve(self, path: str = ".") -> Path:
        """
        Resolve a relative path under the root.

        Args:
            path: Path relative to the workspace root

        Returns:
            Absolute resolved path

        Raises:
            SandboxViolation: If the path is absolute, escapes the root or
                points into the .git directory
        """
        raw = path if path not in (None, "") else "."
        if PurePosixPath(raw).is_absolute() or Path(raw).is_absolute():
            raise SandboxViolation(f"Absolute paths are not allowed: {raw}")

        candidate = (self.root / raw).resolve()
        try:
            relative = candidate.relative_to(self.root)
        except ValueError:
            logger.warning(f"Rejected path outside workspace: {raw}")
            raise SandboxViolation(f"Path escapes the workspace: {raw}") from None

        if relative.parts and relative.parts[0] == ".git":
            raise SandboxViolation(f"Access to .git is not allowed: {raw}")
        return candidate

    def relative(self, path: Path) -> str:
        """Render an absolute path under the root as a relative POSIX path."""
        rel = Path(path).resolve().relative_to(self.root)
        return rel.as_posix() or "."
