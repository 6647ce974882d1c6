"""
Subprocess helpers for workspace commands.
"""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = 124


@dataclass(frozen=True)
class CommandResult:
    """Captured output of a finished process."""
    stdout: str
    stderr: str
    exit_code: int
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


def _decode(output: Union[str, bytes, None]) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output


def run_process(
    cwd: Union[str, Path],
    argv: list[str],
    timeout: Optional[float] = None,
) -> CommandResult:
    """
    Run an argument vector in ``cwd`` and capture its output.

    Never raises for a non-zero exit or a timeout; a missing executable
    raises FileNotFoundError.
    """
    try:
        proc = subprocess.run(
            argv,
            cwd=str(cwd),
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
            stdin=subprocess.DEVNULL,
        )
    except subprocess.TimeoutExpired as e:
        logger.warning(f"Command timed out after {timeout}s: {' '.join(argv)[:200]}")
        stderr = _decode(e.stderr)
        stderr += f"\nCommand timed out after {timeout} seconds"
        return CommandResult(
            stdout=_decode(e.stdout),
            stderr=stderr.lstrip("\n"),
            exit_code=TIMEOUT_EXIT_CODE,
            timed_out=True,
        )
    return CommandResult(stdout=proc.stdout, stderr=proc.stderr, exit_code=proc.returncode)


def run_shell(
    cwd: Union[str, Path],
    command: str,
    timeout: Optional[float] = None,
) -> CommandResult:
    """
    Run a shell command line in ``cwd``.

    Args:
        cwd: Working directory
        command: Command line passed to ``sh -c``
        timeout: Seconds before the process is killed

    Returns:
        CommandResult; never raises for command failures
    """
    logger.debug(f"Running in {cwd}: {command[:200]}")
    return run_process(cwd, ["sh", "-c", command], timeout=timeout)
