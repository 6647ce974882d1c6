"""
Exception hierarchy for Motiv.

Tool-level problems are never raised; they travel back to the model as
error results (see ``motiv.tools.results``). Everything here signals either
a misuse of the API or an environment failure the caller must handle.
"""

from typing import Optional


class MotivError(Exception):
    """Base class for all Motiv errors."""


class InvalidTransitionError(MotivError, ValueError):
    """A request status change that the transition table does not allow."""

    def __init__(self, source: str, target: str, request_id: Optional[str] = None):
        self.source = source
        self.target = target
        self.request_id = request_id
        suffix = f" for {request_id}" if request_id else ""
        super().__init__(f"Invalid transition: {source} -> {target}{suffix}")


class IneligibleRequestError(MotivError, ValueError):
    """Amend or retry attempted on a request whose status does not permit it."""


class RequestNotFoundError(MotivError, LookupError):
    """No request with the given identifier exists in the ledger."""

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Request {request_id} not found")


class ProjectNotFoundError(MotivError, LookupError):
    """No project with the given name is registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f'Project "{name}" not found')


class ProjectExistsError(MotivError, ValueError):
    """A project with the given name is already registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f'Project "{name}" already exists')


class LedgerError(MotivError):
    """Base class for ledger storage failures."""


class LedgerNotInitializedError(LedgerError):
    """The ledger directory has not been initialized yet."""


class LedgerCorruptionError(LedgerError):
    """A ledger document or the ledger commit history failed validation."""


class CredentialError(MotivError):
    """A required credential is not configured."""


class ProviderError(MotivError):
    """The model backend returned an unusable response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class GitError(MotivError):
    """A git command exited with a non-zero status."""

    def __init__(self, args: list[str], exit_code: int, stdout: str = "", stderr: str = ""):
        self.git_args = list(args)
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(
            f"git {' '.join(args)} failed (exit {exit_code}): {stderr.strip()}"
        )


class HostingError(MotivError):
    """The pull-request hosting API rejected a call."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
