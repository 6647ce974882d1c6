"""
Git-backed ledger store.

Layout under the ledger root::

    projects/<name>.json
    requests/<REQ-id>/request.json
    requests/<REQ-id>/log/<timestamp>.json

The directory is its own git repository. Callers write documents and then
call ``commit`` once per logical mutation; a commit with nothing staged is
skipped. Every document is validated against its schema when loaded.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from ..errors import (
    GitError,
    LedgerCorruptionError,
    LedgerNotInitializedError,
    RequestNotFoundError,
)
from ..models import APP_NAME, APP_NAME_LOWER, LogEntry, Project, Request
from ..models.ledger import REQUEST_ID_PATTERN, format_request_id, to_document
from ..workspace import run_git

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

PROJECTS_DIR = "projects"
REQUESTS_DIR = "requests"
LOG_DIR = "log"
REQUEST_FILENAME = "request.json"
KEEP_FILENAME = ".gitkeep"


def log_filename(entry: LogEntry) -> str:
    """File name for a log entry: its ISO timestamp with ':' and '.' replaced."""
    stamp = entry.timestamp.isoformat().replace("+00:00", "Z")
    return stamp.replace(":", "-").replace(".", "-")


class LedgerStore:
    """
    Durable, append-only storage for projects, requests and their logs.

    Mutations must be serialized by the caller.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    @property
    def projects_dir(self) -> Path:
        return self.root / PROJECTS_DIR

    @property
    def requests_dir(self) -> Path:
        return self.root / REQUESTS_DIR

    def request_dir(self, request_id: str) -> Path:
        return self.requests_dir / request_id

    # =========================================================================
    # Repository
    # =========================================================================

    def is_initialized(self) -> bool:
        if not (self.root / ".git").exists():
            return False
        try:
            run_git(self.root, ["rev-parse", "--git-dir"])
        except GitError:
            return False
        return True

    def initialize(self) -> bool:
        """
        Create the directory structure, git repository and initial commit.

        Returns:
            False if the ledger was already initialized
        """
        if self.is_initialized():
            return False

        for directory in (self.projects_dir, self.requests_dir):
            directory.mkdir(parents=True, exist_ok=True)
            keep = directory / KEEP_FILENAME
            if not keep.exists():
                keep.write_text("")

        run_git(self.root, ["init", "-q"])
        run_git(self.root, ["config", "user.name", APP_NAME])
        run_git(self.root, ["config", "user.email", f"{APP_NAME_LOWER}@local"])
        self.commit(f"Initialize {APP_NAME_LOWER} ledger")
        logger.info(f"Initialized ledger at {self.root}")
        return True

    def require_initialized(self) -> None:
        if not self.is_initialized():
            raise LedgerNotInitializedError(
                f"Ledger not initialized at {self.root}. Run `{APP_NAME_LOWER} init` first."
            )

    def commit(self, message: str) -> bool:
        """
        Stage the whole tree and commit.

        Returns:
            False when there was nothing to commit
        """
        run_git(self.root, ["add", "-A"])
        status = run_git(self.root, ["status", "--porcelain"])
        if not status.stdout.strip():
            logger.debug(f"Ledger commit skipped (no changes): {message}")
            return False
        run_git(self.root, ["commit", "-q", "-m", message])
        logger.debug(f"Ledger commit: {message}")
        return True

    def history(self, limit: Optional[int] = None) -> list[str]:
        """Commit subjects, newest first."""
        args = ["log", "--format=%s"]
        if limit is not None:
            args.append(f"-n{limit}")
        return [line for line in run_git(self.root, args).stdout.splitlines() if line]

    def verify(self) -> None:
        """
        Check the commit history and every document.

        Raises:
            LedgerNotInitializedError: If the ledger does not exist
            LedgerCorruptionError: If git reports damage or a document is invalid
        """
        self.require_initialized()
        try:
            run_git(self.root, ["fsck", "--no-progress", "--no-dangling"])
        except GitError as e:
            raise LedgerCorruptionError(
                f"Ledger history at {self.root} is damaged: {e.stderr.strip() or e}"
            ) from e
        self.list_projects()
        for request in self.list_requests():
            self.read_logs(request.id)

    # =========================================================================
    # Documents
    # =========================================================================

    @staticmethod
    def _read_document(path: Path, model: Type[ModelT]) -> ModelT:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return model.model_validate(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise LedgerCorruptionError(f"Malformed JSON in {path}: {e}") from e
        except ValidationError as e:
            raise LedgerCorruptionError(f"Invalid {model.__name__} document {path}: {e}") from e

    @staticmethod
    def _write_document(path: Path, document: BaseModel) -> None:
        """Write atomically so a crash never leaves a partial document."""
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(to_document(document), indent=2, ensure_ascii=False) + "\n"
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    # =========================================================================
    # Projects
    # =========================================================================

    def list_projects(self) -> list[Project]:
        if not self.projects_dir.is_dir():
            return []
        return [
            self._read_document(path, Project)
            for path in sorted(self.projects_dir.glob("*.json"))
            if not path.name.startswith(".")
        ]

    def read_project(self, name: str) -> Optional[Project]:
        path = self.projects_dir / f"{name}.json"
        if not path.is_file():
            return None
        return self._read_document(path, Project)

    def write_project(self, project: Project) -> None:
        self._write_document(self.projects_dir / f"{project.name}.json", project)

    # =========================================================================
    # Requests
    # =========================================================================

    def _request_ids(self) -> list[str]:
        if not self.requests_dir.is_dir():
            return []
        ids = [
            entry.name
            for entry in self.requests_dir.iterdir()
            if entry.is_dir() and REQUEST_ID_PATTERN.match(entry.name)
        ]
        return sorted(ids, key=lambda rid: int(REQUEST_ID_PATTERN.match(rid).group(1)))

    def list_requests(self) -> list[Request]:
        """All requests, in id order."""
        requests = []
        for request_id in self._request_ids():
            request = self.read_request(request_id)
            if request is not None:
                requests.append(request)
        return requests

    def read_request(self, request_id: str) -> Optional[Request]:
        path = self.request_dir(request_id) / REQUEST_FILENAME
        if not path.is_file():
            return None
        request = self._read_document(path, Request)
        if request.id != request_id:
            raise LedgerCorruptionError(
                f"{path} holds request {request.id}, expected {request_id}"
            )
        return request

    def get_request(self, request_id: str) -> Request:
        """
        Raises:
            RequestNotFoundError: If the request does not exist
        """
        request = self.read_request(request_id)
        if request is None:
            raise RequestNotFoundError(request_id)
        return request

    def write_request(self, request: Request) -> None:
        self._write_document(self.request_dir(request.id) / REQUEST_FILENAME, request)

    def next_request_id(self) -> str:
        """Largest existing numeric suffix plus one, ``REQ-0001`` when empty."""
        numbers = [int(REQUEST_ID_PATTERN.match(rid).group(1)) for rid in self._request_ids()]
        return format_request_id(max(numbers, default=0) + 1)

    # =========================================================================
    # Logs
    # =========================================================================

    def write_log(self, request_id: str, entry: LogEntry) -> Path:
        """Write a new log entry; existing entries are never overwritten."""
        log_dir = self.request_dir(request_id) / LOG_DIR
        log_dir.mkdir(parents=True, exist_ok=True)
        base = log_filename(entry)
        path = log_dir / f"{base}.json"
        counter = 1
        while path.exists():
            path = log_dir / f"{base}-{counter}.json"
            counter += 1
        self._write_document(path, entry)
        return path

    def read_logs(self, request_id: str) -> list[LogEntry]:
        """Log entries for a request in chronological order."""
        log_dir = self.request_dir(request_id) / LOG_DIR
        if not log_dir.is_dir():
            return []
        entries = [
            (path.name, self._read_document(path, LogEntry))
            for path in log_dir.glob("*.json")
            if not path.name.startswith(".")
        ]
        entries.sort(key=lambda item: (item[1].timestamp, len(item[0]), item[0]))
        return [entry for _, entry in entries]
