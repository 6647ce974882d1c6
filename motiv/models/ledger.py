"""
Ledger document schemas.

Every JSON document in the ledger (projects, requests, log entries) is
parsed through one of these models, so a malformed or partially written
file is detected at load time instead of propagating bad state.
"""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

SCHEMA_VERSION = 1

REQUEST_ID_PREFIX = "REQ-"
REQUEST_ID_PATTERN = re.compile(r"^REQ-(\d+)$")
PROJECT_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def format_request_id(number: int) -> str:
    return f"{REQUEST_ID_PREFIX}{number:04d}"


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class RequestStatus(str, Enum):
    """Lifecycle states of a request."""

    INGESTED = "ingested"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    RETRYING = "retrying"
    NEEDS_HUMAN = "needs_human"
    APPLIED = "applied"


class AttemptStatus(str, Enum):
    """Terminal outcome of one agent execution."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Autonomy(str, Enum):
    """How far the pipeline proceeds without a human."""

    INGEST_ONLY = "ingest_only"
    EXECUTE_LOCAL = "execute_local"
    DRAFT_PR = "draft_pr"
    FULL = "full"

    @classmethod
    def parse(cls, value: "str | Autonomy") -> "Autonomy":
        """Parse an autonomy level, raising ValueError with the allowed values."""
        if isinstance(value, Autonomy):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(level.value for level in cls)
            raise ValueError(
                f'Invalid autonomy level "{value}". Must be one of: {allowed}'
            ) from None


class LedgerEvent(str, Enum):
    """Kinds of per-request log entries."""

    CREATED = "created"
    STATUS_CHANGED = "status_changed"
    ATTEMPT_SUCCEEDED = "attempt_succeeded"
    ATTEMPT_FAILED = "attempt_failed"
    AMENDED = "amended"
    APPLIED = "applied"


class Project(BaseModel):
    """A registered target repository."""

    name: str = Field(..., min_length=1)
    repo: str = Field(..., min_length=1)
    default_branch: str = "main"
    autonomy: Autonomy = Autonomy.DRAFT_PR

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        # Names become file and directory names in the ledger and workspaces
        if not PROJECT_NAME_PATTERN.match(v):
            raise ValueError(
                f"Invalid project name {v!r}: use letters, digits, '.', '_' or '-'"
            )
        return v


class Origin(BaseModel):
    """Where a request came from."""

    source: str = "cli"
    timestamp: datetime


class Spec(BaseModel):
    """One immutable revision of the intended work."""

    model_config = ConfigDict(frozen=True)

    version: int = Field(..., ge=1)
    timestamp: datetime
    description: str


class Attempt(BaseModel):
    """One execution of the agent loop against a spec revision."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=1)
    spec_version: int = Field(..., ge=1)
    timestamp: datetime
    status: AttemptStatus
    commit: Optional[str] = None
    reason: Optional[str] = None
    summary: Optional[str] = None


class Request(BaseModel):
    """A unit of work and its full history."""

    schema_version: int = SCHEMA_VERSION
    id: str
    description: str
    project: str
    branch: str
    origin: Origin
    spec: list[Spec] = Field(..., min_length=1)
    attempts: list[Attempt] = Field(default_factory=list)
    status: RequestStatus = RequestStatus.INGESTED
    created_at: datetime
    updated_at: datetime
    pr_url: Optional[str] = None

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        if not REQUEST_ID_PATTERN.match(v):
            raise ValueError(f"Malformed request id: {v!r}")
        return v

    @model_validator(mode="after")
    def validate_sequences(self) -> "Request":
        """Spec versions and attempt ids must be contiguous from 1."""
        versions = [s.version for s in self.spec]
        if versions != list(range(1, len(versions) + 1)):
            raise ValueError(f"Spec versions are not contiguous: {versions}")
        ids = [a.id for a in self.attempts]
        if ids != list(range(1, len(ids) + 1)):
            raise ValueError(f"Attempt ids are not contiguous: {ids}")
        for attempt in self.attempts:
            if attempt.spec_version > len(self.spec):
                raise ValueError(
                    f"Attempt {attempt.id} targets unknown spec v{attempt.spec_version}"
                )
        return self

    @property
    def current_spec(self) -> Spec:
        return self.spec[-1]

    @property
    def is_amendment(self) -> bool:
        return len(self.spec) > 1

    @property
    def failed_attempt_count(self) -> int:
        return sum(1 for a in self.attempts if a.status == AttemptStatus.FAILED)

    @property
    def numeric_id(self) -> int:
        match = REQUEST_ID_PATTERN.match(self.id)
        return int(match.group(1)) if match else 0


class LogEntry(BaseModel):
    """A timestamped, write-once event in a request's log."""

    model_config = ConfigDict(populate_by_name=True)

    timestamp: datetime
    event: LedgerEvent
    message: str
    from_status: Optional[RequestStatus] = Field(default=None, alias="from")
    to_status: Optional[RequestStatus] = Field(default=None, alias="to")
    attempt_id: Optional[int] = None


def to_document(model: BaseModel) -> dict:
    """Serialize a ledger model into its on-disk JSON shape."""
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)
