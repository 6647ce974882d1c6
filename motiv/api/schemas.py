"""
Pydantic schemas for the status API.

Ledger documents (projects, requests, log entries) are returned in their
stored shape; these schemas add the list envelopes and the dashboard rows.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from ..models import LogEntry, Project, Request, RequestStatus


class HealthResponse(BaseModel):
    """Response body for /health endpoint."""

    status: Literal["healthy", "unhealthy"]
    version: str
    ledger_initialized: bool


class ProjectListResponse(BaseModel):
    """Response body for /v1/projects."""

    projects: list[Project]


class RequestSummary(BaseModel):
    """One dashboard row."""

    id: str
    status: RequestStatus
    project: str
    description: str = Field(..., description="Latest spec description")
    branch: str
    spec_version: int
    attempts: int
    updated_at: datetime
    pr_url: Optional[str] = None

    @classmethod
    def from_request(cls, request: Request) -> "RequestSummary":
        return cls(
            id=request.id,
            status=request.status,
            project=request.project,
            description=request.current_spec.description,
            branch=request.branch,
            spec_version=request.current_spec.version,
            attempts=len(request.attempts),
            updated_at=request.updated_at,
            pr_url=request.pr_url,
        )


class RequestListResponse(BaseModel):
    """Response body for /v1/requests, in dashboard order."""

    requests: list[RequestSummary]


class RequestLogsResponse(BaseModel):
    """Response body for /v1/requests/{id}/logs."""

    request_id: str
    logs: list[LogEntry]


class ErrorResponse(BaseModel):
    """Error body returned by the exception handlers."""

    detail: str
