"""
Read-only ledger endpoints.

Lists projects and requests and returns a request's full document and
its log. Nothing here writes to the ledger.
"""

import logging

from fastapi import APIRouter, Depends, Request

from ...ledger import LedgerStore
from ...models import Request as LedgerRequest
from ...pipeline import dashboard_order
from ..schemas import (
    ErrorResponse,
    ProjectListResponse,
    RequestListResponse,
    RequestLogsResponse,
    RequestSummary,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_ledger(request: Request) -> LedgerStore:
    """The ledger attached to the application at startup."""
    ledger: LedgerStore = request.app.state.ledger
    ledger.require_initialized()
    return ledger


@router.get(
    "/v1/projects",
    response_model=ProjectListResponse,
    summary="List projects",
    description="List all registered projects.",
)
def list_projects(ledger: LedgerStore = Depends(get_ledger)) -> ProjectListResponse:
    return ProjectListResponse(projects=ledger.list_projects())


@router.get(
    "/v1/requests",
    response_model=RequestListResponse,
    summary="List requests",
    description="Dashboard of all requests, active work first.",
)
def list_requests(ledger: LedgerStore = Depends(get_ledger)) -> RequestListResponse:
    rows = [RequestSummary.from_request(r) for r in dashboard_order(ledger.list_requests())]
    return RequestListResponse(requests=rows)


@router.get(
    "/v1/requests/{request_id}",
    response_model=LedgerRequest,
    responses={404: {"model": ErrorResponse}},
    summary="Get request",
    description="Full request document with spec history and attempts.",
)
def get_request(request_id: str, ledger: LedgerStore = Depends(get_ledger)) -> LedgerRequest:
    return ledger.get_request(request_id)


@router.get(
    "/v1/requests/{request_id}/logs",
    response_model=RequestLogsResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get request logs",
    description="Chronological log entries for a request.",
)
def get_request_logs(
    request_id: str, ledger: LedgerStore = Depends(get_ledger)
) -> RequestLogsResponse:
    ledger.get_request(request_id)
    return RequestLogsResponse(request_id=request_id, logs=ledger.read_logs(request_id))
