"""Health check endpoints."""

from fastapi import APIRouter, Request

from ... import __version__
from ..schemas import HealthResponse

router = APIRouter()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check if the API server is running and the ledger is readable.",
)
def health_check(request: Request) -> HealthResponse:
    """Return health status of the API server."""
    initialized = request.app.state.ledger.is_initialized()
    return HealthResponse(
        status="healthy" if initialized else "unhealthy",
        version=__version__,
        ledger_initialized=initialized,
    )
