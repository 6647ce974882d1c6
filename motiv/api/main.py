"""
FastAPI application for Motiv.

Read-only HTTP view of the ledger: projects, the request dashboard, request
details and request logs.

Usage:
    # Through the CLI
    motiv serve

    # Development server with auto-reload
    uvicorn motiv.api.main:create_app --factory --reload --port 8000
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config_loader import load_app_config
from ..errors import (
    LedgerCorruptionError,
    LedgerNotInitializedError,
    ProjectNotFoundError,
    RequestNotFoundError,
)
from ..ledger import LedgerStore
from ..models import APP_NAME, AppConfig
from .routes import health, requests

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown events."""
    ledger: LedgerStore = app.state.ledger
    logger.info(f"Starting {APP_NAME} status API")
    logger.info("=" * 60)
    logger.info(f"  Ledger: {ledger.root}")
    logger.info(f"  Initialized: {'YES' if ledger.is_initialized() else 'NO'}")
    logger.info("=" * 60)

    yield

    logger.info(f"Shutting down {APP_NAME} status API")


def create_app(
    config: Optional[AppConfig] = None,
    ledger: Optional[LedgerStore] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Application configuration (loaded from disk when omitted)
        ledger: Ledger to serve (defaults to the configured ledger path)

    Returns:
        Configured FastAPI application instance.
    """
    if ledger is None:
        config = config or load_app_config()
        ledger = LedgerStore(config.paths.ledger)

    app = FastAPI(
        title=f"{APP_NAME} API",
        description="Read-only view of the Motiv request ledger.",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.ledger = ledger

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(requests.router, tags=["Requests"])

    @app.exception_handler(RequestNotFoundError)
    @app.exception_handler(ProjectNotFoundError)
    async def not_found_handler(request: Request, exc: LookupError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(LedgerNotInitializedError)
    async def not_initialized_handler(
        request: Request, exc: LedgerNotInitializedError
    ) -> JSONResponse:
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.exception_handler(LedgerCorruptionError)
    async def corruption_handler(request: Request, exc: LedgerCorruptionError) -> JSONResponse:
        logger.error(f"Ledger corruption on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    return app


def run_server(config: AppConfig) -> None:
    """
    Run the server using uvicorn.

    This is the entry point used by ``motiv serve``.
    """
    import uvicorn

    uvicorn.run(
        create_app(config),
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level.lower(),
    )
