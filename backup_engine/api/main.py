"""
FastAPI application with assembled routers.

Initializes the FastAPI app with the job and health routers and maps domain
errors to HTTP responses.

Dependencies: fastapi, backup_engine.api.routers, uvicorn
System role: API entry point with router assembly and server launch
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backup_engine.core.exceptions import ValidationError
from backup_engine.models.common import ErrorResponse
from backup_engine.observability.logger import configure_logging

from .routers import health_router, jobs_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Handles startup and shutdown events.
    """
    logger = logging.getLogger("uvicorn")
    logger.info("Backup engine API starting")
    yield
    logger.info("Backup engine API stopped")


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Public validation errors become 400 responses with their message."""
    body = ErrorResponse(error=exc.message, details=exc.details or None)
    return JSONResponse(status_code=400, content=body.model_dump())


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application with routers.

    Returns:
        FastAPI: Configured application instance with all routers registered
    """
    app = FastAPI(
        title="Backup Engine API",
        description="Polling and cancellation for archive and snapshot backup jobs",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ValidationError, validation_error_handler)

    # Register all routers with /api/v1 prefix for versioning
    app.include_router(health_router, prefix="/api/v1")
    app.include_router(jobs_router, prefix="/api/v1")

    return app


app = create_app()


if __name__ == "__main__":
    load_dotenv()
    configure_logging()
    uvicorn.run(
        "backup_engine.api.main:app",
        host="0.0.0.0",
        port=8000,
    )
