"""FastAPI application for the SOP search and context API."""

import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .... import __version__
from ....common.exception_handler import (
    format_exception_json,
    get_http_status_code,
    log_exception,
)
from ....config import settings, setup_logging
from ....core.domain.exceptions import SopDeskError
from .routers import health, search, webhooks

setup_logging(level=settings.log_level, json_format=settings.log_json)
logger = logging.getLogger(__name__)

# Determine if we're in debug mode (shows full stack traces)
DEBUG_MODE = os.getenv("DEBUG", "false").lower() == "true"

# Create FastAPI app
app = FastAPI(
    title="SOP Desk API",
    description=(
        "Finds the standard operating procedures relevant to a customer issue "
        "and assembles fresh, confidence-scored context for answer generation."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Configure CORS for the agent dashboard
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",  # Local dev
        "http://localhost:5173",  # Vite dev server
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router)
app.include_router(search.router)
app.include_router(webhooks.router)


# =============================================================================
# Global Exception Handlers
# =============================================================================


@app.exception_handler(SopDeskError)
async def sopdesk_error_handler(request: Request, exc: SopDeskError) -> JSONResponse:
    """Handle all SopDeskError exceptions with structured JSON response.

    Args:
        request: The incoming request.
        exc: The SopDeskError exception.

    Returns:
        JSONResponse with structured error details.
    """
    log_exception(exc, extra_context={"path": str(request.url.path), "method": request.method})

    return JSONResponse(
        status_code=get_http_status_code(exc),
        content=exc.to_dict(include_trace=DEBUG_MODE),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all unhandled exceptions with structured JSON response.

    Args:
        request: The incoming request.
        exc: The unhandled exception.

    Returns:
        JSONResponse with structured error details.
    """
    log_exception(exc, extra_context={"path": str(request.url.path), "method": request.method})

    error_data = format_exception_json(exc, include_trace=DEBUG_MODE)

    return JSONResponse(
        status_code=get_http_status_code(exc),
        content=error_data,
    )


# Export for uvicorn
__all__ = ["app"]
