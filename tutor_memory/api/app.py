# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI Application Factory.

This module provides the application factory for the tutor memory API.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from tutor_memory import __version__
from tutor_memory.api.dependencies import (
    close_db,
    close_services,
    ensure_vector_collection,
    init_db,
    init_services,
)
from tutor_memory.api.middleware import CrossAppAuthMiddleware
from tutor_memory.api.routes import health
from tutor_memory.api.v1 import router as v1_router
from tutor_memory.core.config import get_settings
from tutor_memory.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    MemorySystemError,
    UpstreamUnavailableError,
    ValidationError,
)
from tutor_memory.utils.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Initializes and cleans up:
    - Database pool and schema
    - Qdrant client and memory collection
    - Memory service graph and peer client

    Args:
        app: The FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings = get_settings()
    setup_logging(settings)
    logger.info(
        "Starting tutor memory API (environment=%s, debug=%s)",
        settings.environment,
        settings.debug,
    )

    # =========================================================================
    # Startup
    # =========================================================================

    try:
        await init_db(settings)
        logger.info("Database connections initialized")
    except Exception as e:
        logger.warning("Failed to initialize database connections: %s", str(e))

    try:
        await ensure_vector_collection(settings)
        logger.info("Vector collection ready")
    except Exception as e:
        logger.warning("Failed to prepare vector collection: %s", str(e))

    try:
        init_services(settings)
    except Exception as e:
        logger.warning("Failed to initialize memory services: %s", str(e))

    yield

    # =========================================================================
    # Shutdown
    # =========================================================================

    try:
        await close_services()
        logger.info("Memory services stopped")
    except Exception as e:
        logger.warning("Error stopping memory services: %s", str(e))

    try:
        await close_db()
        logger.info("Database connections closed")
    except Exception as e:
        logger.warning("Error closing database connections: %s", str(e))

    logger.info("Shutting down tutor memory API")


def _error_body(message: str) -> dict[str, object]:
    return {"error": message, "success": False}


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Render HTTPException with the shared error body."""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail)),
        headers=exc.headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render body and query validation failures as 400."""
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=400, content=_error_body(message))


async def memory_error_handler(request: Request, exc: MemorySystemError) -> JSONResponse:
    """Map subsystem errors to status codes.

    - ValidationError: 400
    - AuthenticationError: 401
    - UpstreamUnavailableError: 503
    - ConfigurationError and anything else: 500
    """
    if isinstance(exc, ValidationError):
        return JSONResponse(status_code=400, content=_error_body(exc.message))
    if isinstance(exc, AuthenticationError):
        return JSONResponse(status_code=401, content=_error_body("Unauthorized"))
    if isinstance(exc, UpstreamUnavailableError):
        logger.error("Upstream failure on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=503, content=_error_body("Service temporarily unavailable"))
    if isinstance(exc, ConfigurationError):
        logger.error("Configuration error on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content=_error_body("Server configuration error"))

    logger.error("Unhandled memory error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content=_error_body("Internal server error"))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render any other failure as a structured 500."""
    logger.exception("Unhandled error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content=_error_body("Internal server error"))


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Tutor Memory API",
        description="Adaptive long-term memory for a tutoring agent",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
        redirect_slashes=False,
    )

    # =========================================================================
    # Exception handlers
    # =========================================================================
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(MemorySystemError, memory_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # =========================================================================
    # Middleware
    # =========================================================================
    app.add_middleware(CrossAppAuthMiddleware)

    # =========================================================================
    # Routes
    # =========================================================================
    app.include_router(health.router, tags=["Health"])
    app.include_router(v1_router)

    return app
