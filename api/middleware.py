"""
Global middleware and exception handlers.
"""

from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from utils.errors import ConfigurationMissing, PersistenceFailed, ServiceError, Unauthenticated

logger = logging.getLogger(__name__)


def register_middleware(app: FastAPI) -> None:
    """Attach any app-level middleware."""

    @app.middleware("http")
    async def request_timer(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"
        logger.debug("%s %s — %.3fs", request.method, request.url.path, elapsed)
        return response


def register_exception_handlers(app: FastAPI) -> None:
    """Map the service error taxonomy onto ``{"error": ...}`` JSON bodies."""

    @app.exception_handler(ConfigurationMissing)
    async def configuration_missing(request: Request, exc: ConfigurationMissing):
        logger.error("%s %s — %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            {"error": "Service configuration error", "missing": exc.missing},
            status_code=exc.status_code,
        )

    @app.exception_handler(Unauthenticated)
    async def unauthenticated(request: Request, exc: Unauthenticated):
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)

    @app.exception_handler(PersistenceFailed)
    async def persistence_failed(request: Request, exc: PersistenceFailed):
        return JSONResponse(
            {"error": exc.message, "details": exc.details},
            status_code=exc.status_code,
        )

    @app.exception_handler(ServiceError)
    async def service_error(request: Request, exc: ServiceError):
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)
