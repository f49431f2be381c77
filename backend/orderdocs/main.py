"""
FastAPI application factory and configuration.
"""

import logging
import os
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, UTC
from typing import Optional

from fastapi import FastAPI, Request, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import Counter, Gauge, Histogram
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from . import __version__
from .config.logging import configure_logging
from .config.observability import configure_tracing
from .config.settings import get_settings
from .context import AppContext
from .routers import documents_router, metrics_router, system_router, webhooks_router
from .utils.errors import DomainError, ERROR_CODES, error_payload
from .utils.formatting import use_host_locale

logger = logging.getLogger(__name__)

APP_REQUEST_COUNT = Counter(
    "app_requests_total",
    "Total HTTP requests processed",
    ["method", "path", "status"],
)
APP_REQUEST_LATENCY = Histogram(
    "app_request_duration_seconds",
    "Request latency in seconds",
    ["method", "path", "status"],
)
APP_UPTIME_SECONDS = Gauge(
    "app_uptime_seconds",
    "Application uptime in seconds",
)

APP_START_TIME = datetime.now(UTC)

SLOW_RESPONSE_MS = 1000


class ResponseTimeMiddleware(BaseHTTPMiddleware):
    """Adds X-Response-Time and records request metrics."""

    async def dispatch(self, request: Request, call_next):  # noqa: D401
        start_time = time.time()
        response = await call_next(request)
        duration_s = time.time() - start_time
        response_time_ms = duration_s * 1000
        response.headers["X-Response-Time"] = f"{response_time_ms:.1f}ms"

        # Route template keeps label cardinality bounded (ids stay out of labels)
        route = request.scope.get("route")
        path = getattr(route, "path", request.url.path)
        status = str(response.status_code)
        APP_REQUEST_COUNT.labels(request.method, path, status).inc()
        APP_REQUEST_LATENCY.labels(request.method, path, status).observe(duration_s)
        APP_UPTIME_SECONDS.set((datetime.now(UTC) - APP_START_TIME).total_seconds())

        if response_time_ms > SLOW_RESPONSE_MS:
            logger.info(
                "Slow response: %.1fms for %s %s",
                response_time_ms,
                request.method,
                request.url.path,
            )
        return response


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Generate a per-request ID and echo it in the response headers."""

    async def dispatch(self, request: Request, call_next):  # noqa: D401
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    settings = get_settings()
    configure_logging(settings.debug)
    use_host_locale()
    logger.info("Starting up order document service...")

    owns_context = getattr(app.state, "context", None) is None
    if owns_context:
        if not os.getenv("FAST_TESTS"):
            configure_tracing(environment=settings.app_env)
        app.state.context = AppContext.create(settings)
    context: AppContext = app.state.context

    try:
        await context.database.create_tables()
        context.settings.log_summary()
        logger.info("Application startup complete")
    except Exception as e:  # noqa: BLE001 (startup safety net)
        logger.error("Application startup failed: %s", e)
        raise

    yield

    logger.info("Shutting down order document service...")
    if owns_context:
        await context.aclose()
        app.state.context = None


def create_application(context: Optional[AppContext] = None) -> FastAPI:
    """Create and configure FastAPI application.

    Passing `context` skips service construction in the lifespan (tests).
    """
    application_obj = FastAPI(
        title="Order Document Service",
        description="Receipt and pick-slip generation for purchase orders",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )
    application_obj.state.context = context

    setup_middleware(application_obj)
    setup_exception_handlers(application_obj)
    setup_routes(application_obj)
    return application_obj


def setup_middleware(app: FastAPI) -> None:
    """Setup application middleware."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(ResponseTimeMiddleware)
    app.add_middleware(RequestIDMiddleware)


def setup_exception_handlers(app: FastAPI) -> None:
    """Setup global exception handlers."""

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle validation errors with standardized response."""
        return JSONResponse(
            status_code=422,
            content=error_payload(
                ERROR_CODES["validation"],
                "Request validation failed",
                details=jsonable_encoder(exc.errors(), custom_encoder={Exception: str}),
                path=str(request.url.path),
            ),
        )

    @app.exception_handler(DomainError)
    async def domain_exception_handler(request: Request, exc: DomainError):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_payload(exc.code, exc.message, details=exc.details, path=str(request.url.path)),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions with standardized response."""
        return JSONResponse(
            status_code=exc.status_code,
            content=error_payload(getattr(exc, "code", "HTTP_ERROR"), str(exc.detail),
                                  path=str(request.url.path)),
        )

    @app.exception_handler(StarletteHTTPException)
    async def starlette_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle Starlette HTTP exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content=error_payload("HTTP_ERROR", str(exc.detail), path=str(request.url.path)),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.error("Unhandled exception: %s", exc, exc_info=True)
        return JSONResponse(
            status_code=500,
            content=error_payload(ERROR_CODES["internal"], "An unexpected error occurred",
                                  path=str(request.url.path)),
        )


def setup_routes(app: FastAPI) -> None:
    """Setup application routes."""

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "status": "success",
            "data": {
                "message": "Order Document Service",
                "version": __version__,
                "docs": "/docs",
                "health": "/health",
            },
            "timestamp": time.time(),
        }

    app.include_router(system_router)
    app.include_router(documents_router, prefix="/api/documents", tags=["Documents"])
    app.include_router(webhooks_router, prefix="/api/webhooks", tags=["Webhooks"])
    app.include_router(metrics_router)


app = create_application()


__all__ = ["app", "create_application", "lifespan"]
