"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.survey.config import settings
from src.survey.features.admin.handlers import router as admin_router
from src.survey.features.config.handlers import router as config_router
from src.survey.features.setup.handlers import router as setup_router
from src.survey.services.configuration import NotConfiguredError, TransientBackendError
from src.survey.services.database import BackendContext
from src.survey.services.rate_limiter import limiter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle (startup and shutdown)."""
    backend: BackendContext = app.state.backend

    # Startup
    backend.reader.log_status()
    diagnostics = backend.reader.diagnostics()
    for warning in diagnostics.warnings:
        logger.warning(f"Environment configuration: {warning}")

    config = await backend.resolve()
    if config.is_configured:
        logger.info(
            "Backend configuration resolved",
            extra={"source": config.source.value, "table_name": config.table_name},
        )
    else:
        logger.warning("Backend not configured, setup needed")

    yield

    # Shutdown
    backend.invalidate()


async def not_configured_handler(request: Request, exc: NotConfiguredError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "setup_needed", "detail": "Backend is not configured."},
    )


async def backend_unavailable_handler(request: Request, exc: TransientBackendError) -> JSONResponse:
    logger.error(f"Backend unavailable: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "unavailable", "detail": "Backend is temporarily unavailable."},
    )


class HealthCheckResponse(BaseModel):
    """Health check response."""

    status: str


def create_app(backend: BackendContext | None = None) -> FastAPI:
    """
    Build the application.

    Args:
        backend: Backend context to use (a file-backed one from settings if None)

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Product Community Survey API",
        description="Survey API backed by a hosted Supabase project",
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.backend = backend or BackendContext(settings)
    app.state.limiter = limiter

    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(NotConfiguredError, not_configured_handler)
    app.add_exception_handler(TransientBackendError, backend_unavailable_handler)

    origins = settings.cors_origins.split(",")
    logger.info(f"Origins : {origins}")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.include_router(config_router, prefix=settings.api_v1_prefix)
    app.include_router(setup_router, prefix=settings.api_v1_prefix)
    app.include_router(admin_router, prefix=settings.api_v1_prefix)

    @app.get("/health", response_model=HealthCheckResponse)
    async def health_check() -> HealthCheckResponse:
        """Health check endpoint."""
        return HealthCheckResponse(status="healthy")

    return app


app = create_app()
