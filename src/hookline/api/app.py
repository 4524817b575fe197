"""FastAPI application for Hookline."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from hookline import __version__
from hookline.config import Settings
from hookline.exceptions import (
    HooklineError,
    InvalidTransitionError,
    NotFoundError,
    SecretRotationError,
    ValidationError,
)
from hookline.logging import configure_from_settings, get_logger
from hookline.service import WebhookService

from .router import router, set_service

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifespan.

    Initializes the WebhookService, starts the worker pool and the secret
    sweep on startup, and stops them on shutdown.
    """
    settings: Settings = app.state.settings

    configure_from_settings(settings)
    logger.info(
        "Starting Hookline API", log_level=settings.log_level, log_format=settings.log_format
    )

    service = WebhookService.create(settings)
    await service.initialize()
    await service.start()
    set_service(service)

    yield

    await service.close()
    set_service(None)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create a FastAPI application.

    Args:
        settings: Optional settings. Uses environment if None.

    Returns:
        Configured FastAPI application.

    Example:
        ```python
        from hookline.api import create_app

        app = create_app()
        # Run with: uvicorn hookline.api:app --reload
        ```
    """
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="Hookline",
        description="Signed webhook delivery with retries and secret rotation.",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        """Handle validation errors with 400 status."""
        logger.warning(
            "Validation error", field=exc.field, error=exc.message, path=str(request.url)
        )
        return JSONResponse(status_code=400, content=exc.to_dict())

    @app.exception_handler(NotFoundError)
    async def not_found_error_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        """Handle not found errors with 404 status."""
        logger.info(
            "Resource not found",
            resource_type=exc.resource_type,
            resource_id=exc.resource_id,
            path=str(request.url),
        )
        return JSONResponse(status_code=404, content=exc.to_dict())

    @app.exception_handler(SecretRotationError)
    async def rotation_error_handler(request: Request, exc: SecretRotationError) -> JSONResponse:
        """Handle rotation misuse with 409 status."""
        logger.warning("Secret rotation refused", error=exc.message, path=str(request.url))
        return JSONResponse(status_code=409, content=exc.to_dict())

    @app.exception_handler(InvalidTransitionError)
    async def transition_error_handler(
        request: Request, exc: InvalidTransitionError
    ) -> JSONResponse:
        """Handle illegal delivery state changes with 409 status."""
        logger.warning(
            "Invalid delivery transition",
            current=exc.current,
            target=exc.target,
            path=str(request.url),
        )
        return JSONResponse(status_code=409, content=exc.to_dict())

    @app.exception_handler(HooklineError)
    async def hookline_error_handler(request: Request, exc: HooklineError) -> JSONResponse:
        """Handle all other Hookline errors with 500 status."""
        logger.error("Hookline error", error=exc.message, code=exc.code, path=str(request.url))
        return JSONResponse(status_code=500, content=exc.to_dict())

    app.include_router(router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
