"""FastAPI application for the audiopass daemon."""

import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from audiopass import __version__
from audiopass.api import routes
from audiopass.api.middleware import RequestLoggingMiddleware
from audiopass.config import Config
from audiopass.core.pipeline import ProcessingPipeline
from audiopass.utils.logger import get_logger

logger = get_logger(__name__)


class AppState:
    """Application state container."""

    def __init__(self, config: Config, pipeline: Optional[ProcessingPipeline] = None):
        self.config = config
        self.start_time = time.time()
        self.pipeline = pipeline or ProcessingPipeline(config)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting audiopass daemon", version=__version__)

    yield

    logger.info("Shutting down audiopass daemon")


def create_app(config: Config, pipeline: Optional[ProcessingPipeline] = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        config: Application configuration
        pipeline: Processing pipeline (built from config when omitted)

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="audiopass",
        description="Audio track recode, downmix and reordering service",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware)

    app.state.audiopass = AppState(config, pipeline)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors with detailed logging."""
        logger.error(
            "Request payload validation failed",
            path=request.url.path,
            method=request.method,
            errors=exc.errors(),
        )

        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "status": "error",
                "message": "Invalid request payload",
                "errors": exc.errors(),
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Catch all unhandled exceptions."""
        logger.error(
            "Unhandled exception in request handler",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            error_type=type(exc).__name__,
            exc_info=True,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "status": "error",
                "message": "Internal server error",
            },
        )

    app.include_router(routes.router)

    logger.info(
        "FastAPI application created",
        version=__version__,
        api_port=config.api.port,
        dry_run=config.execution.dry_run,
    )

    return app
