"""Case Timelines: FastAPI application entry point."""

import uuid
from contextlib import asynccontextmanager

# configure_structlog must run before other app imports bind their loggers
from app.core.logging import configure_structlog
from app.core.config import get_settings as _get_settings_early

_early_settings = _get_settings_early()
configure_structlog(
    log_level="DEBUG" if _early_settings.debug else "INFO",
    json_logs=not _early_settings.debug,
)

import structlog

from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import api_router
from app.core.config import Settings, get_settings
from app.core.exceptions import (
    DraftNotFoundError,
    EntryNotFoundError,
    InvalidTransitionError,
    WizardBusyError,
    WizardError,
)
from app.core.resources import ResourcesFactory, build_resources
from app.middleware.correlation import (
    setup_correlation_middleware,
    get_correlation_id,
)
from app.web.routes import router as web_router

logger = structlog.get_logger(__name__)


def make_lifespan(settings: Settings, resources_factory: ResourcesFactory):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Connect resources on startup, disconnect on shutdown."""
        logger.info("startup_begin", app_name=settings.app_name, debug=settings.debug)

        resources = resources_factory(settings)
        await resources.connect()
        app.state.resources = resources
        logger.info("startup_complete")

        yield

        logger.info("shutdown_begin")
        await resources.disconnect()
        logger.info("shutdown_complete")

    return lifespan


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Log HTTPExceptions with a debug_id and return a sanitized body."""
    debug_id = str(uuid.uuid4())

    logger.error(
        "http_exception",
        status_code=exc.status_code,
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
        detail=exc.detail,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "debug_id": debug_id},
    )


async def wizard_exception_handler(request: Request, exc: WizardError) -> JSONResponse:
    """Map wizard errors to 404 (unknown draft or entry) or 409 (action refused)."""
    if isinstance(exc, (DraftNotFoundError, EntryNotFoundError)):
        status_code = 404
    elif isinstance(exc, (InvalidTransitionError, WizardBusyError)):
        status_code = 409
    else:
        status_code = 400

    debug_id = str(uuid.uuid4())
    logger.warning(
        "wizard_error",
        status_code=status_code,
        debug_id=debug_id,
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "debug_id": debug_id},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unhandled errors with traceback, return a generic 500."""
    debug_id = str(uuid.uuid4())

    logger.error(
        "unhandled_exception",
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
    )

    # No internal details leaked
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "debug_id": debug_id},
    )


def create_app(
    settings: Settings | None = None,
    resources_factory: ResourcesFactory = build_resources,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use (defaults to environment settings)
        resources_factory: Builds the database / Redis / storage resources;
            tests pass one wired to in-process fakes
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Case management dashboard: timelines, files and the upload wizard",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=make_lifespan(settings, resources_factory),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Correlation ID middleware (runs first on incoming requests)
    setup_correlation_middleware(app)

    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(WizardError)(wizard_exception_handler)
    app.exception_handler(Exception)(generic_exception_handler)

    app.include_router(api_router, prefix="/api")
    app.include_router(web_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
