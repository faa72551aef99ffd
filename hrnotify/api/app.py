"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from hrnotify.api.routes import notifications
from hrnotify.core.config import get_settings
from hrnotify.core.exceptions import NotificationNotFoundError, PersistenceError
from hrnotify.core.logging import get_logger, setup_logging
from hrnotify.notification.dispatcher import create_dispatcher
from hrnotify.storage.redis_client import close_redis_pool, get_redis, init_redis_pool

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager.

    The dispatcher runs inside the API process so producers in the same
    process can submit notifications; shutdown drains its queue.
    """
    settings = get_settings()

    # Startup
    setup_logging()
    logger.info("Starting application", app_name=settings.app_name, version=settings.app_version)

    await init_redis_pool()
    logger.info("Redis connection pool initialized")

    dispatcher = create_dispatcher(get_redis(), settings)
    await dispatcher.start(settings.notification_workers)
    app.state.dispatcher = dispatcher

    yield

    # Shutdown
    logger.info("Shutting down application")
    await dispatcher.stop()
    await close_redis_pool()
    logger.info("Redis connection pool closed")


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Asynchronous notification dispatch service",
        lifespan=lifespan,
    )

    app.include_router(notifications.router, prefix="/api/v1")

    # Error response handlers
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        detail = exc.detail
        content = {
            "code": exc.status_code,
            "message": detail if isinstance(detail, str) else "HTTP error",
            "data": None if isinstance(detail, str) else detail,
        }
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={
                "code": 422,
                "message": "Validation error",
                "data": exc.errors(),
            },
        )

    @app.exception_handler(PersistenceError)
    async def persistence_exception_handler(
        request: Request,
        exc: PersistenceError,
    ) -> JSONResponse:
        if isinstance(exc, NotificationNotFoundError):
            return JSONResponse(
                status_code=404,
                content={"code": 404, "message": str(exc), "data": None},
            )
        logger.error("Notification store error", error=str(exc), path=request.url.path)
        return JSONResponse(
            status_code=503,
            content={
                "code": 503,
                "message": "Notification store unavailable",
                "data": str(exc) if settings.debug else None,
            },
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            exc_info=exc,
            path=request.url.path,
            method=request.method,
        )
        return JSONResponse(
            status_code=500,
            content={
                "code": 500,
                "message": "Internal server error",
                "data": str(exc) if settings.debug else None,
            },
        )

    # Health check endpoint
    @app.get("/health")
    async def health_check(request: Request) -> dict:
        """Health check endpoint."""
        dispatcher = getattr(request.app.state, "dispatcher", None)
        return {
            "status": "ok",
            "version": settings.app_version,
            "dispatcher_running": bool(dispatcher and dispatcher.is_running()),
        }

    return app


# Application instance for uvicorn
app = create_app()
