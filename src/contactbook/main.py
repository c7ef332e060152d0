"""
FastAPI application entry point.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import contactbook.contacts.models  # noqa: F401
from contactbook import __version__
from contactbook.config import Settings, get_settings
from contactbook.contacts.router import router as contacts_router
from contactbook.contacts.seed import seed_contacts
from contactbook.shared.database import Database
from contactbook.shared.exceptions import (
    FileFormatError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from contactbook.shared.logging import get_logger, setup_logging
from contactbook.shared.middleware import CorrelationIdMiddleware

logger = get_logger(__name__)

SERVICE_NAME = "Contact Management API"
VERSION = __version__


def _error(status_code: int, error: str, message: str | None = None, **extra: Any) -> JSONResponse:
    content: dict[str, Any] = {"success": False, "error": error}
    if message is not None:
        content["message"] = message
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    setup_logging()
    settings: Settings = app.state.settings
    database: Database = app.state.database

    logger.info("Application starting", extra={"app": settings.app_name, "env": settings.app_env})

    await database.create_schema()
    if settings.seed_data:
        await seed_contacts(database)

    yield

    logger.info("Shutting down application")
    await database.close()
    logger.info("Application shutdown complete")


def create_app(
    settings: Settings | None = None,
    database: Database | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings override.
        database: Optional database override; opened lazily and closed on
            shutdown.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=SERVICE_NAME,
        description="Contact book with search, bookmarks and bulk import",
        version=VERSION,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    app.state.settings = settings
    app.state.database = database or Database(
        settings.database_url,
        busy_timeout=settings.database_busy_timeout,
        echo=settings.debug,
    )

    def _detail(exc: Exception) -> str | None:
        return None if settings.is_production else str(exc)

    # Map domain exceptions to HTTP responses
    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        logger.warning("Not found", extra={"path": request.url.path, "error": str(exc)})
        return _error(status.HTTP_404_NOT_FOUND, "Contact not found", str(exc))

    @app.exception_handler(ValidationError)
    async def _validation(request: Request, exc: ValidationError) -> JSONResponse:
        logger.warning("Validation failed", extra={"path": request.url.path, "error": str(exc)})
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(FileFormatError)
    async def _file_format(request: Request, exc: FileFormatError) -> JSONResponse:
        logger.warning("Invalid spreadsheet", extra={"path": request.url.path, "error": str(exc)})
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid spreadsheet", str(exc))

    @app.exception_handler(StoreError)
    async def _store(request: Request, exc: StoreError) -> JSONResponse:
        logger.error(
            "Store error",
            extra={"path": request.url.path, "method": request.method, "error": str(exc)},
        )
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Database error", _detail(exc))

    # Request validation (FastAPI/Pydantic) -> consistent 422 payload
    @app.exception_handler(RequestValidationError)
    async def _request_validation(_: Request, exc: RequestValidationError) -> JSONResponse:
        errors = []
        for error in exc.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            errors.append({"field": field, "message": error["msg"], "type": error["type"]})
        return _error(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "Request validation failed",
            errors[0]["message"] if errors else None,
            errors=errors,
        )

    @app.exception_handler(StarletteHTTPException)
    async def _http(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return _error(
                status.HTTP_404_NOT_FOUND,
                "API endpoint not found",
                path=request.url.path,
                method=request.method,
            )
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "Unhandled error",
            extra={"path": request.url.path, "method": request.method},
        )
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
            _detail(exc) or "Please try again later",
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(contacts_router)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": SERVICE_NAME,
        }

    @app.get("/")
    async def root() -> dict[str, Any]:
        return {
            "message": f"Welcome to the {SERVICE_NAME}",
            "version": VERSION,
            "endpoints": {
                "contacts": {
                    "GET_all": "/api/contacts",
                    "GET_one": "/api/contacts/:id",
                    "POST": "/api/contacts",
                    "PUT": "/api/contacts/:id",
                    "DELETE": "/api/contacts/:id",
                    "IMPORT": "/api/contacts/import",
                    "IMPORT_EXCEL": "/api/contacts/import/excel",
                },
                "health": "/health",
            },
            "documentation": "/docs" if settings.debug else None,
        }

    return app


app = create_app()
