"""
FastAPI application entry point - mailbox connection and sync API
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, HTTPException, Request
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse
from fastapi_async_sqlalchemy import SQLAlchemyMiddleware

from app.api.middlewares.auto_commit import AutoCommitMiddleware
from app.api.routes import api_router
from app.container import ApplicationContainer
from app.db import SESSION_ARGS, database_url, engine_args
from app.exceptions import BaseError, ErrorType
from settings import settings

logger = logging.getLogger(__name__)

API_TITLE = "Mailsync API"
API_DESCRIPTION = "Connect Gmail and Outlook mailboxes and keep their mail in sync"
API_VERSION = "1.0.0"
UNAUTHENTICATED_PATHS = {"/health"}


def _setup_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def handle_http_error(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code or 400, content={"error": exc.detail})

    @app.exception_handler(BaseError)
    async def handle_app_error(request: Request, exc: BaseError) -> JSONResponse:
        """Render engine and service errors as `{error, error_description}`."""
        if exc.status_code < 500:
            logger.warning(f"Request to {request.url.path} failed; {exc}", extra=exc.extra)
        else:
            logger.exception(f"Request to {request.url.path} failed; {exc}", extra=exc.extra)

        return JSONResponse(
            status_code=exc.status_code, content={"error": exc.error_type.value, "error_description": exc.message}
        )

    @app.exception_handler(Exception)
    async def handle_generic_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"An unhandled exception occurred; error: {exc}")
        return JSONResponse(status_code=500, content={"error": ErrorType.UNHANDLED_EXCEPTION.value})


def _setup_openapi(app: FastAPI) -> None:
    """Document the per-user API key as a bearer scheme on every authenticated route."""

    def custom_openapi() -> dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = get_openapi(title=API_TITLE, version=API_VERSION, description=API_DESCRIPTION, routes=app.routes)
        schema["components"]["securitySchemes"] = {
            "ApiKeyBearer": {"type": "http", "scheme": "bearer", "description": "User API key"}
        }
        for path, operations in schema["paths"].items():
            if path in UNAUTHENTICATED_PATHS:
                continue
            for operation in operations.values():
                operation["security"] = [{"ApiKeyBearer": []}]

        app.openapi_schema = schema
        return schema

    setattr(app, "openapi", custom_openapi)


def create_app(container: ApplicationContainer | None = None) -> FastAPI:
    """Create and configure FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        if container is not None:
            await container.controllers.provider_http_client().close_session()

    app = FastAPI(title=API_TITLE, description=API_DESCRIPTION, version=API_VERSION, lifespan=lifespan)

    _setup_openapi(app)
    _setup_error_handlers(app)

    # Added first so it runs inside the SQLAlchemy middleware's session scope
    app.add_middleware(AutoCommitMiddleware)
    app.add_middleware(
        SQLAlchemyMiddleware,
        db_url=database_url(),
        engine_args=engine_args(pool_recycle=300),
        session_args=SESSION_ARGS,
    )

    app.include_router(api_router, prefix="/v1")

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "ok", "environment": settings.environment.value}

    return app
