from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi_async_sqlalchemy import SQLAlchemyMiddleware, db
from starlette.applications import Starlette

from settings import settings

# Sync runs read accounts and jobs back after committing each page.
SESSION_ARGS = {"expire_on_commit": False}


def database_url() -> str:
    return f"{settings.database.async_host}/{settings.database.name}"


def engine_args(**overrides: Any) -> dict[str, Any]:
    """Pool sizing shared by the API and the standalone scripts."""
    return {
        "pool_size": settings.database.min_pool_size,
        "max_overflow": settings.database.max_pool_size - settings.database.min_pool_size,
        "pool_pre_ping": True,
        **overrides,
    }


@asynccontextmanager
async def fastapi_sqlalchemy_context() -> AsyncGenerator[None, None]:
    """Give scripts the same `db.session` the API handlers get."""
    # A bare Starlette app is enough to bind the middleware's engine and session factory
    SQLAlchemyMiddleware(Starlette(), db_url=database_url(), engine_args=engine_args(), session_args=SESSION_ARGS)

    async with db():
        yield
