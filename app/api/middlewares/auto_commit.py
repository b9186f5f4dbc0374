"""
Middleware that commits the request's database session once the handler returns.
"""

import logging
from typing import Awaitable, Callable

from fastapi import Request, Response
from fastapi_async_sqlalchemy import db
from fastapi_async_sqlalchemy.exceptions import MissingSessionError
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class AutoCommitMiddleware(BaseHTTPMiddleware):
    """
    Commits whatever the handler left pending, or rolls it back when the handler failed.

    Sync runs commit per page themselves; this only covers the request's remaining writes
    (authorization requests, disconnects and the like).
    """

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        try:
            response = await call_next(request)
        except Exception as e:
            await self._rollback(e)
            raise

        if response.status_code >= 400:
            await self._rollback(None)
            return response

        try:
            await db.session.commit()
        except MissingSessionError:
            logger.debug("No database session found for request - skipping commit")
        return response

    @staticmethod
    async def _rollback(error: Exception | None) -> None:
        try:
            await db.session.rollback()
        except MissingSessionError:
            logger.debug("No database session found for rollback - skipping rollback")
            return
        if error is not None:
            logger.error(f"Database transaction rolled back due to error: {error}")
