"""
Maps typed service failures to HTTP responses.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from eventbook.core.exceptions import EventBookError, Unavailable
from eventbook.core.logging import get_logger

logger = get_logger(__name__)


def _error_body(error: EventBookError) -> dict:
    return {"detail": error.message, "error": error.kind, **error.extra()}


async def eventbook_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error = exc if isinstance(exc, EventBookError) else EventBookError(str(exc))
    return JSONResponse(status_code=error.status_code, content=_error_body(error))


async def store_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Driver errors escaping a read path: the store is unreachable."""
    logger.error("store_error", path=request.url.path, error=str(exc))
    error = Unavailable("database")
    return JSONResponse(status_code=error.status_code, content=_error_body(error))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "error": "internal"},
    )


EXCEPTION_HANDLERS = {
    EventBookError: eventbook_error_handler,
    SQLAlchemyError: store_error_handler,
    Exception: unhandled_error_handler,
}


def register_exception_handlers(app: FastAPI) -> None:
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
