"""
FastAPI application for the circulation REST surface.

Routes stay thin: they resolve the caller, call one repository method and
wrap the result in the ``{success, data, message}`` envelope. Repository
errors are mapped to HTTP statuses here and nowhere else.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..config import LibraryConfig, get_config
from ..database.errors import (
    ConflictError,
    InvalidStateError,
    LimitExceededError,
    NotFoundError,
    RepositoryException,
)
from . import books, fines, members, reports, reservations, settings, transactions
from .responses import envelope

logger = logging.getLogger(__name__)

ERROR_STATUS: list[tuple[type[RepositoryException], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (InvalidStateError, status.HTTP_400_BAD_REQUEST),
    (LimitExceededError, status.HTTP_400_BAD_REQUEST),
]


def _error_response(status_code: int, message: str, data=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(envelope(data, message, success=False)),
    )


async def repository_error_handler(request: Request, exc: RepositoryException) -> JSONResponse:
    for error_cls, status_code in ERROR_STATUS:
        if isinstance(exc, error_cls):
            logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
            return _error_response(status_code, str(exc))

    # A bare RepositoryException wraps a database failure
    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error_response(exc.status_code, str(exc.detail))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation failed", data=exc.errors()
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def create_app(config: LibraryConfig | None = None) -> FastAPI:
    config = config or get_config()
    app = FastAPI(title="Library Circulation API", version=config.server_version)

    app.add_exception_handler(RepositoryException, repository_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(books.router)
    app.include_router(members.router)
    app.include_router(transactions.router)
    app.include_router(reservations.router)
    app.include_router(fines.router)
    app.include_router(settings.router)
    app.include_router(reports.router)

    @app.get("/healthz")
    def health():
        return envelope({"ok": True}, "Service is healthy")

    return app
