# File: manga_api/core/errors.py

"""
API error taxonomy and the exception handlers that render it.

Every error leaves the API as JSON of the form ``{"error": "<message>"}``,
optionally with extra keys (``/auth/verify`` adds ``"valid": false``).
"""

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Internal server error"


class ApiError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = GENERIC_ERROR_MESSAGE

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_body(self) -> dict[str, Any]:
        return {**self.extra, "error": self.message}


class ValidationError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class Unauthenticated(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class Forbidden(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFound(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Conflict(ApiError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class InternalError(ApiError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = GENERIC_ERROR_MESSAGE


def public_message(exc: BaseException, *, production: bool) -> str:
    """Text safe to show a client for an unexpected failure."""
    if production:
        return GENERIC_ERROR_MESSAGE
    return str(exc) or exc.__class__.__name__


def _remember_error(request: Request, exc: BaseException) -> None:
    # Picked up by the metrics middleware when it records the ErrorEvent
    request.state.error_message = str(exc) or exc.__class__.__name__


def _is_production(request: Request) -> bool:
    settings = getattr(request.app.state, "settings", None)
    return bool(settings and settings.is_production)


def _internal_error_response(request: Request, exc: BaseException) -> JSONResponse:
    error = InternalError(public_message(exc, production=_is_production(request)))
    return JSONResponse(status_code=error.status_code, content=error.to_body())


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    """Terminal renderer for exceptions nothing else claimed."""
    logger.error(
        "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
    )
    return _internal_error_response(request, exc)


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the JSON error renderers to ``app``."""

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        details = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid request body", "details": details},
        )

    @app.exception_handler(IntegrityError)
    async def handle_integrity_error(request: Request, exc: IntegrityError):
        logger.warning("Constraint violation on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"error": "Resource already exists"},
        )

    @app.exception_handler(SQLAlchemyError)
    async def handle_database_error(request: Request, exc: SQLAlchemyError):
        logger.error(
            "Database error on %s %s", request.method, request.url.path, exc_info=exc
        )
        _remember_error(request, exc)
        return _internal_error_response(request, exc)

    app.add_exception_handler(Exception, handle_unexpected)
