"""Application error taxonomy and the handlers that turn it into envelopes.

Services raise ``AppError`` subclasses; nothing below the route layer builds
HTTP responses. The handlers registered here keep every error response in
the same ``{"success": false, "message": ...}`` shape as successful ones.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException

from cloud_drive.config import settings
from cloud_drive.services import responses

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base error carrying an HTTP status and a user-facing message."""

    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None, status_code: int | None = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class BadRequestError(AppError):
    status_code = 400
    default_message = "Bad request"


class UnauthorizedError(AppError):
    status_code = 401
    default_message = "Unauthorized"


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class StorageError(AppError):
    """Object storage upload/delete failed."""

    status_code = 500
    default_message = "Storage operation failed"


async def app_error_handler(request: Request, exc: AppError):
    return responses.error(exc.message, exc.status_code)


async def http_exception_handler(request: Request, exc: HTTPException):
    return responses.error(str(exc.detail), exc.status_code)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())[1:])
        message = f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")
    else:
        message = "Invalid request"
    return responses.bad_request(message)


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    message = "Internal server error" if settings.is_production else str(exc)
    return responses.error(message)


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the envelope-producing handlers to an app."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
