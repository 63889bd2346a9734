"""Response envelope helpers.

Every handler answers with ``{"success": bool, "message": str, **data}`` and
an HTTP status code; these builders are the only place that shape is made.
"""
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def success(
    data: Optional[dict[str, Any]] = None,
    message: str = "Success",
    status_code: int = 200,
) -> JSONResponse:
    body = {"success": True, "message": message, **(data or {})}
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def created(data: Optional[dict[str, Any]] = None, message: str = "Created successfully") -> JSONResponse:
    return success(data, message, status_code=201)


def error(message: str = "Something went wrong", status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def bad_request(message: str = "Bad request") -> JSONResponse:
    return error(message, 400)


def unauthorized(message: str = "Unauthorized") -> JSONResponse:
    return error(message, 401)


def forbidden(message: str = "Forbidden") -> JSONResponse:
    return error(message, 403)


def not_found(message: str = "Not found") -> JSONResponse:
    return error(message, 404)
