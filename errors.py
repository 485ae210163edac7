"""
Error taxonomy and the central error handler.

Handlers raise ApiError subclasses for local checks (existence, ownership,
business rules). Driver errors are left to propagate. Every failure leaves
the service through one of the exception handlers registered here, so the
JSON error shape is produced in a single place:

    {"success": false, "message": "...", ...}
"""

import traceback

from bson.errors import InvalidId
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError
from starlette.exceptions import HTTPException

from config import get_logger, get_settings

logger = get_logger("errors")


class ApiError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class BadRequestError(ApiError):
    status_code = 400


class AuthError(ApiError):
    status_code = 401


class ForbiddenError(AuthError):
    status_code = 403


class NotFoundError(ApiError):
    status_code = 404


def _error_response(status_code: int, message: str, **extra) -> JSONResponse:
    body = {"success": False, "message": message}
    body.update(extra)
    return JSONResponse(status_code=status_code, content=body)


def duplicate_field(exc: DuplicateKeyError) -> str:
    details = exc.details or {}
    key_value = details.get("keyValue") or {}
    if key_value:
        return next(iter(key_value))
    # Older servers only report the index name, e.g. "index: slug_1 dup key"
    message = str(exc)
    marker = "index: "
    if marker in message:
        index_name = message.split(marker, 1)[1].split(" ", 1)[0]
        return index_name.rsplit("_", 1)[0]
    return ""


def _field_name(loc) -> str:
    parts = [str(p) for p in loc if p not in ("body", "query", "path")]
    return ".".join(parts) or "body"


def _clean_message(msg: str) -> str:
    prefix = "Value error, "
    return msg[len(prefix):] if msg.startswith(prefix) else msg


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    logger.warning("%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.message)
    return _error_response(exc.status_code, exc.message)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    logger.warning("%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.detail)
    response = _error_response(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def invalid_id_handler(request: Request, exc: InvalidId) -> JSONResponse:
    logger.warning("%s %s -> invalid id: %s", request.method, request.url.path, exc)
    return _error_response(404, "Resource not found")


async def duplicate_key_handler(request: Request, exc: DuplicateKeyError) -> JSONResponse:
    field = duplicate_field(exc)
    message = f"{field[:1].upper()}{field[1:]} already exists" if field else "Duplicate field value entered"
    logger.warning("%s %s -> %s", request.method, request.url.path, message)
    return _error_response(400, message)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": _field_name(err.get("loc", ())), "message": _clean_message(err.get("msg", ""))}
        for err in exc.errors()
    ]
    message = ", ".join(e["message"] for e in errors) or "Invalid request"
    logger.warning("%s %s -> 400 %s", request.method, request.url.path, message)
    return _error_response(400, message, errors=errors)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    status_code = getattr(exc, "status_code", None)
    if not isinstance(status_code, int) or status_code < 400:
        status_code = 500
    extra = {}
    if not get_settings().is_production:
        extra["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return _error_response(status_code, str(exc) or "Server Error", **extra)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(InvalidId, invalid_id_handler)
    app.add_exception_handler(DuplicateKeyError, duplicate_key_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
