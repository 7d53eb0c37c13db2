"""Single response mapper for every error leaving the API.

Error body:
    {
        "statusCode": 404,
        "message": "Student with ID 3 not found",
        "error": "Not Found",
        "timestamp": "2024-01-01T00:00:00.000000+00:00",
        "path": "/students/3"
    }
"""

import logging
from datetime import datetime, timezone
from http import HTTPStatus

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from eventreg.exceptions import AppError, Message, TooManyRequests

logger = logging.getLogger("eventreg.errors")


def _phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def error_response(request: Request, status_code: int, message: Message, headers=None) -> JSONResponse:
    body = {
        "statusCode": status_code,
        "message": message,
        "error": _phrase(status_code),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": request.url.path,
    }
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def _format_validation_errors(exc: RequestValidationError) -> list[str]:
    messages = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path", "form")]
        field = ".".join(loc)
        messages.append(f"{field}: {err.get('msg')}" if field else err.get("msg", "Invalid input"))
    return messages


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    else:
        logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)

    headers = None
    if isinstance(exc, TooManyRequests) and exc.retry_after:
        headers = {"Retry-After": str(exc.retry_after)}
    return error_response(request, exc.status_code, exc.message, headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.detail)
    return error_response(request, exc.status_code, exc.detail, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = _format_validation_errors(exc)
    logger.warning("%s %s -> 400: %s", request.method, request.url.path, messages)
    return error_response(request, status.HTTP_400_BAD_REQUEST, messages)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def setup_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
