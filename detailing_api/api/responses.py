"""Uniform JSON envelope for every API outcome.

Success::

    {"success": true, "data": ..., "metadata": {"timestamp": ...}}

Failure::

    {"success": false, "error": {"message": ..., "code": ...}, "metadata": {...}}
"""

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ErrorCode:
    VALIDATION_ERROR = 'VALIDATION_ERROR'
    INVALID_INPUT = 'INVALID_INPUT'
    UNAUTHORIZED = 'UNAUTHORIZED'
    FORBIDDEN = 'FORBIDDEN'
    ADMIN_ACCESS_DENIED = 'ADMIN_ACCESS_DENIED'
    NOT_FOUND = 'NOT_FOUND'
    TIME_SLOT_UNAVAILABLE = 'TIME_SLOT_UNAVAILABLE'
    TIME_SLOT_BOOKED = 'TIME_SLOT_BOOKED'
    OVERLAP_DETECTED = 'OVERLAP_DETECTED'
    INVALID_STATUS_TRANSITION = 'INVALID_STATUS_TRANSITION'
    SERVICE_UNAVAILABLE = 'SERVICE_UNAVAILABLE'
    SERVER_ERROR = 'SERVER_ERROR'


ERROR_STATUS_CODES = {
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorCode.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.ADMIN_ACCESS_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.TIME_SLOT_UNAVAILABLE: status.HTTP_409_CONFLICT,
    ErrorCode.TIME_SLOT_BOOKED: status.HTTP_409_CONFLICT,
    ErrorCode.OVERLAP_DETECTED: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_STATUS_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorCode.SERVICE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.SERVER_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

DEFAULT_CODES_BY_STATUS = {
    status.HTTP_400_BAD_REQUEST: ErrorCode.INVALID_INPUT,
    status.HTTP_401_UNAUTHORIZED: ErrorCode.UNAUTHORIZED,
    status.HTTP_403_FORBIDDEN: ErrorCode.FORBIDDEN,
    status.HTTP_404_NOT_FOUND: ErrorCode.NOT_FOUND,
    status.HTTP_409_CONFLICT: ErrorCode.TIME_SLOT_UNAVAILABLE,
    status.HTTP_503_SERVICE_UNAVAILABLE: ErrorCode.SERVICE_UNAVAILABLE,
}

DATABASE_UNAVAILABLE_MESSAGE = 'Database unavailable. Verify DATABASE_URL and database credentials.'


class ApiError(HTTPException):
    """HTTPException carrying a machine-readable error code."""

    def __init__(self, code: str, message: str, details: Any = None, status_code: int | None = None):
        super().__init__(
            status_code=status_code or ERROR_STATUS_CODES.get(code, status.HTTP_400_BAD_REQUEST),
            detail=message,
        )
        self.code = code
        self.details = details


def _metadata() -> dict:
    return {'timestamp': datetime.now(timezone.utc).isoformat()}


def success_body(data: Any = None) -> dict:
    return {'success': True, 'data': jsonable_encoder(data), 'metadata': _metadata()}


def error_body(message: str, code: str, details: Any = None) -> dict:
    error = {'message': message, 'code': code}
    if details is not None:
        error['details'] = jsonable_encoder(details)
    return {'success': False, 'error': error, 'metadata': _metadata()}


def error_response(
    message: str,
    code: str,
    status_code: int | None = None,
    details: Any = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code or ERROR_STATUS_CODES.get(code, status.HTTP_400_BAD_REQUEST),
        content=error_body(message, code, details),
    )


async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    return error_response(str(exc.detail), exc.code, exc.status_code, exc.details)


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = DEFAULT_CODES_BY_STATUS.get(exc.status_code, ErrorCode.SERVER_ERROR)
    message = exc.detail if isinstance(exc.detail, str) else 'Request failed.'
    details = None if isinstance(exc.detail, str) else exc.detail
    return error_response(message, code, exc.status_code, details)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {'loc': list(error.get('loc', ())), 'msg': error.get('msg', '')}
        for error in exc.errors()
    ]
    return error_response('Request validation failed.', ErrorCode.VALIDATION_ERROR, details=errors)


async def handle_database_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error('Database error while handling %s %s', request.method, request.url.path, exc_info=exc)
    return error_response(DATABASE_UNAVAILABLE_MESSAGE, ErrorCode.SERVICE_UNAVAILABLE)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error('Unexpected error while handling %s %s', request.method, request.url.path, exc_info=exc)
    return error_response('An unexpected error occurred', ErrorCode.SERVER_ERROR)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, handle_api_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(SQLAlchemyError, handle_database_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
