"""Exception handlers rendering the public error body.

Every failure leaves the API as:

    {"error": {"code": "NOT_FOUND", "message": "key key_123 not found", "requestId": "req_..."}}

Unexpected exceptions are logged with their traceback and reported as a
bare INTERNAL_SERVER_ERROR; no internal detail reaches the caller.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from keyadmin.core.errors import ApiError, ErrorCode

log = structlog.get_logger(__name__)


def _error_response(request: Request, status_code: int, code: ErrorCode, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": code,
                "message": message,
                "requestId": getattr(request.state, "request_id", None),
            }
        },
    )


def _describe_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return "; ".join(parts) or "invalid request"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
        log.info(
            "app.api_error",
            path=request.url.path,
            code=exc.code,
            message=exc.message,
        )
        return _error_response(request, exc.status_code, exc.code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        message = _describe_validation_error(exc)
        log.info("app.bad_request", path=request.url.path, message=message)
        return _error_response(request, 400, ErrorCode.BAD_REQUEST, message)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        log.error(
            "app.unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=True,
        )
        return _error_response(
            request,
            500,
            ErrorCode.INTERNAL_SERVER_ERROR,
            "Internal server error",
        )
