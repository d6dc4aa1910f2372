"""Error taxonomy for the public API.

Components raise ApiError with one of the ErrorCode values; the FastAPI
exception handlers in keyadmin.api.errors turn it into the JSON error body.
Nothing between the raise and the handler catches it.
"""

from __future__ import annotations

from enum import StrEnum

from fastapi import status


class ErrorCode(StrEnum):
    BAD_REQUEST = "BAD_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


_STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.BAD_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorCode.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.INTERNAL_SERVER_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class ApiError(Exception):
    """A failure that is reported to the caller as ``{code, message}``."""

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    @property
    def status_code(self) -> int:
        return _STATUS_BY_CODE[self.code]

    def __repr__(self) -> str:
        return f"<ApiError code={self.code} message={self.message!r}>"


def unauthorized(message: str) -> ApiError:
    return ApiError(ErrorCode.UNAUTHORIZED, message)


def not_found(message: str) -> ApiError:
    return ApiError(ErrorCode.NOT_FOUND, message)


def internal_error(message: str) -> ApiError:
    return ApiError(ErrorCode.INTERNAL_SERVER_ERROR, message)
