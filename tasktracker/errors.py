from __future__ import annotations

import enum
import logging
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("tasktracker.errors")

INTERNAL_ERROR_MESSAGE = "An internal server error occurred."


class ErrorKind(enum.Enum):
    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    INTERNAL = "internal"


STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class HttpError(Exception):
    """Domain error carrying everything needed to build the HTTP response."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]

    @classmethod
    def validation(cls, message: str) -> "HttpError":
        return cls(ErrorKind.VALIDATION, message)

    @classmethod
    def unauthorized(cls, message: str) -> "HttpError":
        return cls(ErrorKind.UNAUTHORIZED, message)

    @classmethod
    def forbidden(cls, message: str) -> "HttpError":
        return cls(ErrorKind.FORBIDDEN, message)

    @classmethod
    def not_found(cls, message: str) -> "HttpError":
        return cls(ErrorKind.NOT_FOUND, message)


class ConfigurationError(RuntimeError):
    """Raised at startup when required settings are missing or unusable."""


class ErrorEnvelope(JSONResponse):
    def __init__(
        self,
        *,
        status_code: int,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"message": message}
        if details is not None:
            payload["details"] = details
        super().__init__(payload, status_code=status_code, headers=headers)


async def http_error_handler(request: Request, exc: HttpError):
    logger.warning(
        "API Error",
        extra={"extra_data": {"statusCode": exc.status_code, "errorMessage": exc.message}},
    )
    headers = {"WWW-Authenticate": "Bearer"} if exc.kind is ErrorKind.UNAUTHORIZED else None
    return ErrorEnvelope(status_code=exc.status_code, message=exc.message, headers=headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # FastAPI decodes the JSON body before dependencies run, so a caller that
    # was never authenticated must get 401 rather than the body errors.
    if getattr(request.state, "principal", None) is None:
        from tasktracker.deps import authenticate

        try:
            await authenticate(request, request.headers.get("Authorization"))
        except HttpError as auth_error:
            return await http_error_handler(request, auth_error)
    return ErrorEnvelope(
        status_code=status.HTTP_400_BAD_REQUEST,
        message="Invalid request body.",
        details=jsonable_encoder(exc.errors()),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Error"
    return ErrorEnvelope(status_code=exc.status_code, message=message, headers=getattr(exc, "headers", None))


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("An unexpected API error occurred.", exc_info=exc)
    return ErrorEnvelope(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, message=INTERNAL_ERROR_MESSAGE)


def register_exception_handlers(app) -> None:
    app.add_exception_handler(HttpError, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
