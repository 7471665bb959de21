"""Error types raised by the domain layer and the handlers that render them.

CRUD and service functions raise ``ValueError`` (or one of the subclasses
below) when a request breaks a business rule. Routers translate those into
``HTTPException`` through :func:`http_error`, and the handlers registered in
the application factory render every failure with the same envelope::

    {"code": "...", "message": "...", "details": {...}}
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ConflictError(ValueError):
    """A unique name/identifier is already used by another active row."""

    code = "conflict"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


class StockError(ValueError):
    """A stock movement would break the product's quantity rules."""

    code = "stock_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None, *, code: str | None = None) -> None:
        super().__init__(message)
        self.details = details or {}
        if code:
            self.code = code


class ErrorEnvelope(JSONResponse):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"code": code, "message": message}
        if details is not None:
            payload["details"] = jsonable_encoder(details)
        super().__init__(payload, status_code=status_code, headers=headers)


def http_error(exc: ValueError) -> HTTPException:
    """Map a domain ``ValueError`` onto the matching HTTP status."""

    if isinstance(exc, (ConflictError, StockError)):
        detail = {"code": exc.code, "message": str(exc), "details": exc.details or None}
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)
    detail = {"code": "invalid_request", "message": str(exc)}
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


def _reason(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    if isinstance(detail, dict) and "message" in detail:
        return ErrorEnvelope(
            status_code=exc.status_code,
            code=str(detail.get("code") or "http_error"),
            message=str(detail["message"]),
            details=detail.get("details"),
            headers=getattr(exc, "headers", None),
        )
    message = detail if isinstance(detail, str) else _reason(exc.status_code)
    details = detail if isinstance(detail, dict) else None
    return ErrorEnvelope(
        status_code=exc.status_code,
        code="http_error",
        message=message,
        details=details,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return ErrorEnvelope(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        code="validation_error",
        message="Validation failed",
        details={"errors": exc.errors()},
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(
        "request.failed",
        extra={"extra_data": {"method": request.method, "path": request.url.path}},
    )
    return ErrorEnvelope(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        code="internal_error",
        message="Internal server error",
    )


__all__ = [
    "ConflictError",
    "ErrorEnvelope",
    "StockError",
    "http_error",
    "http_exception_handler",
    "unhandled_exception_handler",
    "validation_exception_handler",
]
