"""Error taxonomy shared by every route and the handlers that render it.

Every failure leaving the API has the shape ``{"error": <title>, "message": <text>}``.
Upstream SDK exceptions are translated into one of the classes below before
they reach a handler; nothing provider-specific crosses the boundary.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from http import HTTPStatus
from typing import Any, Iterator

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("errors")


class ApiError(HTTPException):
    """HTTPException carrying a stable error title next to the message."""

    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_default = "Internal server error"

    def __init__(self, message: str, error: str | None = None, status_code: int | None = None) -> None:
        code = status_code or self.status_code_default
        super().__init__(status_code=code, detail=message)
        self.error = error or self.error_default
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error, "message": self.message}


class ValidationFailed(ApiError):
    status_code_default = status.HTTP_400_BAD_REQUEST
    error_default = "Validation Error"


class Unauthorized(ApiError):
    status_code_default = status.HTTP_401_UNAUTHORIZED
    error_default = "Unauthorized"


class Forbidden(ApiError):
    status_code_default = status.HTTP_403_FORBIDDEN
    error_default = "Forbidden"


class NotFound(ApiError):
    status_code_default = status.HTTP_404_NOT_FOUND
    error_default = "Not found"


class UpstreamError(ApiError):
    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_default = "Internal server error"


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        msg = err.get("msg", "invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or "Invalid request"


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Validation Error", "message": _validation_message(exc), "details": details},
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    try:
        title = HTTPStatus(exc.status_code).phrase
    except ValueError:
        title = "Error"
    message = exc.detail if isinstance(exc.detail, str) else title
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": title, "message": message},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error path=%s", request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal Server Error", "message": "Something went wrong"},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)


@contextmanager
def upstream_guard(message: str, log: logging.Logger | None = None) -> Iterator[None]:
    """Re-raise anything that is not already an ApiError as a generic 500."""
    try:
        yield
    except ApiError:
        raise
    except Exception as exc:
        (log or logger).exception("%s", message)
        raise UpstreamError(message) from exc
