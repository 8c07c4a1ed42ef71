"""API error taxonomy and its JSON wire shape."""
from __future__ import annotations
from typing import Any

from fastapi.responses import JSONResponse


class ApiError(Exception):
    """Error rendered as ``{"error": {"code", "message", "status"}}``."""

    code: int = 500
    status: str = "INTERNAL"

    def __init__(self, message: str, code: int | None = None, status: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status is not None:
            self.status = status

    def to_body(self) -> dict[str, Any]:
        return {"error": {"code": self.code, "message": self.message, "status": self.status}}


class InvalidArgument(ApiError):
    code = 400
    status = "INVALID_ARGUMENT"


class Unauthenticated(ApiError):
    code = 401
    status = "UNAUTHENTICATED"


class NotFound(ApiError):
    code = 404
    status = "NOT_FOUND"


class ResourceExhausted(ApiError):
    code = 429
    status = "RESOURCE_EXHAUSTED"


class InternalError(ApiError):
    code = 500
    status = "INTERNAL"


def error_response(err: ApiError, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(status_code=err.code, content=err.to_body(), headers=headers)
